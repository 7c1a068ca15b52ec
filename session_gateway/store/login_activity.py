"""Keeps track of the most recent login of each person."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm.session import Session

from . import util
from .models import DBLoginActivity

logger = logging.getLogger(__name__)


def record_login_activity(db: Session, person_id: str,
                          when: Optional[datetime] = None) -> DBLoginActivity:
    """
    Record that ``person_id`` just logged in.

    Any earlier record of the person is replaced, so there is at most one
    login activity per person. Normally run as a deferred mutation, inside the
    caller's transaction.
    """
    db.query(DBLoginActivity) \
        .filter(DBLoginActivity.person_id == person_id) \
        .delete(synchronize_session=False)
    activity_id = util.new_id()
    activity = DBLoginActivity(
        id=activity_id,
        uri=util.resource_uri('aanmeldingsactiviteit', activity_id),
        person_id=person_id,
        started=when or util.now()
    )
    db.add(activity)
    logger.debug('Recorded login of person %s', person_id)
    return activity


def last_login(db: Session, person_id: str) -> Optional[DBLoginActivity]:
    """Get the most recent login activity of a person, if any."""
    return db.query(DBLoginActivity) \
        .filter(DBLoginActivity.person_id == person_id) \
        .first()
