"""Tests for :mod:`session_gateway.store.login_activity`."""

from datetime import timedelta
from unittest import TestCase

from .. import entities, util
from ..login_activity import last_login, record_login_activity
from ..models import DBLoginActivity
from .util import identity, temporary_db


class TestRecordLoginActivity(TestCase):
    """Tests for :func:`.record_login_activity`."""

    def test_replaces_previous_record(self):
        """There is at most one login activity per person."""
        with temporary_db() as db:
            person = entities.ensure_person(db, identity())
            earlier = util.now() - timedelta(days=1)
            with util.transaction(db):
                record_login_activity(db, person.id, earlier)
            with util.transaction(db):
                latest = record_login_activity(db, person.id)

            self.assertEqual(db.query(DBLoginActivity).count(), 1)
            self.assertEqual(last_login(db, person.id).id, latest.id)
            self.assertGreater(util.as_utc(last_login(db, person.id).started),
                               earlier)

    def test_no_login_yet(self):
        with temporary_db() as db:
            person = entities.ensure_person(db, identity())
            self.assertIsNone(last_login(db, person.id))
