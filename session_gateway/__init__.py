"""
Session gateway for a federated identity provider.

Exchanges authorization codes for identity claims, reconciles the claims with
the persons, accounts, organizations and memberships in the store, and binds
sessions to the session handles of clients.

Contains the dependencies of the routes.
"""
from logging import getLogger
from typing import Generator, Optional

from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from .background import Deferred
from .sessions import SessionManager


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency for fastapi routes"""
    db = request.app.extra['open_session']()
    try:
        yield db
        if db.in_transaction():
            db.commit()
    except Exception:
        getLogger(__name__).debug('Request failed, rolling back')
        db.rollback()
        raise
    finally:
        db.close()


def get_session_handle(request: Request) -> Optional[str]:
    """The session handle sent by the client, if any."""
    return request.headers.get(request.app.extra['SESSION_HEADER'])


def get_session_manager(request: Request, background_tasks: BackgroundTasks,
                        db: Session = Depends(get_db)) -> SessionManager:
    extra = request.app.extra
    return SessionManager(
        db, extra['idp'],
        Deferred(extra['open_session'], background_tasks.add_task),
        resolver=extra['role_resolver'],
        parser=extra['claim_parser'],
        policy=extra['ORGANIZATION_POLICY'],
        admin_role=extra['ADMIN_ROLE'])
