"""Helpers for talking to the store."""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from .. import config
from ..exceptions import InternalError
from .models import Base

logger = logging.getLogger(__name__)

SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)


def now() -> datetime:
    """Get the current time, timezone-aware."""
    return datetime.now(tz=timezone.utc)


def as_utc(t: Optional[datetime]) -> Optional[datetime]:
    """Normalize to UTC. SQLite hands back naive datetimes; those are UTC."""
    if t is None:
        return None
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)


def new_id() -> str:
    """Generate an identifier for a new entity."""
    return str(uuid.uuid4())


def resource_uri(kind: str, entity_id: str,
                 base: str = config.RESOURCE_BASE_URI) -> str:
    """Build the URI of an entity, e.g. ``<base>/id/persoon/<id>``."""
    return f'{base.rstrip("/")}/id/{kind}/{entity_id}'


def create_db_engine(database_uri: str, **kwargs: Any) -> Engine:
    """Create an engine for ``database_uri``."""
    if 'sqlite' in database_uri:
        kwargs.setdefault('connect_args', {'check_same_thread': False})
    return create_engine(database_uri, **kwargs)


def session_factory(engine: Engine) -> Callable[[], Session]:
    """Get a callable that opens new sessions bound to ``engine``."""
    def _open() -> Session:
        return SessionLocal(bind=engine)
    return _open


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """
    Context manager for a database transaction.

    Commits anything left pending when the block exits. Rolls back on error;
    integrity errors are re-raised as-is so that callers can recover from
    concurrent inserts, other database errors become :class:`.InternalError`.
    """
    try:
        yield db
        # The caller may have explicitly committed already. Bulk deletes do
        # not show up in ``db.new``/``db.dirty``/``db.deleted``, so commit
        # whenever a transaction is still open.
        if db.in_transaction():
            db.commit()
    except IntegrityError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        logger.error('Commit failed, rolling back: %s', str(e))
        db.rollback()
        raise InternalError('Database error') from e
    except Exception:
        db.rollback()
        raise


def create_all(engine: Engine) -> None:
    """Create all tables in the database."""
    Base.metadata.create_all(bind=engine)


def drop_all(engine: Engine) -> None:
    """Drop all tables in the database."""
    Base.metadata.drop_all(bind=engine)


def is_available(db: Session) -> bool:
    """Check our connection to the database."""
    try:
        db.execute(text('SELECT 1'))
    except Exception as e:
        logger.error('Encountered an error talking to database: %s', e)
        return False
    return True
