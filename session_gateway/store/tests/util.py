"""Testing helpers."""

import os
import tempfile
from contextlib import contextmanager
from typing import Any, Callable, Generator, Iterable

from sqlalchemy.orm.session import Session

from ...background import Deferred
from ...domain import ParsedIdentity
from .. import util


@contextmanager
def temporary_db(create: bool = True,
                 drop: bool = True) -> Generator[Session, None, None]:
    """Provide a temporary sqlite database for testing purposes.

    A file is used rather than ``:memory:`` so that deferred mutations, which
    open sessions of their own, see the same data.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        engine = util.create_db_engine(
            f'sqlite:///{os.path.join(tmpdir, "test.db")}')
        if create:
            util.create_all(engine)
        db = util.session_factory(engine)()
        try:
            yield db
        finally:
            db.close()
            if drop:
                util.drop_all(engine)
            engine.dispose()


def run_now(func: Callable[..., Any], *args: Any) -> None:
    """Scheduler that runs deferred work right away."""
    func(*args)


def inline_deferred(db: Session) -> Deferred:
    """A :class:`.Deferred` that runs against the database of ``db`` now."""
    return Deferred(util.session_factory(db.get_bind()), run_now)


class Collect(object):
    """Scheduler that keeps deferred work for inspection."""

    def __init__(self) -> None:
        self.scheduled: list = []

    def __call__(self, func: Callable[..., Any], *args: Any) -> None:
        self.scheduled.append((func, args))

    def run(self) -> None:
        while self.scheduled:
            func, args = self.scheduled.pop(0)
            func(*args)


def identity(user_id: str = 'u1', account_id: str = 'acct-1',
             role_claims: Iterable[str] = ('Prefix-RoleA:ORG000123',),
             **kwargs: Any) -> ParsedIdentity:
    """Make a parsed identity with sensible defaults."""
    kwargs.setdefault('organization_code', 'ORG000123')
    return ParsedIdentity(user_id=user_id, account_id=account_id,
                          role_claims=list(role_claims), **kwargs)
