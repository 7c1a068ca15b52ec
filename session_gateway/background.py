"""
Fire-and-forget store mutations.

Refreshing person or organization data and recording login activity must not
hold up, nor fail, the authentication flow. Such work is handed to a
:class:`.Deferred`, which runs it later in its own database session. Failures
are logged and otherwise ignored.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from sqlalchemy.orm.session import Session

from .store import util

logger = logging.getLogger(__name__)

_executor: Optional[ThreadPoolExecutor] = None


def _submit(func: Callable[..., Any], *args: Any) -> None:
    """Default scheduler: run on a small shared thread pool."""
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=2,
                                       thread_name_prefix='deferred')
    _executor.submit(func, *args)


def run_detached(open_session: Callable[[], Session],
                 func: Callable[..., Any], *args: Any) -> None:
    """Run ``func(db, *args)`` in a transaction of its own, never raising."""
    db = open_session()
    try:
        with util.transaction(db):
            func(db, *args)
    except Exception as e:
        logger.warning('Deferred %s failed: %s', func.__name__, e,
                       exc_info=True)
    finally:
        db.close()


class Deferred(object):
    """
    Schedules store mutations that the caller does not wait for.

    Parameters
    ----------
    open_session : callable
        Opens a new database session for each deferred mutation.
    schedule : callable
        ``schedule(func, *args)`` arranges for ``func(*args)`` to be called
        later, e.g. :meth:`fastapi.BackgroundTasks.add_task`. Defaults to a
        thread pool.

    """

    def __init__(self, open_session: Callable[[], Session],
                 schedule: Optional[Callable[..., Any]] = None) -> None:
        self._open_session = open_session
        self._schedule = schedule or _submit

    def __call__(self, func: Callable[..., Any], *args: Any) -> None:
        """Schedule ``func(db, *args)``; scheduling errors are only logged."""
        try:
            self._schedule(run_detached, self._open_session, func, *args)
        except Exception as e:
            logger.warning('Could not schedule %s: %s', func.__name__, e)
