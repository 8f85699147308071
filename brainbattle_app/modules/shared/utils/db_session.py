"""Commit helper for the SQLite-backed session.

SQLite holds a database-wide write lock for the length of a transaction, so a
result submission racing the stale-session sweep can hit ``database is
locked``. :func:`safe_commit` retries those commits with a doubling delay and
re-raises everything else untouched.

A failed commit is rolled back, which discards the staged objects. Callers
that want the retry pass ``stage``: a callable that re-adds their changes to
the session. Without it the first failure is re-raised.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.session import Session

logger = logging.getLogger(__name__)

LOCK_MARKERS = ("database is locked", "database is busy")


def is_lock_error(error: OperationalError) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in LOCK_MARKERS)


def safe_commit(
    session: Session,
    stage: Optional[Callable[[], None]] = None,
    retries: int = 5,
    initial_delay: float = 0.1,
) -> None:
    """Commit ``session``, re-staging and retrying while SQLite reports a lock.

    Raises:
        OperationalError: after ``retries`` locked attempts, or immediately for
            any other operational failure. The session is rolled back first.
        IntegrityError: propagated unchanged so callers can treat it as a
            conflicting write.
    """

    attempts = retries if stage is not None else 1
    delay = initial_delay
    for attempt in range(1, attempts + 1):
        try:
            session.commit()
            return
        except OperationalError as exc:
            session.rollback()
            if attempt == attempts or not is_lock_error(exc):
                raise
            logger.warning("Commit hit a SQLite lock (attempt %s/%s), retrying", attempt, attempts)
            time.sleep(delay)
            delay *= 2
            stage()
