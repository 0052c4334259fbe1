# Overview: Service-layer transaction primitives: row locking, retry on lock conflicts, scoped commit-or-rollback.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


_ATOMIC_DEPTH = "atomic_depth"


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def atomic(session=None):
    """
    Scoped all-or-nothing unit of work.

    Commits when the outermost block exits normally (early returns included);
    rolls back and re-raises on any exception. Nested blocks join the
    enclosing unit of work instead of committing it early.
    """
    if session is None:
        session = db.session
    depth = session.info.get(_ATOMIC_DEPTH, 0)
    session.info[_ATOMIC_DEPTH] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except BaseException:
        if depth == 0:
            session.rollback()
        raise
    finally:
        session.info[_ATOMIC_DEPTH] = depth


def run_with_retry(func, *, session=None, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts on version_id).
    """
    if session is None:
        session = db.session
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
