# Overview: Transaction scope, row locking and retry helpers shared by every ledger write.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


@contextmanager
def atomic():
    """
    Scoped transaction for one business operation.

    Commits when the block finishes, rolls back on any exception (including
    early exits through raise) and re-raises it unchanged. Code inside the
    block must only flush, never commit.
    """
    try:
        yield db.session
        db.session.commit()
    except BaseException:
        db.session.rollback()
        raise


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on: tuple = ()):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and any extra exception types in retry_on
    (e.g. IntegrityError for generated-code collisions). func must run its
    own atomic() block so every attempt starts from a clean session.
    """
    retryable = (OperationalError, StaleDataError) + tuple(retry_on)
    attempts = max(attempts, 1)
    for attempt in range(attempts):
        try:
            return func()
        except retryable:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
