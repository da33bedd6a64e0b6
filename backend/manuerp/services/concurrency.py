# Overview: Row locking and optimistic-retry helpers for balance mutations.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id_col on the locked model still catches lost updates there.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a read-compute-write DB operation, re-running it from a fresh read
    on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Business errors raised by func propagate
    on the first attempt.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error("Concurrent update retries exhausted after %d attempts", attempts)
                raise
            current_app.logger.warning("Concurrent update detected; retrying (attempt %d)", attempt + 2)
            time.sleep(backoff_base * (2 ** attempt))
