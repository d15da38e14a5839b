# Overview: Retry and row-locking helpers for stock and points writes.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """SELECT ... FOR UPDATE where the database supports it (SQLite ignores it)."""
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run ``func`` and retry on lock errors or optimistic version conflicts
    (Product, Client and Coupon carry version_id). The session is rolled back
    before each retry, so ``func`` must redo all of its reads.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
