# Overview: Transaction helpers for the two write paths that race: stock decrement and token rotation.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def begin_write_transaction() -> None:
    """
    Open the current unit of work with a write lock where the backend needs it.

    SQLite ignores SELECT ... FOR UPDATE, so the writer lock is taken up front
    with BEGIN IMMEDIATE; concurrent writers queue on the busy timeout instead
    of both reading stale stock. Other backends rely on lock_for_update.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Locked rows are re-read even if already present in the session.
    """
    return query.with_for_update().populate_existing()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB unit of work, retrying on lock/deadlock failures.

    Any exception rolls the session back before it propagates, so a failed
    attempt never leaves half-applied rows behind. Only OperationalError
    (deadlocks, busy locks) and StaleDataError are retried; business errors
    surface immediately.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying unit of work after %s (attempt %d/%d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
