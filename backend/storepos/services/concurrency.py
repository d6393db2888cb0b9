# Overview: Write locks and retry helpers shared by the posting paths.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Use claim_rows when a check-then-write must serialize on SQLite too.
    """
    return query.with_for_update()


def claim_rows(column, *criteria) -> int:
    """
    Take the write lock on matching rows before reading state a later write
    depends on.

    Issues a no-op UPDATE (column = column). PostgreSQL holds the row locks
    until commit. SQLite takes its database-wide RESERVED lock, which
    pysqlite would otherwise defer to the first INSERT, so a concurrent
    posting blocks here and then reads the committed result.

    Must run before any read in the unit. Returns the matched row count.
    """
    model = column.class_
    return (
        db.session.query(model)
        .filter(*criteria)
        .update({column: column}, synchronize_session=False)
    )


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a posting unit, retrying on lock contention.

    OperationalError covers SQLite "database is locked" after the busy
    timeout and PostgreSQL deadlocks. StaleDataError covers version_id
    conflicts. The session is rolled back before each retry so the next
    attempt re-reads committed state.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
