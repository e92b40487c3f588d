# Overview: Service-layer helpers for concurrency; atomic counters, row locks and retry handling.

from __future__ import annotations

import time

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def atomic_increment(model, row_id: int, column: str, delta: int, *, minimum: int | None = None) -> int | None:
    """
    Add delta to a counter column in a single UPDATE statement.

    Issues "SET col = col + :delta" so concurrent writers never overwrite each
    other's changes. When minimum is given the update is conditional on the
    result staying >= minimum ("WHERE col + :delta >= :minimum").

    Returns the new value, or None when no row matched (missing row or the
    minimum guard rejected the change).
    """
    col = getattr(model, column)
    stmt = (
        update(model)
        .where(model.id == row_id)
        .values({column: col + delta})
        .execution_options(synchronize_session=False)
    )
    if minimum is not None:
        stmt = stmt.where(col + delta >= minimum)

    result = db.session.execute(stmt)
    if not result.rowcount:
        return None

    # Reload the counter on the (possibly already loaded) instance
    instance = db.session.get(model, row_id)
    db.session.refresh(instance, attribute_names=[column])
    return getattr(instance, column)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must perform the whole unit of
    work, including the commit, so a retry replays it from scratch. Any
    other exception rolls the session back before propagating.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            # Business errors abort the whole unit of work
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
