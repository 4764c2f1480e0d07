# Overview: Service-layer operations for concurrency; unit of work, row locks and caller-side retry.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import CoreError, PersistenceConflict


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_immediate() covers it there.
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """
    Take SQLite's write lock up front.

    Without it two connections can both read the same current_stock and
    only collide at commit time. Other dialects rely on row locks.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.driver_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def unit_of_work():
    """
    One atomic, all-or-nothing database transaction.

    Everything written inside the block commits together or not at all.
    Lock timeouts, stale versions and constraint races become
    PersistenceConflict; domain errors propagate unchanged after rollback.
    Functions documented as "runs inside the caller's unit of work" must
    only flush, never commit.
    """
    try:
        begin_immediate()
        yield db.session
        db.session.commit()
    except CoreError:
        db.session.rollback()
        raise
    except (OperationalError, StaleDataError, IntegrityError) as exc:
        db.session.rollback()
        current_app.logger.warning("Unit of work aborted by %s: %s", type(exc).__name__, exc)
        raise PersistenceConflict(
            "The operation could not be committed; retry it",
            details={"cause": type(exc).__name__},
        ) from exc
    except Exception:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Re-run a whole logical operation when it fails with PersistenceConflict.

    Used by callers of the core (HTTP routes, CLI), never inside it: each
    attempt starts from scratch, nothing partial is resumed.
    """
    if attempts is None:
        attempts = current_app.config.get("CONFLICT_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("CONFLICT_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except PersistenceConflict:
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
