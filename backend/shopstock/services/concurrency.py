# Overview: Unit-of-work helpers: row locking, bounded retry and rollback on failure.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The variant version counter covers SQLite.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Execute one unit of work, rolling back the session on any failure.

    Retries on OperationalError (deadlocks, lock waits) and StaleDataError
    (optimistic locking conflicts); func must re-read what it needs.
    When retries run out those surface as ConflictError, as does an
    IntegrityError. Business errors are re-raised after rollback, never
    retried.
    """
    if attempts is None:
        attempts = current_app.config.get("STOCK_RETRY_ATTEMPTS", 3)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning("Giving up after %d attempts: %s", attempts, exc.__class__.__name__)
                raise ConflictError("Concurrent update in progress, please retry") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError("Request conflicts with existing data") from exc
        except Exception:
            db.session.rollback()
            raise
