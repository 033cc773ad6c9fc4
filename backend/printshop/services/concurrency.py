# Overview: Service-layer operations for concurrency; transactions, row locks and read retries.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import BusinessRuleViolation, DomainError, InternalError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def unit_of_work(action: str):
    """
    Scoped transaction around a group of writes.

    Commits when the block exits normally. On any exception the session is
    rolled back first, then:
    - DomainError propagates unchanged
    - StaleDataError (lost an optimistic-lock race) becomes BusinessRuleViolation
    - anything else is logged and surfaces as InternalError

    Writes are never retried here; the caller decides whether to try again.
    """
    try:
        yield db.session
        db.session.commit()
    except DomainError:
        db.session.rollback()
        raise
    except StaleDataError:
        db.session.rollback()
        raise BusinessRuleViolation(f"Concurrent update detected while trying to {action}; reload and retry")
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to %s", action)
        raise InternalError() from exc


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a read-only DB operation with retry on lock contention.

    Retries on OperationalError (deadlocks, locks) and StaleDataError.
    Not used for writes.
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
    if last_exc:
        raise last_exc
