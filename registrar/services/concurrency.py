# Overview: Transaction, locking and retry helpers shared by every write path.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StorageError, TransientError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    SQLite serialises writers instead.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic locking conflicts). The final failure is re-raised as
    TransientError so callers can decide to retry later.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise TransientError(f"Database busy after {attempts} attempts") from exc
            time.sleep(backoff_base * (2 ** attempt))
    raise TransientError("No attempts were made")


def _describe(context: dict) -> str:
    return ", ".join(f"{k}={v!r}" for k, v in sorted(context.items()) if v is not None)


def run_in_transaction(func, *, operation: str, **context):
    """
    Run func and commit, as one unit of work.

    Any exception rolls the session back. Domain errors propagate untouched;
    lock timeouts are retried and then surface as TransientError; any other
    SQLAlchemy failure becomes StorageError. Storage failures are logged at
    error level with the operation context.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return result

    try:
        return run_with_retry(
            _op,
            attempts=current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", 3),
            backoff_base=current_app.config.get("TRANSACTION_RETRY_BACKOFF", 0.1),
        )
    except TransientError:
        current_app.logger.error("Transient storage failure during %s (%s)", operation, _describe(context))
        raise
    except SQLAlchemyError as exc:
        current_app.logger.error(
            "Storage failure during %s (%s): %s", operation, _describe(context), exc
        )
        raise StorageError(f"Storage failure during {operation}") from exc
