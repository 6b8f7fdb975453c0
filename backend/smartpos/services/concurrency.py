# Overview: Transaction boundary, row locking and retry helpers shared by the write paths.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import PosError, PersistenceError


# Transient conflicts that are safe to retry from the top of the operation
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def resolve_session(session=None):
    """Use the injected session, or the request-scoped one."""
    return session if session is not None else db.session


@contextmanager
def unit_of_work(session=None):
    """
    One atomic transaction: commit exactly once on success, roll back exactly
    once on any failure.

    Domain errors, integrity errors and retryable conflicts propagate
    unchanged so callers can translate or retry them; any other database
    failure surfaces as PersistenceError.
    """
    session = resolve_session(session)
    try:
        yield session
        session.commit()
    except (PosError, IntegrityError) + RETRYABLE_ERRORS:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        raise PersistenceError("Database operation failed") from exc
    except Exception:
        session.rollback()
        raise


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 2, backoff_base: float = 0.05, session=None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Exhausted retries raise PersistenceError.
    """
    session = resolve_session(session)
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            session.rollback()
            if attempt >= attempts - 1:
                raise PersistenceError("Transaction conflict, please retry") from exc
            current_app.logger.warning(
                "Transient transaction conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
