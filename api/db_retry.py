"""
Database retry utilities for handling transient database errors.

Retry logic with exponential backoff for both SQLite and PostgreSQL:

SQLite errors:
- "database is locked" - concurrent write contention
- "SQLITE_BUSY" / "SQLITE_LOCKED" - database busy states

PostgreSQL errors:
- Deadlocks (40P01)
- Serialization failures (40001)
- Connection errors
- "could not obtain lock" - lock contention
"""

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from databases import Database

logger = logging.getLogger(__name__)

# Queries slower than this are logged
SLOW_QUERY_THRESHOLD = 1.0

T = TypeVar("T")

# Default retry configuration
DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY = 0.1  # 100ms
DEFAULT_MAX_DELAY = 2.0  # 2 seconds
DEFAULT_EXPONENTIAL_BASE = 2

SQLITE_RETRYABLE_PATTERNS = (
    "database is locked",
    "database table is locked",
    "sqlite_busy",
    "sqlite_locked",
)

POSTGRES_RETRYABLE_PATTERNS = (
    "deadlock detected",  # 40P01
    "could not serialize access",  # 40001 serialization failure
    "could not obtain lock",
    "connection refused",
    "connection reset",
    "server closed the connection unexpectedly",
    "canceling statement due to lock timeout",
    "lock timeout",
)


class DatabaseRetryableError(Exception):
    """Raised when a database operation fails after all retries exhausted."""

    pass


# Name used by the HTTP layer's 503 handler
DatabaseLockedError = DatabaseRetryableError


def is_retryable_database_error(exc: BaseException) -> bool:
    """
    Check if an exception is a retryable database error.

    Supports both SQLite and PostgreSQL error patterns, and follows
    __cause__ because the databases library wraps driver exceptions.
    """
    error_str = str(exc).lower()

    if any(pattern in error_str for pattern in SQLITE_RETRYABLE_PATTERNS):
        return True
    if any(pattern in error_str for pattern in POSTGRES_RETRYABLE_PATTERNS):
        return True

    # asyncpg exposes the SQLSTATE directly
    if getattr(exc, "sqlstate", "") in ("40P01", "40001"):
        return True

    if exc.__cause__ is not None:
        return is_retryable_database_error(exc.__cause__)

    return False


def _backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    delay = min(base_delay * (DEFAULT_EXPONENTIAL_BASE**attempt), max_delay)
    # ±25% jitter to prevent thundering herd
    jitter = delay * 0.25 * (2 * random.random() - 1)
    return max(0.01, delay + jitter)


async def execute_with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    **kwargs: Any,
) -> T:
    """
    Execute an async function with retry logic for transient database errors.

    Non-retryable errors are re-raised immediately.

    Raises:
        DatabaseRetryableError: If all retries are exhausted
    """
    last_exception: Optional[Exception] = None

    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not is_retryable_database_error(e):
                raise

            last_exception = e

            if attempt < max_retries:
                delay = _backoff_delay(attempt, base_delay, max_delay)
                logger.warning(
                    f"Database error (attempt {attempt + 1}/{max_retries + 1}), retrying in {delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)
            else:
                logger.error(f"Database error after {max_retries + 1} attempts, giving up: {e}")

    raise DatabaseRetryableError(f"Database operation failed after {max_retries + 1} attempts: {last_exception}")


async def _timed(operation: str, query, call: Callable[[], Awaitable[T]]) -> T:
    start_time = time.monotonic()
    result = await call()
    elapsed = time.monotonic() - start_time
    if elapsed >= SLOW_QUERY_THRESHOLD:
        logger.warning(f"Slow {operation} ({elapsed:.2f}s): {str(query)[:500]}")
    return result


# =============================================================================
# Database Operation Wrappers
# =============================================================================


async def fetch_one_with_retry(database: Database, query, max_retries: int = DEFAULT_MAX_RETRIES):
    """Run database.fetch_one(query) with retry and slow-query logging."""
    return await execute_with_retry(
        _timed, "fetch_one", query, lambda: database.fetch_one(query), max_retries=max_retries
    )


async def fetch_all_with_retry(database: Database, query, max_retries: int = DEFAULT_MAX_RETRIES):
    """Run database.fetch_all(query) with retry and slow-query logging."""
    return await execute_with_retry(
        _timed, "fetch_all", query, lambda: database.fetch_all(query), max_retries=max_retries
    )


async def fetch_val_with_retry(database: Database, query, max_retries: int = DEFAULT_MAX_RETRIES):
    """Run database.fetch_val(query) with retry and slow-query logging."""
    return await execute_with_retry(
        _timed, "fetch_val", query, lambda: database.fetch_val(query), max_retries=max_retries
    )


async def db_execute_with_retry(database: Database, query, max_retries: int = DEFAULT_MAX_RETRIES):
    """
    Run a write query with retry logic.

    Returns the driver result (the new row id for inserts).
    Do not call this inside database.transaction(): a retried statement
    would run against a transaction that has already failed.
    """
    return await execute_with_retry(
        _timed, "execute", query, lambda: database.execute(query), max_retries=max_retries
    )
