"""Tests for database retry functionality."""

import sqlite3
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from api.db_retry import (
    DatabaseLockedError,
    DatabaseRetryableError,
    db_execute_with_retry,
    execute_with_retry,
    fetch_one_with_retry,
    is_retryable_database_error,
)


class TestIsRetryableDatabaseError:
    """Tests for is_retryable_database_error function."""

    def test_database_is_locked_message(self):
        """Should detect 'database is locked' message."""
        exc = sqlite3.OperationalError("database is locked")
        assert is_retryable_database_error(exc) is True

    def test_database_table_is_locked_message(self):
        exc = sqlite3.OperationalError("database table is locked")
        assert is_retryable_database_error(exc) is True

    def test_sqlite_busy_message(self):
        exc = Exception("SQLITE_BUSY: some other text")
        assert is_retryable_database_error(exc) is True

    def test_case_insensitive(self):
        exc = Exception("DATABASE IS LOCKED")
        assert is_retryable_database_error(exc) is True

    def test_postgres_deadlock(self):
        exc = Exception("deadlock detected")
        assert is_retryable_database_error(exc) is True

    def test_postgres_sqlstate(self):
        """asyncpg errors carry the SQLSTATE as an attribute."""
        exc = Exception("serialization problem")
        exc.sqlstate = "40001"
        assert is_retryable_database_error(exc) is True

    def test_wrapped_cause(self):
        """Driver errors wrapped by the databases library are still detected."""
        try:
            try:
                raise sqlite3.OperationalError("database is locked")
            except sqlite3.OperationalError as inner:
                raise RuntimeError("query failed") from inner
        except RuntimeError as outer:
            assert is_retryable_database_error(outer) is True

    def test_other_sqlite_error(self):
        """Should return False for other SQLite errors."""
        exc = sqlite3.OperationalError("no such table: users")
        assert is_retryable_database_error(exc) is False

    def test_unique_violation_is_not_retryable(self):
        exc = sqlite3.IntegrityError("UNIQUE constraint failed: users.email")
        assert is_retryable_database_error(exc) is False


class TestExecuteWithRetry:
    """Tests for execute_with_retry function."""

    async def test_success_on_first_try(self):
        """Should return result immediately on success."""
        mock_func = AsyncMock(return_value="success")

        result = await execute_with_retry(mock_func)

        assert result == "success"
        assert mock_func.call_count == 1

    async def test_retry_on_database_locked_then_succeed(self):
        """Should retry on database locked error and return result on success."""
        mock_func = AsyncMock(
            side_effect=[
                sqlite3.OperationalError("database is locked"),
                sqlite3.OperationalError("database is locked"),
                "success",
            ]
        )

        with patch("api.db_retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await execute_with_retry(mock_func, max_retries=3, base_delay=0.01)

        assert result == "success"
        assert mock_func.call_count == 3
        assert mock_sleep.call_count == 2

    async def test_gives_up_after_max_retries(self):
        """Should raise DatabaseRetryableError once retries are exhausted."""
        mock_func = AsyncMock(side_effect=sqlite3.OperationalError("database is locked"))

        with patch("api.db_retry.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(DatabaseRetryableError, match="after 3 attempts"):
                await execute_with_retry(mock_func, max_retries=2)

        assert mock_func.call_count == 3

    async def test_non_retryable_error_raised_immediately(self):
        """Should not retry on non-transient errors."""
        mock_func = AsyncMock(side_effect=ValueError("bad input"))

        with pytest.raises(ValueError, match="bad input"):
            await execute_with_retry(mock_func)

        assert mock_func.call_count == 1

    async def test_passes_arguments(self):
        mock_func = AsyncMock(return_value=42)

        await execute_with_retry(mock_func, "a", key="b")

        mock_func.assert_called_once_with("a", key="b")

    def test_locked_alias(self):
        """The HTTP layer handles the same exception under its older name."""
        assert DatabaseLockedError is DatabaseRetryableError


class TestQueryWrappers:
    """Tests for the databases.Database wrappers."""

    async def test_fetch_one_retries(self):
        database = MagicMock()
        database.fetch_one = AsyncMock(side_effect=[sqlite3.OperationalError("database is locked"), {"id": 1}])

        with patch("api.db_retry.asyncio.sleep", new_callable=AsyncMock):
            row = await fetch_one_with_retry(database, "SELECT 1")

        assert row == {"id": 1}
        assert database.fetch_one.call_count == 2

    async def test_execute_returns_driver_result(self):
        database = MagicMock()
        database.execute = AsyncMock(return_value=7)

        assert await db_execute_with_retry(database, "INSERT ...") == 7
        database.execute.assert_called_once_with("INSERT ...")

    async def test_slow_query_logged(self, caplog):
        database = MagicMock()
        database.fetch_one = AsyncMock(return_value=None)

        with patch("api.db_retry.time.monotonic", side_effect=[0.0, 5.0]):
            await fetch_one_with_retry(database, "SELECT slow")

        assert "Slow fetch_one" in caplog.text
