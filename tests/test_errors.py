"""
Tests for error message utilities.

Covers truncation, unique-violation detection across SQLite and PostgreSQL,
and sanitizing messages before they reach API clients.
"""

import sqlite3

from api.errors import ERROR_MESSAGES, is_unique_violation, sanitize_error_message, truncate_error, truncate_string


class TestTruncateString:
    """Tests for the generic truncate_string function."""

    def test_short_text_unchanged(self):
        assert truncate_string("Short text", 50) == "Short text"

    def test_long_text_truncated_with_ellipsis(self):
        result = truncate_string("a" * 100, 50)
        assert len(result) == 50
        assert result == "a" * 47 + "..."

    def test_none_input(self):
        assert truncate_string(None, 50) is None

    def test_small_max_length(self):
        """With no room for the suffix the text is cut bare."""
        assert truncate_string("abcdefgh", 3) == "abc"

    def test_truncate_error_suffix(self):
        result = truncate_error("x" * 200, 50)
        assert len(result) == 50
        assert result.endswith("... (truncated)")


class TestIsUniqueViolation:
    """Tests for is_unique_violation."""

    def test_sqlite_message(self):
        exc = sqlite3.IntegrityError("UNIQUE constraint failed: users.email")
        assert is_unique_violation(exc) is True
        assert is_unique_violation(exc, "email") is True
        assert is_unique_violation(exc, "username") is False

    def test_postgres_message(self):
        exc = Exception('duplicate key value violates unique constraint "users_username_key"')
        assert is_unique_violation(exc, "username") is True

    def test_postgres_sqlstate(self):
        exc = Exception("users_email_key")
        exc.sqlstate = "23505"
        assert is_unique_violation(exc, "email") is True

    def test_follows_cause(self):
        inner = sqlite3.IntegrityError("UNIQUE constraint failed: users.username")
        outer = RuntimeError("insert failed")
        outer.__cause__ = inner
        assert is_unique_violation(outer, "username") is True

    def test_other_errors(self):
        assert is_unique_violation(ValueError("NOT NULL constraint failed: users.email")) is False


class TestSanitizeErrorMessage:
    """Tests for sanitize_error_message."""

    def test_none(self):
        assert sanitize_error_message(None) is None

    def test_database_details_hidden(self):
        assert sanitize_error_message("sqlite3.OperationalError: no such table") == ERROR_MESSAGES["database"]

    def test_disk_full(self):
        assert sanitize_error_message("[Errno 28] No space left on device") == ERROR_MESSAGES["storage"]

    def test_permission_error(self):
        message = "[Errno 13] Permission denied: '/srv/media/videos/abc.mp4'"
        assert sanitize_error_message(message) == ERROR_MESSAGES["permission"]

    def test_paths_hidden(self):
        message = "[Errno 2] No such file or directory: '/home/app/media/x.mp4'"
        assert sanitize_error_message(message) == ERROR_MESSAGES["general"]

    def test_short_safe_message_passes_through(self):
        assert sanitize_error_message("Invalid duration") == "Invalid duration"

    def test_original_logged_with_context(self, caplog):
        sanitize_error_message("sqlite3 exploded", context="upload=abc.mp4")
        assert "Original error (upload=abc.mp4): sqlite3 exploded" in caplog.text

    def test_logging_can_be_disabled(self, caplog):
        sanitize_error_message("sqlite3 exploded", log_original=False)
        assert "Original error" not in caplog.text
