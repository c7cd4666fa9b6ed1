"""
Error handling utilities for sanitizing error messages.

Prevents internal implementation details from being exposed to API clients
while still logging detailed errors for debugging.
"""
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

# Patterns that indicate internal details
INTERNAL_PATTERNS = [
    r'/home/\w+/',           # Home directory paths
    r'/mnt/\w+/',            # Mount paths
    r'/tmp/\w+',             # Temp paths
    r'/var/\w+/',            # Var paths
    r'line \d+',             # Line numbers in stack traces
    r'File "[^"]+\.py"',     # Python file paths
    r'Permission denied',    # System errors
    r'No such file or directory',  # System errors with paths
    r'UNIQUE constraint failed',   # Database internals
    r'duplicate key value',  # PostgreSQL unique violation
    r'sqlite3?\.',           # SQLite details
    r'asyncpg\.',            # asyncpg details
    r'Error: .+\.py:\d+',    # Python error traces
]

# Generic user-friendly messages for common error types
ERROR_MESSAGES = {
    "upload": "Upload failed. Please try again.",
    "file_type": "Unsupported file type.",
    "storage": "Media storage temporarily unavailable. Please try again later.",
    "database": "A database error occurred. Please try again.",
    "permission": "A file access error occurred. Please contact support.",
    "general": "An error occurred while processing your request. Please try again.",
}


def truncate_string(value: Optional[str], max_length: int, suffix: str = "...") -> Optional[str]:
    """Truncate a string to max_length characters, including the suffix."""
    if value is None or len(value) <= max_length:
        return value
    if max_length <= len(suffix):
        return value[:max_length]
    return value[: max_length - len(suffix)] + suffix


def truncate_error(error: Optional[str], max_length: int) -> Optional[str]:
    """Truncate an error message for logs and CLI output."""
    return truncate_string(error, max_length, suffix="... (truncated)")


def is_unique_violation(exc: Exception, column: Optional[str] = None) -> bool:
    """
    Check if an exception is a unique constraint violation.

    Works with SQLite ("UNIQUE constraint failed: users.email") and
    PostgreSQL ("duplicate key value violates unique constraint ...",
    SQLSTATE 23505). When column is given, the message must mention it.
    """
    error_str = str(exc)
    lowered = error_str.lower()
    matched = (
        "unique constraint failed" in lowered
        or "duplicate key value" in lowered
        or getattr(exc, "sqlstate", None) == "23505"
    )
    if not matched and exc.__cause__ is not None:
        return is_unique_violation(exc.__cause__, column)
    if not matched:
        return False
    if column is None:
        return True
    return column.lower() in lowered


def sanitize_error_message(
    error: Optional[str],
    log_original: bool = True,
    context: str = ""
) -> Optional[str]:
    """
    Sanitize an error message for safe display to API clients.

    Args:
        error: The original error message (may contain internal details)
        log_original: Whether to log the original message before sanitizing
        context: Additional context for logging (e.g., "video_id=123")

    Returns:
        A sanitized, user-friendly error message, or None if input was None
    """
    if error is None:
        return None

    if log_original and error:
        log_msg = "Original error"
        if context:
            log_msg += f" ({context})"
        log_msg += f": {error}"
        logger.warning(log_msg)

    error_lower = error.lower()

    if "sqlite" in error_lower or "database" in error_lower or "constraint" in error_lower:
        return ERROR_MESSAGES["database"]

    if "no space left" in error_lower or "read-only file system" in error_lower:
        return ERROR_MESSAGES["storage"]

    if "permission" in error_lower:
        return ERROR_MESSAGES["permission"]

    for pattern in INTERNAL_PATTERNS:
        if re.search(pattern, error, re.IGNORECASE):
            return ERROR_MESSAGES["general"]

    # Short messages without path-like segments are safe to pass through
    if len(error) < 100 and "/" not in error and "\\" not in error:
        return error

    return ERROR_MESSAGES["general"]
