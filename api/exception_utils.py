"""
Standardized exception handling utilities.

Consistent patterns for exception handling across the API: HTTPExceptions
pass through untouched, anything else is logged and turned into a sanitized
HTTP error.
"""

import functools
import logging
from typing import Any, Callable, Optional, TypeVar

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError

from api.db_retry import DatabaseRetryableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def handle_api_exceptions(
    operation_name: str,
    error_detail: str = "Internal server error",
    status_code: int = 500,
    log_errors: bool = True,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for standardized exception handling in API endpoints.

    1. HTTPExceptions are always re-raised (never masked)
    2. RequestValidationError and DatabaseRetryableError are re-raised for
       the app-level 400 and 503 handlers
    3. Other exceptions are logged and converted to `status_code` with
       `error_detail` as the client-facing message

    The wrapper keeps the endpoint's signature (functools.wraps) so FastAPI
    still resolves its parameters and dependencies.

    Example:
        @app.post("/api/videos")
        @handle_api_exceptions("video_upload", "Failed to upload video")
        async def upload_video(...):
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await func(*args, **kwargs)
            except (HTTPException, RequestValidationError, DatabaseRetryableError):
                raise
            except Exception as e:
                if log_errors:
                    logger.exception(f"Unexpected error in {operation_name}: {e}")
                raise HTTPException(status_code=status_code, detail=error_detail) from e

        return wrapper

    return decorator


def log_and_raise_http_exception(
    exception: Exception,
    status_code: int,
    detail: str,
    operation_name: Optional[str] = None,
    log_level: str = "error",
) -> None:
    """
    Log an exception and raise an HTTPException with a sanitized message.

    Example:
        try:
            shutil.move(tmp_path, final_path)
        except OSError as e:
            log_and_raise_http_exception(e, 503, ERROR_MESSAGES["storage"], "save_thumbnail")
    """
    log_msg = f"Error in {operation_name}: {exception}" if operation_name else str(exception)

    log_func = getattr(logger, log_level, logger.error)
    log_func(log_msg)

    raise HTTPException(status_code=status_code, detail=detail) from exception
