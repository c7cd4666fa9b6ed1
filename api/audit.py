"""
Audit logging for user and administrative actions.

Provides structured audit logging for security and operational tracking.
Logs to a file with JSON-formatted entries for easy parsing and analysis.
"""

import json
import logging
import os
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from api.errors import truncate_string
from config import (
    AUDIT_LOG_BACKUP_COUNT,
    AUDIT_LOG_ENABLED,
    AUDIT_LOG_LEVEL,
    AUDIT_LOG_MAX_BYTES,
    AUDIT_LOG_PATH,
    ERROR_DETAIL_MAX_LENGTH,
)

# Ensure log directory exists (skip in test mode)
if not os.environ.get("XPLAY_TEST_MODE") and AUDIT_LOG_ENABLED:
    try:
        AUDIT_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        pass  # Will fall back to console logging


class AuditAction(str, Enum):
    """Audit action types for categorization."""

    # Account actions
    USER_REGISTER = "user_register"
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    PROFILE_UPDATE = "profile_update"
    EMAIL_VERIFICATION_SENT = "email_verification_sent"
    EMAIL_VERIFIED = "email_verified"

    # Video actions
    VIDEO_UPLOAD = "video_upload"
    VIDEO_CREATE = "video_create"
    VIDEO_UPDATE = "video_update"
    VIDEO_DELETE = "video_delete"
    VIDEO_THUMBNAIL_UPDATE = "video_thumbnail_update"

    # Channel actions
    CHANNEL_CREATE = "channel_create"
    CHANNEL_UPDATE = "channel_update"
    CHANNEL_DELETE = "channel_delete"

    # Moderation actions
    USER_BAN = "user_ban"
    USER_UNBAN = "user_unban"
    USER_PROMOTE = "user_promote"
    USER_DEMOTE = "user_demote"
    USER_DELETE = "user_delete"
    REPORT_CREATE = "report_create"
    REPORT_RESOLVE = "report_resolve"

    # Settings actions
    SITE_SETTINGS_UPDATE = "site_settings_update"
    SITE_ADS_UPDATE = "site_ads_update"
    VIDEO_ADS_UPDATE = "video_ads_update"

    # Maintenance
    DATABASE_RESET = "database_reset"


class AuditLogger:
    """
    Structured audit logger.

    Logs events in JSON format for easy parsing and analysis.
    Falls back to console logging if file logging is unavailable.
    """

    def __init__(self):
        self.logger = logging.getLogger("xplay.audit")
        self.logger.setLevel(getattr(logging, AUDIT_LOG_LEVEL, logging.INFO))
        self.logger.propagate = False  # Don't propagate to root logger

        if not self.logger.handlers:
            self._setup_handlers()

    def _setup_handlers(self):
        """Set up logging handlers with rotation support."""
        formatter = logging.Formatter("%(message)s")  # Raw JSON output

        if AUDIT_LOG_ENABLED and not os.environ.get("XPLAY_TEST_MODE"):
            try:
                file_handler = RotatingFileHandler(
                    AUDIT_LOG_PATH,
                    maxBytes=AUDIT_LOG_MAX_BYTES,
                    backupCount=AUDIT_LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
                file_handler.setFormatter(formatter)
                self.logger.addHandler(file_handler)
            except (PermissionError, OSError):
                console_handler = logging.StreamHandler()
                console_handler.setFormatter(formatter)
                self.logger.addHandler(console_handler)
        else:
            self.logger.addHandler(logging.NullHandler())

    def log(
        self,
        action: AuditAction,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        actor_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        resource_name: Optional[str] = None,
        details: Optional[dict] = None,
        success: bool = True,
        error: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        """
        Log an audit event.

        Args:
            action: The type of action being performed
            client_ip: IP address of the client making the request
            user_agent: User-Agent header from the request
            actor_id: ID of the logged-in user performing the action
            resource_type: Type of resource (video, channel, user, ...)
            resource_id: ID of the affected resource
            resource_name: Human-readable name of the resource (title, username, ...)
            details: Additional action-specific details
            success: Whether the action succeeded
            error: Error message if action failed
            request_id: Unique request ID for tracing
        """
        if not AUDIT_LOG_ENABLED:
            return

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action.value,
            "success": success,
        }

        if request_id:
            entry["request_id"] = request_id
        if client_ip:
            entry["client_ip"] = client_ip
        if user_agent:
            entry["user_agent"] = truncate_string(user_agent, ERROR_DETAIL_MAX_LENGTH)
        if actor_id is not None:
            entry["actor_id"] = actor_id
        if resource_type:
            entry["resource_type"] = resource_type
        if resource_id is not None:
            entry["resource_id"] = resource_id
        if resource_name:
            entry["resource_name"] = resource_name
        if details:
            entry["details"] = details
        if error:
            entry["error"] = truncate_string(error, ERROR_DETAIL_MAX_LENGTH)

        try:
            self.logger.info(json.dumps(entry, default=str))
        except Exception:
            # Never let audit logging break the application
            pass


# Singleton instance for use across the application
audit_logger = AuditLogger()


def log_audit(
    action: AuditAction,
    client_ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    actor_id: Optional[int] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[Any] = None,
    resource_name: Optional[str] = None,
    details: Optional[dict] = None,
    success: bool = True,
    error: Optional[str] = None,
    request_id: Optional[str] = None,
):
    """
    Convenience function for logging audit events.

    Example usage:
        log_audit(
            AuditAction.VIDEO_UPLOAD,
            client_ip=get_real_ip(request),
            actor_id=user["id"],
            resource_type="video",
            resource_id=video["id"],
            resource_name=video["title"],
        )
    """
    audit_logger.log(
        action=action,
        client_ip=client_ip,
        user_agent=user_agent,
        actor_id=actor_id,
        resource_type=resource_type,
        resource_id=resource_id,
        resource_name=resource_name,
        details=details,
        success=success,
        error=error,
        request_id=request_id,
    )
