"""
Centralized enums for status values used throughout the application.
Using str-based enums for database compatibility.
"""

from enum import Enum


class Reaction(str, Enum):
    """A user's reaction to a video. At most one per (user, video)."""

    LIKE = "like"
    DISLIKE = "dislike"


class UserAction(str, Enum):
    """Moderation actions accepted by PATCH /api/admin/users/{id}/{action}."""

    BAN = "ban"
    UNBAN = "unban"
    PROMOTE = "promote"
    DEMOTE = "demote"


class AdPosition(str, Enum):
    """Where a site-wide ad is played relative to the video."""

    PRE_ROLL = "pre-roll"
    MID_ROLL = "mid-roll"
    POST_ROLL = "post-roll"


class ReportType(str, Enum):
    """Kinds of content a report can point at."""

    VIDEO = "video"
    COMMENT = "comment"
    USER = "user"


class ReportStatus(str, Enum):
    """Moderation status of a report."""

    PENDING = "pending"
    RESOLVED = "resolved"

