from datetime import datetime, timezone

import sqlalchemy as sa
from databases import Database

from config import DATABASE_URL

# Create database instance - works with PostgreSQL or SQLite
# PostgreSQL is the default and recommended database
database = Database(DATABASE_URL)
metadata = sa.MetaData()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def configure_database():
    """
    Configure database-specific settings after connection.

    PostgreSQL enforces foreign keys by default, so this is a no-op. SQLite's
    foreign_keys pragma is per-connection and connections are pooled, so the
    storage layer always deletes child rows explicitly instead of relying on
    CASCADE.
    """
    pass


# Registered accounts
#
# FIELD SEMANTICS:
# ----------------
# - password: "pbkdf2_sha256$<iterations>$<salt>$<hash>" (never the plain text)
# - subscriber_count: Denormalized count of subscriptions to any of the user's
#   channels. Updated in the same transaction as the subscriptions row.
# - is_banned: Banned users cannot log in; their sessions are revoked on ban.
users = sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("username", sa.String(50), unique=True, nullable=False),
    sa.Column("email", sa.String(255), unique=True, nullable=False),
    sa.Column("password", sa.String(255), nullable=False),
    sa.Column("display_name", sa.String(100), nullable=True),
    sa.Column("profile_image", sa.String(512), nullable=True),
    sa.Column("bio", sa.Text, nullable=True),
    sa.Column("is_admin", sa.Boolean, default=False, nullable=False),
    sa.Column("is_banned", sa.Boolean, default=False, nullable=False),
    sa.Column("is_verified", sa.Boolean, default=False, nullable=False),
    sa.Column("subscriber_count", sa.Integer, default=0, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), default=utcnow),
    sa.CheckConstraint("subscriber_count >= 0", name="ck_users_subscriber_count"),
)

channels = sa.Table(
    "channels",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column("name", sa.String(100), nullable=False),
    sa.Column("description", sa.Text, nullable=True),
    sa.Column("banner_image", sa.String(512), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), default=utcnow),
    sa.Index("ix_channels_user_id", "user_id"),
)

# Uploaded videos
#
# FIELD SEMANTICS:
# ----------------
# - file_path / thumbnail_path: Public URL paths under MEDIA_URL_PREFIX, or
#   absolute URLs for videos registered by admins without an upload
# - duration: Seconds. Quickies are capped at QUICKIE_MAX_DURATION.
# - categories / tags: JSON-encoded lists of strings
# - views / likes / dislikes: Denormalized counters, never negative
# - has_ads / ad_url / ad_start_time / ad_skippable: Per-video ad playback
#   metadata. The player handles insertion, the server only stores it.
videos = sa.Table(
    "videos",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column("title", sa.String(255), nullable=False),
    sa.Column("description", sa.Text, nullable=True),
    sa.Column("file_path", sa.String(1024), nullable=False),
    sa.Column("thumbnail_path", sa.String(1024), nullable=True),
    sa.Column("duration", sa.Integer, nullable=True),
    sa.Column("views", sa.Integer, default=0, nullable=False),
    sa.Column("likes", sa.Integer, default=0, nullable=False),
    sa.Column("dislikes", sa.Integer, default=0, nullable=False),
    sa.Column("categories", sa.Text, default="[]", nullable=False),  # JSON-encoded
    sa.Column("tags", sa.Text, default="[]", nullable=False),  # JSON-encoded
    sa.Column("is_published", sa.Boolean, default=True, nullable=False),
    sa.Column("is_quickie", sa.Boolean, default=False, nullable=False),
    sa.Column("has_ads", sa.Boolean, default=False, nullable=False),
    sa.Column("ad_url", sa.String(1024), nullable=True),
    sa.Column("ad_start_time", sa.Integer, nullable=True),
    sa.Column("ad_skippable", sa.Boolean, default=True, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), default=utcnow),
    sa.CheckConstraint("views >= 0", name="ck_videos_views"),
    sa.CheckConstraint("likes >= 0", name="ck_videos_likes"),
    sa.CheckConstraint("dislikes >= 0", name="ck_videos_dislikes"),
    sa.CheckConstraint("duration IS NULL OR duration >= 0", name="ck_videos_duration"),
    sa.Index("ix_videos_user_id", "user_id"),
    sa.Index("ix_videos_created_at", "created_at"),
    sa.Index("ix_videos_views", "views"),
    sa.Index("ix_videos_is_quickie", "is_quickie"),
)

comments = sa.Table(
    "comments",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("video_id", sa.Integer, sa.ForeignKey("videos.id", ondelete="CASCADE"), nullable=False),
    sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column("content", sa.Text, nullable=False),
    sa.Column("likes", sa.Integer, default=0, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), default=utcnow),
    sa.Index("ix_comments_video_id", "video_id"),
)

subscriptions = sa.Table(
    "subscriptions",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("subscriber_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column("channel_id", sa.Integer, sa.ForeignKey("channels.id", ondelete="CASCADE"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), default=utcnow),
    sa.UniqueConstraint("subscriber_id", "channel_id", name="uq_subscriptions_subscriber_channel"),
    sa.Index("ix_subscriptions_channel_id", "channel_id"),
)

# One row per (user, video) reaction. The reaction column flips between
# "like" and "dislike"; removing a reaction deletes the row.
liked_videos = sa.Table(
    "liked_videos",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column("video_id", sa.Integer, sa.ForeignKey("videos.id", ondelete="CASCADE"), nullable=False),
    sa.Column(
        "reaction",
        sa.String(10),
        sa.CheckConstraint("reaction IN ('like', 'dislike')", name="ck_liked_videos_reaction"),
        default="like",
        nullable=False,
    ),
    sa.Column("created_at", sa.DateTime(timezone=True), default=utcnow),
    sa.UniqueConstraint("user_id", "video_id", name="uq_liked_videos_user_video"),
    sa.Index("ix_liked_videos_video_id", "video_id"),
)

# Append-only watch log, one row per watch event
video_history = sa.Table(
    "video_history",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column("video_id", sa.Integer, sa.ForeignKey("videos.id", ondelete="CASCADE"), nullable=False),
    sa.Column("watched_at", sa.DateTime(timezone=True), default=utcnow),
    sa.Index("ix_video_history_user_id_watched_at", "user_id", "watched_at"),
)

# Singleton (id = 1) site-wide playback configuration
#
# FIELD SEMANTICS:
# ----------------
# - site_ad_urls / site_ad_positions: JSON-encoded parallel arrays. Entry i of
#   positions says where ad i plays (pre-roll, mid-roll, post-roll).
# - intro_video_*: Clip played before every video when enabled
site_settings = sa.Table(
    "site_settings",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("site_ads_enabled", sa.Boolean, default=False, nullable=False),
    sa.Column("site_ad_urls", sa.Text, default="[]", nullable=False),  # JSON-encoded
    sa.Column("site_ad_positions", sa.Text, default="[]", nullable=False),  # JSON-encoded
    sa.Column("intro_video_enabled", sa.Boolean, default=False, nullable=False),
    sa.Column("intro_video_url", sa.String(1024), nullable=True),
    sa.Column("intro_video_duration", sa.Integer, default=0, nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), default=utcnow),
)

# Login sessions backing the HTTP-only session cookie
user_sessions = sa.Table(
    "user_sessions",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    # 128 chars provides safety margin for 64-char tokens from secrets.token_urlsafe(48)
    sa.Column("session_token", sa.String(128), unique=True, nullable=False),
    sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), default=utcnow),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("ip_address", sa.String(45), nullable=True),  # IPv6 max length
    sa.Column("user_agent", sa.String(512), nullable=True),
    sa.Index("ix_user_sessions_user_id", "user_id"),
    sa.Index("ix_user_sessions_expires_at", "expires_at"),
)

# Pending email verification codes, one row per address
#
# FIELD SEMANTICS:
# ----------------
# - code_hash: SHA-256 hex digest of the 6-digit code (never the code itself)
# - attempts: Wrong guesses so far. The row is dropped at VERIFICATION_MAX_ATTEMPTS.
# - verified_at: Set when the code was confirmed before an account existed;
#   registration with that email then creates a verified account and drops the row.
email_verifications = sa.Table(
    "email_verifications",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("email", sa.String(255), unique=True, nullable=False),
    sa.Column("code_hash", sa.String(64), nullable=False),
    sa.Column("attempts", sa.Integer, default=0, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), default=utcnow),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
    sa.Index("ix_email_verifications_expires_at", "expires_at"),
)

# Content reports filed by users and resolved by admins
reports = sa.Table(
    "reports",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column(
        "report_type",
        sa.String(20),
        sa.CheckConstraint("report_type IN ('video', 'comment', 'user')", name="ck_reports_report_type"),
        nullable=False,
    ),
    sa.Column("content_id", sa.Integer, nullable=False),
    sa.Column("reported_by", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    sa.Column("reason", sa.String(255), nullable=False),
    sa.Column("details", sa.Text, nullable=True),
    sa.Column(
        "status",
        sa.String(20),
        sa.CheckConstraint("status IN ('pending', 'resolved')", name="ck_reports_status"),
        default="pending",
        nullable=False,
    ),
    sa.Column("created_at", sa.DateTime(timezone=True), default=utcnow),
    sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    sa.Index("ix_reports_status", "status"),
)

contact_messages = sa.Table(
    "contact_messages",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("name", sa.String(100), nullable=False),
    sa.Column("email", sa.String(255), nullable=False),
    sa.Column("subject", sa.String(255), nullable=False),
    sa.Column("message", sa.Text, nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), default=utcnow),
)

# Children first. Deleting in this order never violates a foreign key.
TABLES_IN_DELETE_ORDER = (
    user_sessions,
    email_verifications,
    reports,
    contact_messages,
    video_history,
    liked_videos,
    comments,
    subscriptions,
    videos,
    channels,
    site_settings,
    users,
)


def create_tables():
    """
    Create database tables directly using SQLAlchemy metadata.
    This creates all tables if they don't exist.
    """
    engine = sa.create_engine(DATABASE_URL)
    metadata.create_all(engine)
    engine.dispose()


if __name__ == "__main__":
    create_tables()
    print("Database tables created successfully!")
