"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

This migration captures the initial database schema for XPlay.
For databases created with `xplay init-db`, use 'alembic stamp 001' to mark as current.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables for the XPlay database."""
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("username", sa.String(50), unique=True, nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("password", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("profile_image", sa.String(512), nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("is_admin", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("is_banned", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("is_verified", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("subscriber_count", sa.Integer, server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("subscriber_count >= 0", name="ck_users_subscriber_count"),
    )

    # Channels table
    op.create_table(
        "channels",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("banner_image", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_channels_user_id", "channels", ["user_id"])

    # Videos table
    op.create_table(
        "videos",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("file_path", sa.String(1024), nullable=False),
        sa.Column("thumbnail_path", sa.String(1024), nullable=True),
        sa.Column("duration", sa.Integer, nullable=True),
        sa.Column("views", sa.Integer, server_default="0", nullable=False),
        sa.Column("likes", sa.Integer, server_default="0", nullable=False),
        sa.Column("dislikes", sa.Integer, server_default="0", nullable=False),
        sa.Column("categories", sa.Text, server_default="[]", nullable=False),
        sa.Column("tags", sa.Text, server_default="[]", nullable=False),
        sa.Column("is_published", sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column("is_quickie", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("has_ads", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("ad_url", sa.String(1024), nullable=True),
        sa.Column("ad_start_time", sa.Integer, nullable=True),
        sa.Column("ad_skippable", sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("views >= 0", name="ck_videos_views"),
        sa.CheckConstraint("likes >= 0", name="ck_videos_likes"),
        sa.CheckConstraint("dislikes >= 0", name="ck_videos_dislikes"),
        sa.CheckConstraint("duration IS NULL OR duration >= 0", name="ck_videos_duration"),
    )
    op.create_index("ix_videos_user_id", "videos", ["user_id"])
    op.create_index("ix_videos_created_at", "videos", ["created_at"])
    op.create_index("ix_videos_views", "videos", ["views"])
    op.create_index("ix_videos_is_quickie", "videos", ["is_quickie"])

    # Comments table
    op.create_table(
        "comments",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("video_id", sa.Integer, sa.ForeignKey("videos.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("likes", sa.Integer, server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_comments_video_id", "comments", ["video_id"])

    # Subscriptions table
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("subscriber_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("channel_id", sa.Integer, sa.ForeignKey("channels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("subscriber_id", "channel_id", name="uq_subscriptions_subscriber_channel"),
    )
    op.create_index("ix_subscriptions_channel_id", "subscriptions", ["channel_id"])

    # Liked videos table (one reaction per user per video)
    op.create_table(
        "liked_videos",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("video_id", sa.Integer, sa.ForeignKey("videos.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reaction", sa.String(10), server_default="like", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("user_id", "video_id", name="uq_liked_videos_user_video"),
        sa.CheckConstraint("reaction IN ('like', 'dislike')", name="ck_liked_videos_reaction"),
    )
    op.create_index("ix_liked_videos_video_id", "liked_videos", ["video_id"])

    # Video history table
    op.create_table(
        "video_history",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("video_id", sa.Integer, sa.ForeignKey("videos.id", ondelete="CASCADE"), nullable=False),
        sa.Column("watched_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_video_history_user_id_watched_at", "video_history", ["user_id", "watched_at"])

    # Site settings table (singleton row id = 1)
    op.create_table(
        "site_settings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("site_ads_enabled", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("site_ad_urls", sa.Text, server_default="[]", nullable=False),
        sa.Column("site_ad_positions", sa.Text, server_default="[]", nullable=False),
        sa.Column("intro_video_enabled", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("intro_video_url", sa.String(1024), nullable=True),
        sa.Column("intro_video_duration", sa.Integer, server_default="0", nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    # User sessions table
    op.create_table(
        "user_sessions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("session_token", sa.String(128), unique=True, nullable=False),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
    )
    op.create_index("ix_user_sessions_user_id", "user_sessions", ["user_id"])
    op.create_index("ix_user_sessions_expires_at", "user_sessions", ["expires_at"])

    # Reports table
    op.create_table(
        "reports",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("report_type", sa.String(20), nullable=False),
        sa.Column("content_id", sa.Integer, nullable=False),
        sa.Column("reported_by", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("details", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), server_default="pending", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("report_type IN ('video', 'comment', 'user')", name="ck_reports_report_type"),
        sa.CheckConstraint("status IN ('pending', 'resolved')", name="ck_reports_status"),
    )
    op.create_index("ix_reports_status", "reports", ["status"])

    # Contact messages table
    op.create_table(
        "contact_messages",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table("contact_messages")
    op.drop_table("reports")
    op.drop_table("user_sessions")
    op.drop_table("site_settings")
    op.drop_table("video_history")
    op.drop_table("liked_videos")
    op.drop_table("subscriptions")
    op.drop_table("comments")
    op.drop_table("videos")
    op.drop_table("channels")
    op.drop_table("users")
