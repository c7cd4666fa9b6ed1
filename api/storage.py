"""
Storage adapter over the SQLAlchemy tables in api.database.

Every coroutine returns plain dicts (or lists of dicts) ready to be validated
by the response models in api.schemas. List columns are decoded, timestamps
are normalized to UTC, and the password hash stays in the dict so auth code
can verify it; response models drop it.

Multi-row mutations (reactions, subscriptions, cascading deletes, reset) run
inside database.transaction() so counters and rows commit together.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import sqlalchemy as sa
from databases import Database

from api.common import ensure_utc
from api.database import (
    TABLES_IN_DELETE_ORDER,
    channels,
    comments,
    contact_messages,
    email_verifications,
    liked_videos,
    metadata,
    reports,
    site_settings,
    subscriptions,
    user_sessions,
    users,
    utcnow,
    video_history,
    videos,
)
from api.db_retry import (
    db_execute_with_retry,
    fetch_all_with_retry,
    fetch_one_with_retry,
    fetch_val_with_retry,
)
from api.enums import Reaction, ReportStatus, ReportType
from api.schemas import decode_list, encode_list

logger = logging.getLogger(__name__)

SITE_SETTINGS_ID = 1

# Columns holding JSON-encoded lists, per table
LIST_COLUMNS = {
    "videos": ("categories", "tags"),
    "site_settings": ("site_ad_urls", "site_ad_positions"),
}

# Timestamp columns normalized to aware UTC on the way out
TIMESTAMP_COLUMNS = (
    "created_at",
    "updated_at",
    "watched_at",
    "expires_at",
    "last_used_at",
    "resolved_at",
    "verified_at",
)

# Columns never printed by diagnostics
REDACTED_COLUMNS = ("password", "session_token", "code_hash")


def _decrement(column):
    """column - 1, never below zero."""
    return sa.case((column > 0, column - 1), else_=0)


def _subtract_floor_zero(column, amount: int):
    return sa.case((column >= amount, column - amount), else_=0)


def row_to_dict(row, table_name: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Convert a database row to a dict, decoding list columns and timestamps."""
    if row is None:
        return None
    data = dict(row._mapping)
    for column in LIST_COLUMNS.get(table_name, ()):
        if column in data:
            data[column] = decode_list(data[column])
    for column in TIMESTAMP_COLUMNS:
        if isinstance(data.get(column), datetime):
            data[column] = ensure_utc(data[column])
    return data


def creator_summary(user: Optional[Dict[str, Any]], include_subscribers: bool = False) -> Optional[Dict[str, Any]]:
    """Public subset of a user shown next to videos, comments and channels."""
    if user is None:
        return None
    summary = {
        "id": user["id"],
        "username": user["username"],
        "display_name": user.get("display_name"),
        "profile_image": user.get("profile_image"),
    }
    if include_subscribers:
        summary["subscriber_count"] = user.get("subscriber_count") or 0
    return summary


class Storage:
    """CRUD coroutines for every entity, bound to one `databases.Database`."""

    def __init__(self, db: Database):
        self.db = db

    # ============ Generic helpers ============

    async def _fetch_one(self, query, table_name: Optional[str] = None) -> Optional[Dict[str, Any]]:
        row = await fetch_one_with_retry(self.db, query)
        return row_to_dict(row, table_name)

    async def _fetch_all(self, query, table_name: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = await fetch_all_with_retry(self.db, query)
        return [row_to_dict(row, table_name) for row in rows]

    # ============ Users ============

    async def get_user(self, user_id: int) -> Optional[Dict[str, Any]]:
        return await self._fetch_one(users.select().where(users.c.id == user_id))

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return await self._fetch_one(users.select().where(sa.func.lower(users.c.email) == email.lower()))

    async def get_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return await self._fetch_one(users.select().where(users.c.username == username))

    async def get_users_by_ids(self, user_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        rows = await self._fetch_all(users.select().where(users.c.id.in_(ids)))
        return {row["id"]: row for row in rows}

    async def list_users(self) -> List[Dict[str, Any]]:
        return await self._fetch_all(users.select().order_by(users.c.id))

    async def create_user(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a user. `data["password"]` must already be hashed.

        Unique violations on username/email propagate to the caller.
        """
        query = users.insert().values(
            username=data["username"],
            email=data["email"].lower(),
            password=data["password"],
            display_name=data.get("display_name"),
            profile_image=data.get("profile_image"),
            bio=data.get("bio"),
            is_admin=bool(data.get("is_admin", False)),
            is_banned=False,
            is_verified=bool(data.get("is_verified", False)),
            subscriber_count=0,
            created_at=utcnow(),
        )
        user_id = await db_execute_with_retry(self.db, query)
        return await self.get_user(user_id)

    async def update_user(self, user_id: int, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if fields:
            await db_execute_with_retry(self.db, users.update().where(users.c.id == user_id).values(**fields))
        return await self.get_user(user_id)

    async def delete_user(self, user_id: int) -> bool:
        """
        Delete a user and everything they own.

        Children go first: sessions, the user's reactions/history/comments,
        rows pointing at the user's videos and channels, then the owned rows.
        Subscriber counts of channels the user followed are decremented.
        """
        async with self.db.transaction():
            user = await self.db.fetch_one(users.select().where(users.c.id == user_id))
            if user is None:
                return False

            video_ids = [
                row["id"] for row in await self.db.fetch_all(sa.select(videos.c.id).where(videos.c.user_id == user_id))
            ]
            channel_ids = [
                row["id"]
                for row in await self.db.fetch_all(sa.select(channels.c.id).where(channels.c.user_id == user_id))
            ]

            # Channels this user followed lose a subscriber
            followed = await self.db.fetch_all(
                sa.select(channels.c.user_id)
                .select_from(subscriptions.join(channels, subscriptions.c.channel_id == channels.c.id))
                .where(subscriptions.c.subscriber_id == user_id)
            )
            for row in followed:
                await self.db.execute(
                    users.update()
                    .where(users.c.id == row["user_id"])
                    .values(subscriber_count=_decrement(users.c.subscriber_count))
                )

            # Videos the user reacted to lose that like/dislike
            reacted = await self.db.fetch_all(
                sa.select(liked_videos.c.video_id, liked_videos.c.reaction).where(liked_videos.c.user_id == user_id)
            )
            for row in reacted:
                column = videos.c.likes if row["reaction"] == Reaction.LIKE.value else videos.c.dislikes
                await self.db.execute(
                    videos.update().where(videos.c.id == row["video_id"]).values({column.key: _decrement(column)})
                )

            await self.db.execute(user_sessions.delete().where(user_sessions.c.user_id == user_id))
            await self.db.execute(reports.update().where(reports.c.reported_by == user_id).values(reported_by=None))
            await self.db.execute(video_history.delete().where(video_history.c.user_id == user_id))
            await self.db.execute(liked_videos.delete().where(liked_videos.c.user_id == user_id))
            await self.db.execute(comments.delete().where(comments.c.user_id == user_id))
            await self.db.execute(subscriptions.delete().where(subscriptions.c.subscriber_id == user_id))
            if video_ids:
                await self.db.execute(video_history.delete().where(video_history.c.video_id.in_(video_ids)))
                await self.db.execute(liked_videos.delete().where(liked_videos.c.video_id.in_(video_ids)))
                await self.db.execute(comments.delete().where(comments.c.video_id.in_(video_ids)))
                await self.db.execute(videos.delete().where(videos.c.id.in_(video_ids)))
            if channel_ids:
                await self.db.execute(subscriptions.delete().where(subscriptions.c.channel_id.in_(channel_ids)))
                await self.db.execute(channels.delete().where(channels.c.id.in_(channel_ids)))
            await self.db.execute(users.delete().where(users.c.id == user_id))
        return True

    async def get_dashboard_stats(self, user_id: int) -> Dict[str, int]:
        query = sa.select(
            sa.func.count(videos.c.id).label("total_videos"),
            sa.func.coalesce(sa.func.sum(videos.c.views), 0).label("total_views"),
            sa.func.coalesce(sa.func.sum(videos.c.likes), 0).label("total_likes"),
        ).where(videos.c.user_id == user_id)
        row = await fetch_one_with_retry(self.db, query)
        subscriber_count = await fetch_val_with_retry(
            self.db, sa.select(users.c.subscriber_count).where(users.c.id == user_id)
        )
        return {
            "total_videos": int(row["total_videos"] or 0),
            "total_views": int(row["total_views"] or 0),
            "total_likes": int(row["total_likes"] or 0),
            "subscriber_count": int(subscriber_count or 0),
        }

    # ============ Channels ============

    async def get_channel(self, channel_id: int) -> Optional[Dict[str, Any]]:
        return await self._fetch_one(channels.select().where(channels.c.id == channel_id))

    async def list_channels_by_user(self, user_id: int) -> List[Dict[str, Any]]:
        return await self._fetch_all(
            channels.select().where(channels.c.user_id == user_id).order_by(channels.c.id)
        )

    async def create_channel(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        query = channels.insert().values(
            user_id=user_id,
            name=data["name"],
            description=data.get("description"),
            banner_image=data.get("banner_image"),
            created_at=utcnow(),
        )
        channel_id = await db_execute_with_retry(self.db, query)
        return await self.get_channel(channel_id)

    async def update_channel(self, channel_id: int, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if fields:
            await db_execute_with_retry(
                self.db, channels.update().where(channels.c.id == channel_id).values(**fields)
            )
        return await self.get_channel(channel_id)

    async def delete_channel(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """Delete a channel and its subscriptions. Returns the deleted channel, or None."""
        async with self.db.transaction():
            channel = row_to_dict(await self.db.fetch_one(channels.select().where(channels.c.id == channel_id)))
            if channel is None:
                return None

            removed = await self.db.fetch_val(
                sa.select(sa.func.count()).select_from(subscriptions).where(subscriptions.c.channel_id == channel_id)
            )
            await self.db.execute(subscriptions.delete().where(subscriptions.c.channel_id == channel_id))
            if removed:
                await self.db.execute(
                    users.update()
                    .where(users.c.id == channel["user_id"])
                    .values(subscriber_count=_subtract_floor_zero(users.c.subscriber_count, int(removed)))
                )
            await self.db.execute(channels.delete().where(channels.c.id == channel_id))
        return channel

    # ============ Subscriptions ============

    async def is_subscribed(self, subscriber_id: int, channel_id: int) -> bool:
        query = sa.select(subscriptions.c.id).where(
            sa.and_(subscriptions.c.subscriber_id == subscriber_id, subscriptions.c.channel_id == channel_id)
        )
        return await fetch_val_with_retry(self.db, query) is not None

    async def subscribe(self, subscriber_id: int, channel: Dict[str, Any]) -> bool:
        """
        Subscribe to a channel. Returns False when already subscribed.

        The owner's subscriber_count moves in the same transaction as the row.
        """
        async with self.db.transaction():
            existing = await self.db.fetch_one(
                sa.select(subscriptions.c.id).where(
                    sa.and_(
                        subscriptions.c.subscriber_id == subscriber_id,
                        subscriptions.c.channel_id == channel["id"],
                    )
                )
            )
            if existing is not None:
                return False
            await self.db.execute(
                subscriptions.insert().values(
                    subscriber_id=subscriber_id,
                    channel_id=channel["id"],
                    created_at=utcnow(),
                )
            )
            await self.db.execute(
                users.update()
                .where(users.c.id == channel["user_id"])
                .values(subscriber_count=users.c.subscriber_count + 1)
            )
        return True

    async def unsubscribe(self, subscriber_id: int, channel: Dict[str, Any]) -> bool:
        """Remove a subscription. Returns False when there was none. Count never drops below zero."""
        async with self.db.transaction():
            existing = await self.db.fetch_one(
                sa.select(subscriptions.c.id).where(
                    sa.and_(
                        subscriptions.c.subscriber_id == subscriber_id,
                        subscriptions.c.channel_id == channel["id"],
                    )
                )
            )
            if existing is None:
                return False
            await self.db.execute(subscriptions.delete().where(subscriptions.c.id == existing["id"]))
            await self.db.execute(
                users.update()
                .where(users.c.id == channel["user_id"])
                .values(subscriber_count=_decrement(users.c.subscriber_count))
            )
        return True

    async def list_subscriptions(self, subscriber_id: int) -> List[Dict[str, Any]]:
        """Subscriptions of a user, newest first, each with its channel and the channel owner."""
        subs = await self._fetch_all(
            subscriptions.select()
            .where(subscriptions.c.subscriber_id == subscriber_id)
            .order_by(subscriptions.c.created_at.desc(), subscriptions.c.id.desc())
        )
        channel_ids = [sub["channel_id"] for sub in subs]
        channel_rows = (
            await self._fetch_all(channels.select().where(channels.c.id.in_(channel_ids))) if channel_ids else []
        )
        channels_by_id = {row["id"]: row for row in channel_rows}
        owners = await self.get_users_by_ids(row["user_id"] for row in channel_rows)

        for sub in subs:
            channel = channels_by_id.get(sub["channel_id"])
            if channel is not None:
                channel = dict(channel, owner=creator_summary(owners.get(channel["user_id"])))
            sub["channel"] = channel
        return subs

    # ============ Videos ============

    async def get_video(self, video_id: int) -> Optional[Dict[str, Any]]:
        return await self._fetch_one(videos.select().where(videos.c.id == video_id), "videos")

    async def get_videos_by_ids(self, video_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        ids = sorted(set(video_ids))
        if not ids:
            return {}
        rows = await self._fetch_all(videos.select().where(videos.c.id.in_(ids)), "videos")
        return {row["id"]: row for row in rows}

    async def list_videos(self, limit: int, offset: int = 0, published_only: bool = True) -> List[Dict[str, Any]]:
        """Videos newest first."""
        query = videos.select()
        if published_only:
            query = query.where(videos.c.is_published == sa.true())
        query = query.order_by(videos.c.created_at.desc(), videos.c.id.desc()).limit(limit).offset(offset)
        return await self._fetch_all(query, "videos")

    async def list_recent_videos(self, limit: int) -> List[Dict[str, Any]]:
        """Published non-quickies, newest first."""
        query = (
            videos.select()
            .where(sa.and_(videos.c.is_published == sa.true(), videos.c.is_quickie == sa.false()))
            .order_by(videos.c.created_at.desc(), videos.c.id.desc())
            .limit(limit)
        )
        return await self._fetch_all(query, "videos")

    async def list_trending_videos(self, limit: int) -> List[Dict[str, Any]]:
        """Published non-quickies, most viewed first."""
        query = (
            videos.select()
            .where(sa.and_(videos.c.is_published == sa.true(), videos.c.is_quickie == sa.false()))
            .order_by(videos.c.views.desc(), videos.c.id.desc())
            .limit(limit)
        )
        return await self._fetch_all(query, "videos")

    async def list_quickies(self, limit: int) -> List[Dict[str, Any]]:
        """Published quickies, newest first."""
        query = (
            videos.select()
            .where(sa.and_(videos.c.is_published == sa.true(), videos.c.is_quickie == sa.true()))
            .order_by(videos.c.created_at.desc(), videos.c.id.desc())
            .limit(limit)
        )
        return await self._fetch_all(query, "videos")

    async def list_videos_by_user(self, user_id: int) -> List[Dict[str, Any]]:
        query = videos.select().where(videos.c.user_id == user_id).order_by(videos.c.created_at.desc(), videos.c.id.desc())
        return await self._fetch_all(query, "videos")

    async def attach_creators(
        self, video_list: List[Dict[str, Any]], include_subscribers: bool = False
    ) -> List[Dict[str, Any]]:
        """Set `creator` on each video from one batched user lookup."""
        creators = await self.get_users_by_ids(video["user_id"] for video in video_list)
        for video in video_list:
            video["creator"] = creator_summary(creators.get(video["user_id"]), include_subscribers)
        return video_list

    async def create_video(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        query = videos.insert().values(
            user_id=user_id,
            title=data["title"],
            description=data.get("description"),
            file_path=data["file_path"],
            thumbnail_path=data.get("thumbnail_path"),
            duration=data.get("duration"),
            views=0,
            likes=0,
            dislikes=0,
            categories=encode_list(data.get("categories")),
            tags=encode_list(data.get("tags")),
            is_published=bool(data.get("is_published", True)),
            is_quickie=bool(data.get("is_quickie", False)),
            has_ads=False,
            ad_url=None,
            ad_start_time=None,
            ad_skippable=True,
            created_at=utcnow(),
        )
        video_id = await db_execute_with_retry(self.db, query)
        return await self.get_video(video_id)

    async def update_video(self, video_id: int, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        values = dict(fields)
        for column in LIST_COLUMNS["videos"]:
            if column in values:
                values[column] = encode_list(values[column])
        if values:
            await db_execute_with_retry(self.db, videos.update().where(videos.c.id == video_id).values(**values))
        return await self.get_video(video_id)

    async def update_video_ads(
        self,
        video_id: int,
        has_ads: bool,
        ad_url: Optional[str] = None,
        ad_start_time: Optional[int] = None,
        ad_skippable: bool = True,
    ) -> Optional[Dict[str, Any]]:
        """Store per-video ad metadata. Disabling ads clears url/start time and resets skippable."""
        if has_ads:
            fields = {
                "has_ads": True,
                "ad_url": ad_url or None,
                "ad_start_time": ad_start_time,
                "ad_skippable": ad_skippable,
            }
        else:
            fields = {"has_ads": False, "ad_url": None, "ad_start_time": None, "ad_skippable": True}
        return await self.update_video(video_id, fields)

    async def increment_views(self, video_id: int) -> Optional[int]:
        """Add one view. Returns the new count, or None when the video doesn't exist."""
        await db_execute_with_retry(
            self.db, videos.update().where(videos.c.id == video_id).values(views=videos.c.views + 1)
        )
        return await fetch_val_with_retry(self.db, sa.select(videos.c.views).where(videos.c.id == video_id))

    async def delete_video(self, video_id: int) -> Optional[Dict[str, Any]]:
        """Delete a video and its history, reactions and comments. Returns the deleted video, or None."""
        async with self.db.transaction():
            video = row_to_dict(await self.db.fetch_one(videos.select().where(videos.c.id == video_id)), "videos")
            if video is None:
                return None
            await self.db.execute(video_history.delete().where(video_history.c.video_id == video_id))
            await self.db.execute(liked_videos.delete().where(liked_videos.c.video_id == video_id))
            await self.db.execute(comments.delete().where(comments.c.video_id == video_id))
            await self.db.execute(videos.delete().where(videos.c.id == video_id))
        return video

    # ============ Reactions ============

    async def get_reaction(self, user_id: int, video_id: int) -> Optional[str]:
        query = sa.select(liked_videos.c.reaction).where(
            sa.and_(liked_videos.c.user_id == user_id, liked_videos.c.video_id == video_id)
        )
        return await fetch_val_with_retry(self.db, query)

    async def toggle_reaction(self, user_id: int, video_id: int, reaction: Reaction) -> Optional[Dict[str, Any]]:
        """
        Apply a like/dislike toggle for one user.

        - no reaction yet: add it, counter + 1
        - same reaction again: remove it, counter - 1
        - opposite reaction: switch it, move one count across

        Returns the new counters and the user's state, or None if the video
        doesn't exist.
        """
        counter = {Reaction.LIKE: videos.c.likes, Reaction.DISLIKE: videos.c.dislikes}
        other = Reaction.DISLIKE if reaction == Reaction.LIKE else Reaction.LIKE

        async with self.db.transaction():
            exists = await self.db.fetch_val(sa.select(videos.c.id).where(videos.c.id == video_id))
            if exists is None:
                return None

            existing = await self.db.fetch_one(
                liked_videos.select().where(
                    sa.and_(liked_videos.c.user_id == user_id, liked_videos.c.video_id == video_id)
                )
            )
            if existing is None:
                await self.db.execute(
                    liked_videos.insert().values(
                        user_id=user_id,
                        video_id=video_id,
                        reaction=reaction.value,
                        created_at=utcnow(),
                    )
                )
                counter_values = {counter[reaction].key: counter[reaction] + 1}
                current = reaction.value
            elif existing["reaction"] == reaction.value:
                await self.db.execute(liked_videos.delete().where(liked_videos.c.id == existing["id"]))
                counter_values = {counter[reaction].key: _decrement(counter[reaction])}
                current = None
            else:
                await self.db.execute(
                    liked_videos.update()
                    .where(liked_videos.c.id == existing["id"])
                    .values(reaction=reaction.value, created_at=utcnow())
                )
                counter_values = {
                    counter[reaction].key: counter[reaction] + 1,
                    counter[other].key: _decrement(counter[other]),
                }
                current = reaction.value

            await self.db.execute(videos.update().where(videos.c.id == video_id).values(**counter_values))
            counts = await self.db.fetch_one(
                sa.select(videos.c.likes, videos.c.dislikes).where(videos.c.id == video_id)
            )

        return {
            "likes": counts["likes"],
            "dislikes": counts["dislikes"],
            "user_liked": current == Reaction.LIKE.value,
            "user_disliked": current == Reaction.DISLIKE.value,
        }

    async def list_liked_videos(self, user_id: int) -> List[Dict[str, Any]]:
        """A user's likes, newest first, each with the video and its creator."""
        likes = await self._fetch_all(
            liked_videos.select()
            .where(sa.and_(liked_videos.c.user_id == user_id, liked_videos.c.reaction == Reaction.LIKE.value))
            .order_by(liked_videos.c.created_at.desc(), liked_videos.c.id.desc())
        )
        return await self._attach_videos(likes)

    async def _attach_videos(self, entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        videos_by_id = await self.get_videos_by_ids(entry["video_id"] for entry in entries)
        await self.attach_creators(list(videos_by_id.values()))
        for entry in entries:
            entry["video"] = videos_by_id.get(entry["video_id"])
        return entries

    # ============ History ============

    async def add_history(self, user_id: int, video_id: int) -> None:
        await db_execute_with_retry(
            self.db,
            video_history.insert().values(user_id=user_id, video_id=video_id, watched_at=utcnow()),
        )

    async def list_history(self, user_id: int, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Watch events newest first, each with the video and its creator."""
        query = (
            video_history.select()
            .where(video_history.c.user_id == user_id)
            .order_by(video_history.c.watched_at.desc(), video_history.c.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return await self._attach_videos(await self._fetch_all(query))

    async def list_interacted_video_ids(self, user_id: int) -> Tuple[List[int], List[int]]:
        """(watched video ids, liked video ids) for a user."""
        watched = await fetch_all_with_retry(
            self.db, sa.select(video_history.c.video_id).where(video_history.c.user_id == user_id).distinct()
        )
        liked = await fetch_all_with_retry(
            self.db,
            sa.select(liked_videos.c.video_id).where(
                sa.and_(liked_videos.c.user_id == user_id, liked_videos.c.reaction == Reaction.LIKE.value)
            ),
        )
        return [row["video_id"] for row in watched], [row["video_id"] for row in liked]

    # ============ Comments ============

    async def list_comments(self, video_id: int) -> List[Dict[str, Any]]:
        """Comments on a video, newest first, each with its author."""
        rows = await self._fetch_all(
            comments.select()
            .where(comments.c.video_id == video_id)
            .order_by(comments.c.created_at.desc(), comments.c.id.desc())
        )
        authors = await self.get_users_by_ids(row["user_id"] for row in rows)
        for row in rows:
            row["user"] = creator_summary(authors.get(row["user_id"]))
        return rows

    async def create_comment(self, video_id: int, user_id: int, content: str) -> Dict[str, Any]:
        comment_id = await db_execute_with_retry(
            self.db,
            comments.insert().values(
                video_id=video_id,
                user_id=user_id,
                content=content,
                likes=0,
                created_at=utcnow(),
            ),
        )
        return await self._fetch_one(comments.select().where(comments.c.id == comment_id))

    # ============ Site Settings ============

    def _default_site_settings(self) -> Dict[str, Any]:
        return {
            "id": SITE_SETTINGS_ID,
            "site_ads_enabled": False,
            "site_ad_urls": encode_list([]),
            "site_ad_positions": encode_list([]),
            "intro_video_enabled": False,
            "intro_video_url": None,
            "intro_video_duration": 0,
            "updated_at": utcnow(),
        }

    async def get_site_settings(self) -> Optional[Dict[str, Any]]:
        return await self._fetch_one(
            site_settings.select().where(site_settings.c.id == SITE_SETTINGS_ID), "site_settings"
        )

    async def ensure_site_settings(self) -> Dict[str, Any]:
        """Create the singleton settings row when it is missing."""
        settings = await self.get_site_settings()
        if settings is None:
            await db_execute_with_retry(self.db, site_settings.insert().values(**self._default_site_settings()))
            logger.info("Created default site settings")
            settings = await self.get_site_settings()
        return settings

    async def update_site_settings(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Merge `fields` into the singleton row (creating it if needed) and bump updated_at."""
        await self.ensure_site_settings()
        values = dict(fields)
        for column in LIST_COLUMNS["site_settings"]:
            if column in values:
                values[column] = encode_list(values[column])
        values["updated_at"] = utcnow()
        await db_execute_with_retry(
            self.db, site_settings.update().where(site_settings.c.id == SITE_SETTINGS_ID).values(**values)
        )
        return await self.get_site_settings()

    # ============ Sessions ============

    async def create_session(
        self,
        user_id: int,
        session_token: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        now = utcnow()
        await db_execute_with_retry(
            self.db,
            user_sessions.insert().values(
                session_token=session_token,
                user_id=user_id,
                created_at=now,
                expires_at=expires_at,
                last_used_at=now,
                ip_address=ip_address,
                user_agent=user_agent[:512] if user_agent else None,
            ),
        )

    async def get_session(self, session_token: str) -> Optional[Dict[str, Any]]:
        return await self._fetch_one(user_sessions.select().where(user_sessions.c.session_token == session_token))

    async def touch_session(self, session_id: int) -> None:
        await db_execute_with_retry(
            self.db,
            user_sessions.update().where(user_sessions.c.id == session_id).values(last_used_at=utcnow()),
        )

    async def delete_session(self, session_token: str) -> None:
        await db_execute_with_retry(
            self.db, user_sessions.delete().where(user_sessions.c.session_token == session_token)
        )

    async def delete_sessions_for_user(self, user_id: int) -> int:
        """Revoke every session of a user. Returns how many were removed."""
        count = await fetch_val_with_retry(
            self.db,
            sa.select(sa.func.count()).select_from(user_sessions).where(user_sessions.c.user_id == user_id),
        )
        await db_execute_with_retry(self.db, user_sessions.delete().where(user_sessions.c.user_id == user_id))
        return int(count or 0)

    async def delete_expired_sessions(self) -> int:
        now = utcnow()
        count = await fetch_val_with_retry(
            self.db,
            sa.select(sa.func.count()).select_from(user_sessions).where(user_sessions.c.expires_at < now),
        )
        if count:
            await db_execute_with_retry(self.db, user_sessions.delete().where(user_sessions.c.expires_at < now))
        return int(count or 0)

    # ============ Email verification ============

    async def get_email_verification(self, email: str) -> Optional[Dict[str, Any]]:
        return await self._fetch_one(
            email_verifications.select().where(email_verifications.c.email == email.lower())
        )

    async def replace_email_verification(self, email: str, code_hash: str, expires_at: datetime) -> None:
        """Store a fresh code for `email`, discarding any earlier one."""
        email = email.lower()
        async with self.db.transaction():
            await self.db.execute(email_verifications.delete().where(email_verifications.c.email == email))
            await self.db.execute(
                email_verifications.insert().values(
                    email=email,
                    code_hash=code_hash,
                    attempts=0,
                    created_at=utcnow(),
                    expires_at=expires_at,
                    verified_at=None,
                )
            )

    async def record_verification_attempt(self, verification_id: int) -> None:
        await db_execute_with_retry(
            self.db,
            email_verifications.update()
            .where(email_verifications.c.id == verification_id)
            .values(attempts=email_verifications.c.attempts + 1),
        )

    async def mark_email_verified(self, verification_id: int) -> None:
        await db_execute_with_retry(
            self.db,
            email_verifications.update()
            .where(email_verifications.c.id == verification_id)
            .values(verified_at=utcnow()),
        )

    async def delete_email_verification(self, email: str) -> None:
        await db_execute_with_retry(
            self.db, email_verifications.delete().where(email_verifications.c.email == email.lower())
        )

    async def delete_expired_email_verifications(self) -> int:
        now = utcnow()
        count = await fetch_val_with_retry(
            self.db,
            sa.select(sa.func.count())
            .select_from(email_verifications)
            .where(email_verifications.c.expires_at < now),
        )
        if count:
            await db_execute_with_retry(
                self.db, email_verifications.delete().where(email_verifications.c.expires_at < now)
            )
        return int(count or 0)

    # ============ Reports ============

    async def create_report(self, reported_by: int, data: Dict[str, Any]) -> Dict[str, Any]:
        report_id = await db_execute_with_retry(
            self.db,
            reports.insert().values(
                report_type=ReportType(data["report_type"]).value,
                content_id=data["content_id"],
                reported_by=reported_by,
                reason=data["reason"],
                details=data.get("details"),
                status=ReportStatus.PENDING.value,
                created_at=utcnow(),
            ),
        )
        return await self.get_report(report_id)

    async def get_report(self, report_id: int) -> Optional[Dict[str, Any]]:
        return await self._fetch_one(reports.select().where(reports.c.id == report_id))

    async def list_reports(self, status: Optional[ReportStatus] = None) -> List[Dict[str, Any]]:
        query = reports.select()
        if status is not None:
            query = query.where(reports.c.status == status.value)
        return await self._fetch_all(query.order_by(reports.c.created_at.desc(), reports.c.id.desc()))

    async def resolve_report(self, report_id: int) -> Optional[Dict[str, Any]]:
        await db_execute_with_retry(
            self.db,
            reports.update()
            .where(reports.c.id == report_id)
            .values(status=ReportStatus.RESOLVED.value, resolved_at=utcnow()),
        )
        return await self.get_report(report_id)

    # ============ Contact ============

    async def create_contact_message(self, data: Dict[str, Any]) -> Dict[str, Any]:
        message_id = await db_execute_with_retry(
            self.db,
            contact_messages.insert().values(
                name=data["name"],
                email=data["email"],
                subject=data["subject"],
                message=data["message"],
                created_at=utcnow(),
            ),
        )
        return await self._fetch_one(contact_messages.select().where(contact_messages.c.id == message_id))

    # ============ Maintenance ============

    async def scan_table(self, table_name: str, limit: int = 10) -> Tuple[int, List[Dict[str, Any]]]:
        """
        Table-scan diagnostic: (total row count, first `limit` rows).

        Secrets are redacted. Raises ValueError for an unknown table.
        """
        table = metadata.tables.get(table_name)
        if table is None:
            known = ", ".join(sorted(metadata.tables))
            raise ValueError(f"Unknown table '{table_name}'. Known tables: {known}")

        count = await fetch_val_with_retry(self.db, sa.select(sa.func.count()).select_from(table))
        order_column = table.c.id if "id" in table.c else None
        query = table.select().limit(limit)
        if order_column is not None:
            query = query.order_by(order_column)
        rows = await self._fetch_all(query, table_name)
        for row in rows:
            for column in REDACTED_COLUMNS:
                if row.get(column):
                    row[column] = "***"
        return int(count or 0), rows

    async def reset_database(self, seed_admin: Optional[Dict[str, Any]] = None) -> bool:
        """
        Delete every row of every table and re-seed defaults.

        Destructive, for development use. Re-creates the singleton site
        settings and, when `seed_admin` is given (a user dict with a hashed
        password), an admin account. Returns True on success, False on failure.
        """
        try:
            async with self.db.transaction():
                for table in TABLES_IN_DELETE_ORDER:
                    await self.db.execute(table.delete())
                await self.db.execute(site_settings.insert().values(**self._default_site_settings()))
                if seed_admin:
                    await self.db.execute(
                        users.insert().values(
                            username=seed_admin["username"],
                            email=seed_admin["email"].lower(),
                            password=seed_admin["password"],
                            display_name=seed_admin.get("display_name"),
                            is_admin=True,
                            is_banned=False,
                            is_verified=True,
                            subscriber_count=0,
                            created_at=utcnow(),
                        )
                    )
        except Exception as e:
            logger.error(f"Database reset failed: {e}")
            return False

        logger.warning("Database reset: all tables emptied and defaults re-seeded")
        return True
