"""
Query cache for list and detail pages.

Each query is identified by a key tuple such as ("videos", "recent") or
("video", 42). A cached entry is in exactly one state: loading, empty,
success or error. Mutations declare the keys they invalidate; invalidated
entries are fetched again with the fetcher that produced them.

Invalidation matches by prefix, so ("users", 3) also invalidates
("users", 3, "liked-videos").
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from client.http_client import XPlayAPIError, XPlayClient

logger = logging.getLogger(__name__)

QueryKey = Tuple[Any, ...]
Fetcher = Callable[[], Awaitable[Any]]


class QueryStatus(str, Enum):
    LOADING = "loading"
    EMPTY = "empty"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class QueryState:
    """Cached result of one query."""

    key: QueryKey
    status: QueryStatus = QueryStatus.LOADING
    data: Any = None
    error: Optional[str] = None
    stale: bool = False


def _is_empty(data: Any) -> bool:
    return data is None or (isinstance(data, (list, tuple, dict)) and len(data) == 0)


def _key_matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    """Keyed cache of fetch results with explicit loading/empty/success/error states."""

    def __init__(self):
        self._entries: Dict[QueryKey, QueryState] = {}
        self._fetchers: Dict[QueryKey, Fetcher] = {}

    def get(self, key: QueryKey) -> Optional[QueryState]:
        return self._entries.get(tuple(key))

    def keys(self) -> List[QueryKey]:
        return list(self._entries)

    async def fetch(self, key: QueryKey, fetcher: Fetcher, force: bool = False) -> QueryState:
        """
        Return the cached state for `key`, fetching when missing, stale or forced.

        API errors become an error state rather than an exception. Other
        exceptions propagate.
        """
        key = tuple(key)
        self._fetchers[key] = fetcher
        state = self._entries.get(key)
        if state is not None and not state.stale and not force and state.status != QueryStatus.ERROR:
            return state

        state = QueryState(key=key, status=QueryStatus.LOADING)
        self._entries[key] = state
        try:
            data = await fetcher()
        except XPlayAPIError as e:
            logger.debug(f"Query {key} failed: {e}")
            state.status = QueryStatus.ERROR
            state.error = e.user_message
            return state

        state.data = data
        state.status = QueryStatus.EMPTY if _is_empty(data) else QueryStatus.SUCCESS
        return state

    def invalidate(self, *prefixes: QueryKey) -> List[QueryKey]:
        """Mark every entry under the given key prefixes stale. Returns the matched keys."""
        matched = []
        for key, state in self._entries.items():
            if any(_key_matches(key, tuple(prefix)) for prefix in prefixes):
                state.stale = True
                matched.append(key)
        return matched

    async def refetch(self, *prefixes: QueryKey) -> List[QueryState]:
        """Invalidate the prefixes and fetch the matched entries again."""
        states = []
        for key in self.invalidate(*prefixes):
            fetcher = self._fetchers.get(key)
            if fetcher is not None:
                states.append(await self.fetch(key, fetcher, force=True))
        return states

    async def mutate(self, mutation: Fetcher, invalidates: Iterable[QueryKey] = ()) -> Any:
        """
        Run a mutation, then refetch the queries it invalidates.

        Nothing is invalidated when the mutation raises.
        """
        result = await mutation()
        invalidates = [tuple(key) for key in invalidates]
        if invalidates:
            await self.refetch(*invalidates)
        return result

    def clear(self):
        self._entries.clear()
        self._fetchers.clear()


class XPlayQueries:
    """
    Page-level queries and mutations over an XPlayClient.

    Query methods return a QueryState. Mutation methods return the API
    response and refetch the keys they list.
    """

    def __init__(self, client: XPlayClient, cache: Optional[QueryCache] = None):
        self.client = client
        self.cache = cache or QueryCache()

    # ============ Queries ============

    async def recent_videos(self) -> QueryState:
        return await self.cache.fetch(("videos", "recent"), self.client.recent_videos)

    async def trending_videos(self) -> QueryState:
        return await self.cache.fetch(("videos", "trending"), self.client.trending_videos)

    async def quickie_videos(self) -> QueryState:
        return await self.cache.fetch(("videos", "quickies"), self.client.quickie_videos)

    async def video(self, video_id: int) -> QueryState:
        return await self.cache.fetch(("video", video_id), lambda: self.client.get_video(video_id))

    async def comments(self, video_id: int) -> QueryState:
        return await self.cache.fetch(("video", video_id, "comments"), lambda: self.client.list_comments(video_id))

    async def channel(self, channel_id: int) -> QueryState:
        return await self.cache.fetch(("channel", channel_id), lambda: self.client.get_channel(channel_id))

    async def my_channels(self) -> QueryState:
        return await self.cache.fetch(("channels", "user"), self.client.my_channels)

    async def subscriptions(self, user_id: int) -> QueryState:
        return await self.cache.fetch(
            ("users", user_id, "subscriptions"), lambda: self.client.user_subscriptions(user_id)
        )

    async def liked_videos(self, user_id: int) -> QueryState:
        return await self.cache.fetch(
            ("users", user_id, "liked-videos"), lambda: self.client.user_liked_videos(user_id)
        )

    async def history(self, user_id: int) -> QueryState:
        return await self.cache.fetch(("users", user_id, "history"), lambda: self.client.user_history(user_id))

    async def dashboard_stats(self) -> QueryState:
        return await self.cache.fetch(("dashboard", "stats"), self.client.dashboard_stats)

    async def discover(self) -> QueryState:
        return await self.cache.fetch(("discover",), self.client.discover)

    async def admin_users(self) -> QueryState:
        return await self.cache.fetch(("admin", "users"), self.client.admin_users)

    async def admin_videos(self) -> QueryState:
        return await self.cache.fetch(("admin", "videos"), self.client.admin_videos)

    async def site_settings(self) -> QueryState:
        return await self.cache.fetch(("admin", "site-settings"), self.client.get_site_settings)

    # ============ Mutations ============

    async def like_video(self, video_id: int, user_id: int) -> dict:
        return await self.cache.mutate(
            lambda: self.client.like_video(video_id),
            invalidates=[("video", video_id), ("users", user_id, "liked-videos")],
        )

    async def dislike_video(self, video_id: int, user_id: int) -> dict:
        return await self.cache.mutate(
            lambda: self.client.dislike_video(video_id),
            invalidates=[("video", video_id), ("users", user_id, "liked-videos")],
        )

    async def add_comment(self, video_id: int, content: str) -> dict:
        return await self.cache.mutate(
            lambda: self.client.add_comment(video_id, content),
            invalidates=[("video", video_id, "comments")],
        )

    async def subscribe(self, channel_id: int, user_id: int) -> dict:
        return await self.cache.mutate(
            lambda: self.client.subscribe(channel_id),
            invalidates=[("channel", channel_id), ("users", user_id, "subscriptions")],
        )

    async def unsubscribe(self, channel_id: int, user_id: int) -> dict:
        return await self.cache.mutate(
            lambda: self.client.unsubscribe(channel_id),
            invalidates=[("channel", channel_id), ("users", user_id, "subscriptions")],
        )

    async def create_channel(self, name: str, description: Optional[str] = None) -> dict:
        return await self.cache.mutate(
            lambda: self.client.create_channel(name, description),
            invalidates=[("channels", "user")],
        )

    async def update_video(self, video_id: int, **fields) -> dict:
        return await self.cache.mutate(
            lambda: self.client.update_video(video_id, **fields),
            invalidates=[("video", video_id), ("videos",), ("admin", "videos")],
        )

    async def delete_video(self, video_id: int) -> dict:
        return await self.cache.mutate(
            lambda: self.client.delete_video(video_id),
            invalidates=[("videos",), ("admin", "videos"), ("dashboard",)],
        )

    async def admin_user_action(self, user_id: int, action: str) -> dict:
        return await self.cache.mutate(
            lambda: self.client.admin_user_action(user_id, action),
            invalidates=[("admin", "users")],
        )

    async def update_site_settings(self, **fields) -> dict:
        return await self.cache.mutate(
            lambda: self.client.update_site_settings(**fields),
            invalidates=[("admin", "site-settings")],
        )
