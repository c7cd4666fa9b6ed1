"""
Content recommendations.

Two small scoring heuristics over tags and categories:

- related videos for the watch page (overlap with the current video)
- the personalized discover feed (overlap with what the user watched or liked,
  plus freshness and popularity boosts)
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from api.common import ensure_utc

TAG_WEIGHT = 1
CATEGORY_WEIGHT = 2

# Discover boosts
NEW_VIDEO_DAYS = 7
NEW_VIDEO_BOOST = 3
RECENT_VIDEO_DAYS = 30
RECENT_VIDEO_BOOST = 1
POPULAR_VIEWS_THRESHOLD = 100
POPULAR_BOOST = 2

# How many recent videos are considered as candidates
CANDIDATE_POOL_SIZE = 50


def overlap_score(tags: Iterable[str], categories: Iterable[str], wanted_tags: Set[str], wanted_categories: Set[str]) -> int:
    """+1 per matching tag, +2 per matching category."""
    score = sum(TAG_WEIGHT for tag in tags if tag in wanted_tags)
    score += sum(CATEGORY_WEIGHT for category in categories if category in wanted_categories)
    return score


def related_video_ids(
    video: Dict[str, Any],
    candidates: List[Dict[str, Any]],
    limit: int,
) -> List[int]:
    """
    Ids of the candidates most related to `video`, best first.

    Only candidates sharing at least one tag or category are returned; the
    video itself is excluded. Ties keep candidate order.
    """
    wanted_tags = set(video.get("tags") or [])
    wanted_categories = set(video.get("categories") or [])
    if not wanted_tags and not wanted_categories:
        return []

    scored: List[Tuple[int, int]] = []
    for candidate in candidates:
        if candidate["id"] == video["id"]:
            continue
        score = overlap_score(
            candidate.get("tags") or [],
            candidate.get("categories") or [],
            wanted_tags,
            wanted_categories,
        )
        if score > 0:
            scored.append((score, candidate["id"]))

    # sorted() is stable, so equal scores stay in candidate order
    scored = sorted(scored, key=lambda item: item[0], reverse=True)
    return [video_id for _, video_id in scored[:limit]]


def collect_interests(interacted: Iterable[Dict[str, Any]]) -> Tuple[Set[str], Set[str]]:
    """Union of tags and categories of the videos a user watched or liked."""
    tags: Set[str] = set()
    categories: Set[str] = set()
    for video in interacted:
        tags.update(video.get("tags") or [])
        categories.update(video.get("categories") or [])
    return tags, categories


def discover_score(
    video: Dict[str, Any],
    wanted_tags: Set[str],
    wanted_categories: Set[str],
    now: Optional[datetime] = None,
) -> int:
    """Interest overlap plus freshness and popularity boosts."""
    now = now or datetime.now(timezone.utc)
    score = overlap_score(
        video.get("tags") or [],
        video.get("categories") or [],
        wanted_tags,
        wanted_categories,
    )

    created_at = ensure_utc(video.get("created_at"))
    if created_at is not None:
        age_days = (now - created_at).total_seconds() / 86400
        if age_days < NEW_VIDEO_DAYS:
            score += NEW_VIDEO_BOOST
        elif age_days < RECENT_VIDEO_DAYS:
            score += RECENT_VIDEO_BOOST

    if (video.get("views") or 0) > POPULAR_VIEWS_THRESHOLD:
        score += POPULAR_BOOST

    return score


def rank_discover(
    candidates: List[Dict[str, Any]],
    interacted: Iterable[Dict[str, Any]],
    watched_ids: Iterable[int],
    limit: int,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Personalized feed: candidates scored against the user's interests.

    Already-watched videos are skipped and only positive scores are kept.
    Each returned video dict is a copy with a `score` key, best first.
    """
    wanted_tags, wanted_categories = collect_interests(interacted)
    watched = set(watched_ids)

    scored = []
    for video in candidates:
        if video["id"] in watched:
            continue
        score = discover_score(video, wanted_tags, wanted_categories, now)
        if score > 0:
            scored.append(dict(video, score=score))

    scored = sorted(scored, key=lambda item: item["score"], reverse=True)
    return scored[:limit]
