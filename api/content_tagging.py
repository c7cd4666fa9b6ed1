"""
Keyword-based content tagging for uploads.

Looks at the title, description and tags of a new video and suggests
categories, extra tags and whether it reads like a quickie. No external
service is involved; the rules are word-boundary regexes over the
lowercased text, so "class" never matches "ass" and "clipboard" never
matches "clip".
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Pattern

from config import QUICKIE_MAX_DURATION

CONTENT_TYPE_STANDARD = "standard"
CONTENT_TYPE_QUICKIE = "quickie"

# Duration buckets in seconds, checked in order
DURATION_BUCKETS = (
    (60, "minute"),
    (300, "short"),
    (1200, "medium"),
)
DURATION_LONG = "long"
DURATION_UNKNOWN = "unknown"


def _words(*words: str) -> str:
    return r"\b(?:" + "|".join(words) + r")\b"


# Category -> patterns. Order here is the order categories are reported in.
CATEGORY_PATTERNS: Dict[str, List[str]] = {
    "teen": [_words("teen", "teenage", "young", "college", "university", "freshman"), r"\b(?:18|19)[- ]year[- ]old\b"],
    "milf": [_words("milf", "mother", "mom", "mature", "cougar", "housewife")],
    "stepmom": [r"\bstep[- ]?(?:mom|mother)\b"],
    "ebony": [_words("ebony", "black", "african")],
    "asian": [_words("asian", "japanese", "korean", "chinese", "thai", "filipina")],
    "indian": [_words("indian", "desi", "punjabi", "bengali", "hindi")],
    "amateur": [_words("amateur", "homemade", "personal"), r"\bself(?:ie| shot)\b", r"\bhome video\b"],
    "professional": [_words("professional", "studio", "production", "premium", "hd", "4k"), r"\bhigh quality\b"],
    "verified": [_words("verified", "official", "original", "authentic", "star", "pornstar", "model")],
    "anal": [_words("anal", "ass", "butt", "backdoor")],
    "threesome": [_words("threesome", "trio", "3way", "3some", "mmf", "ffm", "mfm"), r"\bthree[- ]way\b"],
    "lesbian": [_words("lesbian", "gg"), r"\bgirl[- ]on[- ]girl\b", r"\b(?:female|women) only\b"],
    "cheating": [_words("cheating", "cheat", "affair", "unfaithful", "cuck", "cuckold", "boyfriend", "husband")],
    "couples": [_words("couple", "couples", "boyfriend", "girlfriend", "bf", "gf", "husband", "wife")],
    "solo": [_words("solo", "alone", "dildo", "toy"), r"\bmasturbat(?:e|ing|ion)\b", r"\bself[- ]pleasure\b"],
}

QUICKIE_PATTERNS: List[str] = [
    _words("quick", "short", "fast", "tease", "teaser", "preview", "trailer", "clip", "snippet"),
]


def _compile(patterns: Iterable[str]) -> List[Pattern]:
    return [re.compile(pattern) for pattern in patterns]


_CATEGORY_REGEXES = {category: _compile(patterns) for category, patterns in CATEGORY_PATTERNS.items()}
_QUICKIE_REGEXES = _compile(QUICKIE_PATTERNS)


@dataclass
class TaggingResult:
    categories: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    content_type: str = CONTENT_TYPE_STANDARD
    duration_category: str = DURATION_UNKNOWN

    @property
    def is_quickie(self) -> bool:
        return self.content_type == CONTENT_TYPE_QUICKIE


def _matches(regexes: List[Pattern], text: str) -> bool:
    return any(regex.search(text) for regex in regexes)


def _merge(existing: List[str], extra: Iterable[str]) -> List[str]:
    """existing plus the extra values it lacks, compared case-insensitively."""
    merged = list(existing)
    seen = {value.lower() for value in existing}
    for value in extra:
        if value.lower() not in seen:
            merged.append(value)
            seen.add(value.lower())
    return merged


def detect_categories(text: str) -> List[str]:
    text = text.lower()
    return [category for category, regexes in _CATEGORY_REGEXES.items() if _matches(regexes, text)]


def duration_category(duration: Optional[int]) -> str:
    if duration is None:
        return DURATION_UNKNOWN
    for limit, name in DURATION_BUCKETS:
        if duration <= limit:
            return name
    return DURATION_LONG


def content_type(text: str, duration: Optional[int], is_quickie: bool) -> str:
    """
    quickie when flagged, when short enough, or (length unknown) when the text says so.

    A known duration over the quickie limit is never a quickie, whatever
    the title says.
    """
    if is_quickie:
        return CONTENT_TYPE_QUICKIE
    if duration is not None:
        return CONTENT_TYPE_QUICKIE if duration <= QUICKIE_MAX_DURATION else CONTENT_TYPE_STANDARD
    if _matches(_QUICKIE_REGEXES, text.lower()):
        return CONTENT_TYPE_QUICKIE
    return CONTENT_TYPE_STANDARD


def tag_content(
    title: str,
    description: Optional[str] = None,
    tags: Optional[List[str]] = None,
    categories: Optional[List[str]] = None,
    duration: Optional[int] = None,
    is_quickie: bool = False,
) -> TaggingResult:
    """
    Suggest categories, tags and content type for a video.

    Categories and tags the uploader chose are kept in their order; detected
    categories are appended to both lists when missing.
    """
    tags = list(tags or [])
    categories = list(categories or [])
    text = " ".join([title, description or "", *tags])

    detected = detect_categories(text)
    return TaggingResult(
        categories=_merge(categories, detected),
        tags=_merge(tags, detected),
        content_type=content_type(text, duration, is_quickie),
        duration_category=duration_category(duration),
    )
