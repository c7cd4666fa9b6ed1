import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, EmailStr, Field, ValidationInfo, field_validator, model_validator
from pydantic_core import PydanticCustomError

from api.enums import AdPosition, Reaction, ReportStatus, ReportType
from config import (
    MAX_COMMENT_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_TITLE_LENGTH,
    QUICKIE_MAX_DURATION,
)

# Multipart values that count as booleans
FORM_TRUE_VALUES = ("true", "1", "yes", "on")
FORM_FALSE_VALUES = ("false", "0", "no", "off")


# ============ Tag / Category Parsing ============
#
# Clients send tags and categories in several shapes:
#   tags:       "a, b, c" (form field) or ["a", "b"] (JSON body)
#   categories: '["a", "b"]' (JSON string in a form field), "a, b", or ["a", "b"]
# Both parsers normalize to one canonical list of trimmed, non-empty strings,
# keeping the original order. They never raise on malformed input.


def _clean_items(items: Iterable[Any]) -> List[str]:
    result = []
    for item in items:
        if item is None:
            continue
        text = str(item).strip()
        if text:
            result.append(text)
    return result


def _split_commas(value: str) -> List[str]:
    return _clean_items(value.split(","))


def parse_tag_input(value: Any) -> List[str]:
    """Normalize a comma-separated string or a list of strings to a tag list."""
    if value is None:
        return []
    if isinstance(value, str):
        return _split_commas(value)
    if isinstance(value, (list, tuple)):
        return _clean_items(value)
    raise PydanticCustomError("tag_input", "Tags must be a string or a list of strings")


def parse_category_input(value: Any) -> List[str]:
    """
    Normalize categories from a JSON list string, a comma-separated string, or a list.

    Malformed JSON falls back to splitting on commas.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return _clean_items(value)
    if not isinstance(value, str):
        raise PydanticCustomError("category_input", "Categories must be a string or a list of strings")

    stripped = value.strip()
    if stripped.startswith("["):
        try:
            decoded = json.loads(stripped)
        except ValueError:
            decoded = None
        if isinstance(decoded, list):
            return _clean_items(decoded)
    return _split_commas(stripped)


def encode_list(values: Optional[List[str]]) -> str:
    """Encode a string list for storage in a text column."""
    return json.dumps(list(values or []))


def decode_list(raw: Optional[str]) -> List[str]:
    """Decode a stored list column. Legacy comma-separated values are accepted."""
    if not raw:
        return []
    return parse_category_input(raw)


# ============ Multipart Coercion ============


def coerce_form_bool(value: Any) -> Any:
    """Turn "true"/"false" form strings into booleans. Other values pass through."""
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in FORM_TRUE_VALUES:
            return True
        if lowered in FORM_FALSE_VALUES:
            return False
    return value


def coerce_form_int(value: Any) -> Any:
    """Turn numeric form strings into ints. Non-numeric strings pass through for validation to reject."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped == "":
            return None
        try:
            return int(stripped)
        except ValueError:
            return value
    return value


def coerce_form_fields(
    data: Dict[str, Any],
    bool_fields: Iterable[str] = (),
    int_fields: Iterable[str] = (),
) -> Dict[str, Any]:
    """
    Apply multipart coercion to a dict of raw form values.

    Keys whose value is None are dropped so model defaults apply.
    """
    result = {key: value for key, value in data.items() if value is not None}
    for key in bool_fields:
        if key in result:
            result[key] = coerce_form_bool(result[key])
    for key in int_fields:
        if key in result:
            result[key] = coerce_form_int(result[key])
            if result[key] is None:
                del result[key]
    return result


# ============ Auth / Users ============


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    display_name: Optional[str] = Field(default=None, max_length=100)
    profile_image: Optional[str] = Field(default=None, max_length=512)
    bio: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise PydanticCustomError("string_too_short", "Username must be at least 3 characters")
        return v

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class RegisterRequest(UserCreate):
    confirm_password: str = Field(..., min_length=6, max_length=128)

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v: str, info: ValidationInfo) -> str:
        # password is absent from info.data when it failed its own validation
        password = info.data.get("password")
        if password is not None and v != password:
            raise PydanticCustomError("password_mismatch", "Passwords do not match")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class SendVerificationRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class VerifyEmailRequest(SendVerificationRequest):
    code: str = Field(..., pattern=r"^\s*\d{6}\s*$")


class VerifyEmailResponse(BaseModel):
    message: str = "Email verified successfully"
    verified: bool = True


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    display_name: Optional[str] = Field(default=None, max_length=100)
    bio: Optional[str] = Field(default=None, max_length=1000)


class CreatorSummary(BaseModel):
    id: int
    username: str
    display_name: Optional[str] = None
    profile_image: Optional[str] = None


class CreatorDetail(CreatorSummary):
    subscriber_count: int = 0


class RegisterResponse(BaseModel):
    id: int
    username: str
    email: str
    display_name: Optional[str] = None


class UserResponse(BaseModel):
    """A user as the API exposes it. Never carries the password hash."""

    id: int
    username: str
    email: str
    display_name: Optional[str] = None
    profile_image: Optional[str] = None
    bio: Optional[str] = None
    is_admin: bool = False
    is_banned: bool = False
    is_verified: bool = False
    subscriber_count: int = 0
    created_at: Optional[datetime] = None


class AdminUserActionResponse(UserResponse):
    message: str


# ============ Channels ============


class ChannelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    banner_image: Optional[str] = Field(default=None, max_length=512)


class ChannelUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    banner_image: Optional[str] = Field(default=None, max_length=512)


class ChannelResponse(BaseModel):
    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    banner_image: Optional[str] = None
    created_at: Optional[datetime] = None


class ChannelDetailResponse(ChannelResponse):
    is_user_subscribed: bool = False
    user: Optional[CreatorDetail] = None


class SubscribedChannel(ChannelResponse):
    owner: Optional[CreatorSummary] = None


class SubscriptionResponse(BaseModel):
    id: int
    subscriber_id: int
    channel_id: int
    created_at: Optional[datetime] = None
    channel: Optional[SubscribedChannel] = None


class SubscriptionStateResponse(BaseModel):
    success: bool = True
    message: str
    is_user_subscribed: bool


# ============ Videos ============


def _strip_title(v: str) -> str:
    v = v.strip()
    if not v:
        raise PydanticCustomError("string_too_short", "Title must not be empty")
    return v


class VideoCreate(BaseModel):
    """
    Metadata for a new video.

    is_quickie is declared before duration so the quickie length check can
    read it and report the error on the duration field.
    """

    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    file_path: str = Field(..., min_length=1, max_length=1024)
    thumbnail_path: Optional[str] = Field(default=None, max_length=1024)
    is_quickie: bool = False
    duration: Optional[int] = Field(default=None, ge=0)
    categories: List[str] = []
    tags: List[str] = []
    is_published: bool = True

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return _strip_title(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        return parse_tag_input(v)

    @field_validator("categories", mode="before")
    @classmethod
    def normalize_categories(cls, v):
        return parse_category_input(v)

    @field_validator("duration")
    @classmethod
    def quickie_duration(cls, v: Optional[int], info: ValidationInfo) -> Optional[int]:
        if v is not None and info.data.get("is_quickie") and v > QUICKIE_MAX_DURATION:
            raise PydanticCustomError(
                "quickie_too_long",
                "Quickies must be {max_duration} seconds or shorter",
                {"max_duration": QUICKIE_MAX_DURATION},
            )
        return v


class AdminVideoCreate(VideoCreate):
    user_id: int = Field(..., ge=1)


class VideoUpdate(BaseModel):
    """Fields an owner may change after upload. Everything else is immutable here."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    is_published: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _strip_title(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        return None if v is None else parse_tag_input(v)

    @field_validator("categories", mode="before")
    @classmethod
    def normalize_categories(cls, v):
        return None if v is None else parse_category_input(v)


class VideoResponse(BaseModel):
    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    file_path: str
    thumbnail_path: Optional[str] = None
    duration: Optional[int] = None
    views: int = 0
    likes: int = 0
    dislikes: int = 0
    categories: List[str] = []
    tags: List[str] = []
    is_published: bool = True
    is_quickie: bool = False
    has_ads: bool = False
    ad_url: Optional[str] = None
    ad_start_time: Optional[int] = None
    ad_skippable: bool = True
    created_at: Optional[datetime] = None
    creator: Optional[CreatorSummary] = None


class IntroVideo(BaseModel):
    enabled: bool
    url: str
    duration: int = 0


class VideoDetailResponse(VideoResponse):
    creator: Optional[CreatorDetail] = None
    related_videos: List[VideoResponse] = []
    intro_video: Optional[IntroVideo] = None
    user_reaction: Optional[Reaction] = None


class VideoUpdateResponse(VideoResponse):
    message: str = "Video updated successfully"


class DiscoverVideoResponse(VideoResponse):
    score: int


class ThumbnailUpdateResponse(BaseModel):
    success: bool = True
    video: VideoResponse
    thumbnail_url: str


class ReactionStateResponse(BaseModel):
    likes: int
    dislikes: int
    user_liked: bool
    user_disliked: bool


class ViewCountResponse(BaseModel):
    views: int


class LikedVideoResponse(BaseModel):
    id: int
    user_id: int
    video_id: int
    reaction: Reaction
    created_at: Optional[datetime] = None
    video: Optional[VideoResponse] = None


class HistoryEntryResponse(BaseModel):
    id: int
    user_id: int
    video_id: int
    watched_at: Optional[datetime] = None
    video: Optional[VideoResponse] = None


class DashboardStats(BaseModel):
    total_videos: int
    total_views: int
    total_likes: int
    subscriber_count: int


# ============ Comments ============


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=MAX_COMMENT_LENGTH)

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise PydanticCustomError("string_too_short", "Comment must not be empty")
        return v


class CommentResponse(BaseModel):
    id: int
    video_id: int
    user_id: int
    content: str
    likes: int = 0
    created_at: Optional[datetime] = None
    user: Optional[CreatorSummary] = None


# ============ Site Settings & Ads ============


def _check_parallel_ad_lists(urls: Optional[List[str]], positions: Optional[List[Any]]) -> None:
    if urls is not None and positions is not None and len(urls) != len(positions):
        raise PydanticCustomError(
            "ad_list_mismatch",
            "site_ad_urls and site_ad_positions must have the same length",
        )


class SiteSettingsUpdate(BaseModel):
    """
    Partial update. Unset fields keep their stored value.

    Only intro_video_url may be cleared with an explicit null; the other
    columns always hold a value.
    """

    site_ads_enabled: Optional[bool] = None
    site_ad_urls: Optional[List[str]] = None
    site_ad_positions: Optional[List[AdPosition]] = None
    intro_video_enabled: Optional[bool] = None
    intro_video_url: Optional[str] = Field(default=None, max_length=1024)
    intro_video_duration: Optional[int] = Field(default=None, ge=0)

    @field_validator(
        "site_ads_enabled",
        "site_ad_urls",
        "site_ad_positions",
        "intro_video_enabled",
        "intro_video_duration",
        mode="before",
    )
    @classmethod
    def reject_null(cls, v, info: ValidationInfo):
        if v is None:
            raise PydanticCustomError("null_not_allowed", "{field} cannot be null", {"field": info.field_name})
        return v

    @model_validator(mode="after")
    def parallel_ad_lists(self):
        _check_parallel_ad_lists(self.site_ad_urls, self.site_ad_positions)
        return self


class SiteAdSettings(BaseModel):
    site_ads_enabled: bool
    site_ad_urls: List[str] = []
    site_ad_positions: List[AdPosition] = []

    @model_validator(mode="after")
    def parallel_ad_lists(self):
        _check_parallel_ad_lists(self.site_ad_urls, self.site_ad_positions)
        return self


class VideoAdSettings(BaseModel):
    has_ads: bool
    ad_url: Optional[str] = Field(default=None, max_length=1024)
    ad_start_time: Optional[int] = Field(default=None, ge=0)
    ad_skippable: bool = True

    @field_validator("ad_start_time", mode="before")
    @classmethod
    def coerce_start_time(cls, v):
        return coerce_form_int(v)


class SiteSettingsResponse(BaseModel):
    id: int
    site_ads_enabled: bool = False
    site_ad_urls: List[str] = []
    site_ad_positions: List[str] = []
    intro_video_enabled: bool = False
    intro_video_url: Optional[str] = None
    intro_video_duration: int = 0
    updated_at: Optional[datetime] = None


class SiteSettingsUpdateResponse(SiteSettingsResponse):
    message: str = "Site settings updated successfully"


class SiteAdSettingsResponse(BaseModel):
    site_ads_enabled: bool
    site_ad_urls: List[str] = []
    site_ad_positions: List[str] = []
    message: Optional[str] = None


class VideoAdSettingsResponse(BaseModel):
    video_id: int
    has_ads: bool
    ad_url: Optional[str] = None
    ad_start_time: Optional[int] = None
    ad_skippable: bool
    message: str


class IntroVideoUploadResponse(BaseModel):
    file_path: str
    duration: int
    message: str = "Intro video uploaded successfully"


# ============ Reports & Contact ============


class ReportCreate(BaseModel):
    report_type: ReportType
    content_id: int = Field(..., ge=1)
    reason: str = Field(..., min_length=1, max_length=255)
    details: Optional[str] = Field(default=None, max_length=2000)


class ReportResponse(BaseModel):
    id: int
    report_type: ReportType
    content_id: int
    reported_by: Optional[int] = None
    reason: str
    details: Optional[str] = None
    status: ReportStatus
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class ReportResolveResponse(BaseModel):
    id: int
    status: ReportStatus
    message: str = "Report marked as resolved successfully"


class ContactRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    subject: str = Field(..., min_length=5, max_length=255)
    message: str = Field(..., min_length=10, max_length=5000)


class MessageResponse(BaseModel):
    message: str
