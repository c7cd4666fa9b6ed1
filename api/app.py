"""
XPlay REST API.

Serves the JSON API consumed by the web frontend and the Python client:
auth, videos, comments, channels, subscriptions, user pages, admin
moderation and site settings. Uploaded media is written under MEDIA_ROOT and
served from MEDIA_URL_PREFIX.
"""

import asyncio
import logging
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from api.audit import AuditAction, log_audit
from api.auth import (
    cleanup_expired_sessions,
    clear_session_cookie,
    create_user_session,
    delete_user_session,
    generate_verification_code,
    get_current_user,
    hash_password,
    hash_verification_code,
    require_admin,
    require_user,
    security_logger,
    set_session_cookie,
    verification_code_matches,
    verify_password,
)
from api.common import (
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
    check_health,
    ensure_utc,
    get_real_ip,
    get_request_id,
    rate_limit_exceeded_handler,
)
from api.content_tagging import tag_content
from api.database import configure_database, create_tables, database
from api.db_retry import DatabaseLockedError
from api.email_service import EmailDeliveryError, send_verification_email
from api.enums import Reaction, ReportStatus, UserAction
from api.errors import ERROR_MESSAGES, is_unique_violation, sanitize_error_message
from api.exception_utils import handle_api_exceptions, log_and_raise_http_exception
from api.recommendations import CANDIDATE_POOL_SIZE, rank_discover, related_video_ids
from api.schemas import (
    AdminUserActionResponse,
    AdminVideoCreate,
    ChannelCreate,
    ChannelDetailResponse,
    ChannelResponse,
    ChannelUpdate,
    CommentCreate,
    CommentResponse,
    ContactRequest,
    DashboardStats,
    DiscoverVideoResponse,
    HistoryEntryResponse,
    IntroVideoUploadResponse,
    LikedVideoResponse,
    LoginRequest,
    MessageResponse,
    ProfileUpdate,
    ReactionStateResponse,
    RegisterRequest,
    RegisterResponse,
    ReportCreate,
    ReportResolveResponse,
    ReportResponse,
    SendVerificationRequest,
    SiteAdSettings,
    SiteAdSettingsResponse,
    SiteSettingsResponse,
    SiteSettingsUpdate,
    SiteSettingsUpdateResponse,
    SubscriptionResponse,
    SubscriptionStateResponse,
    ThumbnailUpdateResponse,
    UserResponse,
    VerifyEmailRequest,
    VerifyEmailResponse,
    VideoAdSettings,
    VideoAdSettingsResponse,
    VideoCreate,
    VideoDetailResponse,
    VideoResponse,
    VideoUpdate,
    VideoUpdateResponse,
    ViewCountResponse,
    coerce_form_fields,
)
from api.storage import Storage, creator_summary
from config import (
    ADMIN_EMAILS,
    ADMIN_VIDEOS_LIMIT,
    AUTO_TAGGING_ENABLED,
    AVATARS_DIR,
    BANNERS_DIR,
    CORS_ALLOWED_ORIGINS,
    DEFAULT_PAGE_SIZE,
    DISCOVER_LIMIT,
    MAX_THUMBNAIL_UPLOAD_SIZE,
    MAX_UPLOAD_SIZE,
    MEDIA_ROOT,
    MEDIA_URL_PREFIX,
    QUICKIES_FEED_SIZE,
    RATE_LIMIT_AUTH,
    RATE_LIMIT_CONTACT,
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_STORAGE_URL,
    RATE_LIMIT_UPLOAD,
    RECENT_FEED_SIZE,
    RELATED_VIDEOS_LIMIT,
    SESSION_COOKIE_NAME,
    SUPPORTED_IMAGE_EXTENSIONS,
    SUPPORTED_VIDEO_EXTENSIONS,
    THUMBNAILS_DIR,
    TRENDING_FEED_SIZE,
    UPLOAD_CHUNK_SIZE,
    VERIFICATION_CODE_EXPIRY_MINUTES,
    VERIFICATION_MAX_ATTEMPTS,
    VIDEOS_DIR,
)

logger = logging.getLogger(__name__)

# Intro clips have no probe step; the player trusts this unless told otherwise
DEFAULT_INTRO_DURATION = 10

# Location prefixes FastAPI puts in front of validation error paths
_VALIDATION_LOC_PREFIXES = ("body", "query", "path", "form", "header", "cookie")

storage = Storage(database)

# Background task for periodic session cleanup
_session_cleanup_task: Optional[asyncio.Task] = None


async def _periodic_session_cleanup():
    """Background task to periodically clean up expired sessions and verification codes."""
    while True:
        try:
            # Run cleanup every hour
            await asyncio.sleep(3600)
            deleted = await cleanup_expired_sessions(storage)
            if deleted:
                logger.info(f"Cleaned up {deleted} expired user sessions")
            codes = await storage.delete_expired_email_verifications()
            if codes:
                logger.info(f"Cleaned up {codes} expired verification codes")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Error during session cleanup: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    global _session_cleanup_task

    # Warn about in-memory rate limiting limitations
    if RATE_LIMIT_ENABLED and RATE_LIMIT_STORAGE_URL == "memory://":
        logger.warning(
            "Rate limiting is using in-memory storage. "
            "For production deployments with multiple instances, configure Redis: "
            "XPLAY_RATE_LIMIT_STORAGE_URL=redis://localhost:6379"
        )
    create_tables()
    await database.connect()
    await configure_database()
    await storage.ensure_site_settings()

    _session_cleanup_task = asyncio.create_task(_periodic_session_cleanup())
    yield
    _session_cleanup_task.cancel()
    try:
        await _session_cleanup_task
    except asyncio.CancelledError:
        pass
    await database.disconnect()


limiter = Limiter(
    key_func=get_real_ip,
    storage_uri=RATE_LIMIT_STORAGE_URL if RATE_LIMIT_ENABLED else None,
    enabled=RATE_LIMIT_ENABLED,
)

app = FastAPI(title="XPlay", description="Adult video sharing platform API", lifespan=lifespan)

app.state.storage = storage

# Register rate limiter with the app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(DatabaseLockedError)
async def database_locked_handler(request: Request, exc: DatabaseLockedError):
    """Handle database contention that outlived its retries with a 503 response."""
    logger.warning(f"Database locked error: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Database temporarily unavailable, please retry"},
        headers={"Retry-After": "1"},
    )


def _validation_error_path(loc: Tuple[Any, ...]) -> str:
    parts = list(loc)
    if parts and parts[0] in _VALIDATION_LOC_PREFIXES:
        parts = parts[1:]
    return ".".join(str(part) for part in parts)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Field-scoped validation errors: 400 with one entry per failing field."""
    errors = [
        {
            "path": _validation_error_path(error.get("loc", ())),
            "message": error.get("msg", ""),
            "code": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Validation error", "errors": errors})


# Security headers middleware
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)

# If CORS_ALLOWED_ORIGINS is empty, allow same-origin only (no CORS headers)
# Note: allow_credentials=True requires specific origins, not wildcards
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS if CORS_ALLOWED_ORIGINS else [],
    allow_credentials=bool(CORS_ALLOWED_ORIGINS),  # Session cookie needs credentials
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)

# Serve uploaded media
# Skip in test mode since CI doesn't have the storage directory
if not os.environ.get("XPLAY_TEST_MODE"):
    app.mount(MEDIA_URL_PREFIX, StaticFiles(directory=str(MEDIA_ROOT), check_dir=False), name="media")


# ============ Helpers ============


def validate_model(model: Type[BaseModel], data: Dict[str, Any]) -> BaseModel:
    """Validate form-derived data, reporting failures like body validation errors."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError(e.errors())


def audit(request: Request, action: AuditAction, user: Optional[Dict[str, Any]] = None, **kwargs):
    log_audit(
        action,
        client_ip=get_real_ip(request),
        user_agent=request.headers.get("user-agent"),
        actor_id=user["id"] if user else None,
        request_id=get_request_id(request),
        **kwargs,
    )


def can_manage_video(user: Optional[Dict[str, Any]], video: Dict[str, Any]) -> bool:
    return user is not None and (user["id"] == video["user_id"] or bool(user["is_admin"]))


async def get_video_or_404(video_id: int) -> Dict[str, Any]:
    video = await storage.get_video(video_id)
    if video is None:
        raise HTTPException(status_code=404, detail="Video not found")
    return video


async def get_channel_or_404(channel_id: int) -> Dict[str, Any]:
    channel = await storage.get_channel(channel_id)
    if channel is None:
        raise HTTPException(status_code=404, detail="Channel not found")
    return channel


def _format_size(num_bytes: int) -> str:
    if num_bytes >= 1024 * 1024 * 1024:
        return f"{num_bytes / (1024 * 1024 * 1024):.0f} GB"
    return f"{num_bytes / (1024 * 1024):.0f} MB"


def new_media_file(directory: Path, filename: Optional[str], allowed_extensions) -> Tuple[Path, str]:
    """
    Pick a fresh on-disk path and public URL for an upload.

    Raises 400 for unsupported extensions and 503 when the media directory
    can't be created.
    """
    ext = Path(filename or "").suffix.lower()
    if ext not in allowed_extensions:
        raise HTTPException(
            status_code=400,
            detail=f"{ERROR_MESSAGES['file_type']} Allowed: {', '.join(sorted(allowed_extensions))}",
        )
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        log_and_raise_http_exception(e, 503, ERROR_MESSAGES["storage"], "new_media_file", "warning")

    name = f"{uuid.uuid4().hex}{ext}"
    return directory / name, f"{MEDIA_URL_PREFIX}/{directory.name}/{name}"


async def save_upload_with_size_limit(file: UploadFile, upload_path: Path, max_size: int = MAX_UPLOAD_SIZE) -> int:
    """
    Stream upload to disk with size validation.
    Returns the total bytes written.
    Raises HTTPException if file exceeds max_size.
    """
    total_size = 0
    try:
        with open(upload_path, "wb") as f:
            while True:
                chunk = await file.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                total_size += len(chunk)
                if total_size > max_size:
                    # Clean up partial file
                    f.close()
                    upload_path.unlink(missing_ok=True)
                    raise HTTPException(
                        status_code=413,
                        detail=f"File too large. Maximum upload size is {_format_size(max_size)}",
                    )
                f.write(chunk)
    except HTTPException:
        raise
    except OSError as e:
        # Storage-related errors - clean up and return 503
        upload_path.unlink(missing_ok=True)
        raise HTTPException(
            status_code=503,
            detail=sanitize_error_message(str(e), context=f"upload={upload_path.name}"),
            headers={"Retry-After": "30"},
        )

    return total_size


def local_media_path(url_path: Optional[str]) -> Optional[Path]:
    """Map a public media URL back to a file under MEDIA_ROOT. External URLs map to None."""
    prefix = MEDIA_URL_PREFIX + "/"
    if not url_path or not url_path.startswith(prefix):
        return None
    candidate = (MEDIA_ROOT / url_path[len(prefix):]).resolve()
    try:
        candidate.relative_to(MEDIA_ROOT.resolve())
    except ValueError:
        return None
    return candidate


def remove_media_file(url_path: Optional[str]) -> None:
    path = local_media_path(url_path)
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to remove media file {path}: {e}")


# ============ Health ============


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.

    Returns 503 if the database or media storage is unhealthy.
    """
    result = await check_health(database)
    return JSONResponse(
        status_code=result["status_code"],
        content={
            "status": "healthy" if result["healthy"] else "unhealthy",
            "checks": result["checks"],
        },
    )


# ============ Auth ============


def _verification_is_live(verification: Optional[Dict[str, Any]]) -> bool:
    return verification is not None and ensure_utc(verification["expires_at"]) > datetime.now(timezone.utc)


@app.post("/api/auth/register", status_code=201, response_model=RegisterResponse)
@limiter.limit(RATE_LIMIT_AUTH)
async def register(request: Request, response: Response, data: RegisterRequest):
    """Create an account, its default channel, and a logged-in session."""
    if await storage.get_user_by_email(data.email):
        raise HTTPException(status_code=400, detail="User with this email already exists")
    if await storage.get_user_by_username(data.username):
        raise HTTPException(status_code=400, detail="Username is already taken")

    user_data = data.model_dump(exclude={"confirm_password"})
    user_data["password"] = hash_password(data.password)
    user_data["is_admin"] = data.email in ADMIN_EMAILS
    verification = await storage.get_email_verification(data.email)
    user_data["is_verified"] = _verification_is_live(verification) and verification["verified_at"] is not None
    try:
        user = await storage.create_user(user_data)
    except Exception as e:
        # Lost a race with a concurrent registration
        if is_unique_violation(e, "email"):
            raise HTTPException(status_code=400, detail="User with this email already exists")
        if is_unique_violation(e, "username"):
            raise HTTPException(status_code=400, detail="Username is already taken")
        raise

    if user_data["is_verified"]:
        await storage.delete_email_verification(data.email)

    channel = await storage.create_channel(
        user["id"],
        {"name": user["username"], "description": f"{user['username']}'s channel"},
    )

    client_ip = get_real_ip(request)
    session_token = await create_user_session(
        storage, user["id"], ip_address=client_ip, user_agent=request.headers.get("user-agent")
    )
    set_session_cookie(response, session_token)

    audit(
        request,
        AuditAction.USER_REGISTER,
        user,
        resource_type="user",
        resource_id=user["id"],
        resource_name=user["username"],
        details={"channel_id": channel["id"], "is_admin": user["is_admin"]},
    )
    return user


@app.post("/api/auth/login", response_model=UserResponse)
@limiter.limit(RATE_LIMIT_AUTH)
async def login(request: Request, response: Response, data: LoginRequest):
    """Check credentials and start a session. Banned accounts get 403."""
    client_ip = get_real_ip(request)
    user = await storage.get_user_by_email(data.email)
    if user is None or not verify_password(data.password, user["password"]):
        security_logger.warning(
            "User login failed: invalid credentials",
            extra={"event": "login_failure", "client_ip": client_ip},
        )
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if user["is_banned"]:
        security_logger.warning(
            "User login refused: account banned",
            extra={"event": "login_banned", "user_id": user["id"], "client_ip": client_ip},
        )
        raise HTTPException(status_code=403, detail="Your account has been banned")

    session_token = await create_user_session(
        storage, user["id"], ip_address=client_ip, user_agent=request.headers.get("user-agent")
    )
    set_session_cookie(response, session_token)

    security_logger.info(
        "User login successful",
        extra={"event": "login_success", "user_id": user["id"], "client_ip": client_ip},
    )
    audit(request, AuditAction.USER_LOGIN, user, resource_type="user", resource_id=user["id"])
    return user


@app.post("/api/auth/logout", response_model=MessageResponse)
async def logout(request: Request, response: Response):
    """Destroy the server-side session and clear the cookie."""
    session_token = request.cookies.get(SESSION_COOKIE_NAME, "")
    if session_token:
        user = await get_current_user(request)
        await delete_user_session(storage, session_token)
        security_logger.info(
            "User logout",
            extra={"event": "logout", "client_ip": get_real_ip(request)},
        )
        if user is not None:
            audit(request, AuditAction.USER_LOGOUT, user, resource_type="user", resource_id=user["id"])

    clear_session_cookie(response)
    return {"message": "Logged out successfully"}


@app.get("/api/auth/me", response_model=UserResponse)
async def current_user(request: Request):
    user = await get_current_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


@app.post("/api/auth/send-verification", response_model=MessageResponse)
@limiter.limit(RATE_LIMIT_AUTH)
async def send_verification(request: Request, data: SendVerificationRequest):
    """
    Email a 6-digit verification code.

    Works before registration (the account is then created verified) and for
    existing accounts that are not verified yet. A new code replaces the old one.
    """
    user = await storage.get_user_by_email(data.email)
    if user is not None and user["is_verified"]:
        raise HTTPException(status_code=400, detail="Email is already verified")

    code = generate_verification_code()
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=VERIFICATION_CODE_EXPIRY_MINUTES)
    await storage.replace_email_verification(data.email, hash_verification_code(code), expires_at)
    try:
        await send_verification_email(data.email, code)
    except EmailDeliveryError as e:
        await storage.delete_email_verification(data.email)
        log_and_raise_http_exception(e, 503, "Failed to send verification code", "send_verification")

    security_logger.info(
        "Verification code sent",
        extra={"event": "verification_sent", "client_ip": get_real_ip(request)},
    )
    audit(request, AuditAction.EMAIL_VERIFICATION_SENT, user, resource_type="email", resource_name=data.email)
    return {"message": "Verification code sent successfully"}


@app.post("/api/auth/verify-email", response_model=VerifyEmailResponse)
@limiter.limit(RATE_LIMIT_AUTH)
async def verify_email(request: Request, data: VerifyEmailRequest):
    """
    Confirm a code from send-verification.

    Unknown, expired, used and wrong codes all get the same 400. Too many
    wrong guesses discard the code.
    """
    client_ip = get_real_ip(request)
    verification = await storage.get_email_verification(data.email)
    if not _verification_is_live(verification) or verification["verified_at"] is not None:
        raise HTTPException(status_code=400, detail="Invalid or expired verification code")

    if not verification_code_matches(data.code, verification["code_hash"]):
        if verification["attempts"] + 1 >= VERIFICATION_MAX_ATTEMPTS:
            await storage.delete_email_verification(data.email)
        else:
            await storage.record_verification_attempt(verification["id"])
        security_logger.warning(
            "Email verification failed: wrong code",
            extra={"event": "verification_failure", "client_ip": client_ip},
        )
        raise HTTPException(status_code=400, detail="Invalid or expired verification code")

    user = await storage.get_user_by_email(data.email)
    if user is not None:
        user = await storage.update_user(user["id"], {"is_verified": True})
        await storage.delete_email_verification(data.email)
    else:
        # Kept until registration picks it up or it expires
        await storage.mark_email_verified(verification["id"])

    security_logger.info(
        "Email verified",
        extra={"event": "verification_success", "client_ip": client_ip},
    )
    audit(
        request,
        AuditAction.EMAIL_VERIFIED,
        user,
        resource_type="email",
        resource_name=data.email,
        details={"account_exists": user is not None},
    )
    return {"message": "Email verified successfully", "verified": True}


# ============ Videos ============


@app.get("/api/videos", response_model=List[VideoResponse])
@limiter.limit(RATE_LIMIT_DEFAULT)
async def list_videos(
    request: Request,
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    """Published videos, newest first."""
    videos = await storage.list_videos(limit, offset)
    return await storage.attach_creators(videos)


@app.get("/api/videos/recent", response_model=List[VideoResponse])
async def recent_videos(limit: int = Query(default=RECENT_FEED_SIZE, ge=1, le=100)):
    return await storage.attach_creators(await storage.list_recent_videos(limit))


@app.get("/api/videos/trending", response_model=List[VideoResponse])
async def trending_videos(limit: int = Query(default=TRENDING_FEED_SIZE, ge=1, le=100)):
    return await storage.attach_creators(await storage.list_trending_videos(limit))


@app.get("/api/videos/quickies", response_model=List[VideoResponse])
async def quickie_videos(limit: int = Query(default=QUICKIES_FEED_SIZE, ge=1, le=100)):
    return await storage.attach_creators(await storage.list_quickies(limit))


@app.get("/api/videos/{video_id}", response_model=VideoDetailResponse)
async def get_video(request: Request, video_id: int):
    """
    Watch page payload.

    Counts a view, records history for logged-in users, and adds the
    creator, related videos and the site intro clip.
    """
    video = await get_video_or_404(video_id)
    user = await get_current_user(request)
    if not video["is_published"] and not can_manage_video(user, video):
        raise HTTPException(status_code=404, detail="Video not found")

    video["views"] = await storage.increment_views(video_id) or video["views"]
    video["user_reaction"] = None
    if user is not None:
        await storage.add_history(user["id"], video_id)
        video["user_reaction"] = await storage.get_reaction(user["id"], video_id)

    creator = await storage.get_user(video["user_id"])
    video["creator"] = creator_summary(creator, include_subscribers=True)

    candidates = await storage.list_videos(CANDIDATE_POOL_SIZE)
    candidates_by_id = {candidate["id"]: candidate for candidate in candidates}
    related = [
        candidates_by_id[related_id]
        for related_id in related_video_ids(video, candidates, RELATED_VIDEOS_LIMIT)
    ]
    video["related_videos"] = await storage.attach_creators(related)

    settings = await storage.get_site_settings()
    if settings and settings["intro_video_enabled"] and settings["intro_video_url"]:
        video["intro_video"] = {
            "enabled": True,
            "url": settings["intro_video_url"],
            "duration": settings["intro_video_duration"] or 0,
        }
    else:
        video["intro_video"] = None
    return video


def apply_content_tags(video_data: Dict[str, Any]) -> None:
    """Merge detected categories and tags into validated upload metadata."""
    tagging = tag_content(
        video_data["title"],
        video_data.get("description"),
        tags=video_data["tags"],
        categories=video_data["categories"],
        duration=video_data.get("duration"),
        is_quickie=video_data["is_quickie"],
    )
    video_data["categories"] = tagging.categories
    video_data["tags"] = tagging.tags
    video_data["is_quickie"] = tagging.is_quickie
    logger.debug(
        f"Tagged upload '{video_data['title']}': type={tagging.content_type} "
        f"duration={tagging.duration_category} categories={tagging.categories}"
    )


@app.post("/api/videos", status_code=201, response_model=VideoResponse)
@limiter.limit(RATE_LIMIT_UPLOAD)
@handle_api_exceptions("video_upload", ERROR_MESSAGES["upload"])
async def upload_video(
    request: Request,
    video_file: Optional[UploadFile] = File(None),
    thumbnail_file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    duration: Optional[str] = Form(None),
    categories: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_quickie: Optional[str] = Form(None),
    is_published: Optional[str] = Form(None),
    user: Dict[str, Any] = Depends(require_user),
):
    """Upload a video file (and optional thumbnail) with its metadata."""
    if video_file is None or not video_file.filename:
        raise HTTPException(status_code=400, detail="No video file uploaded")

    raw = coerce_form_fields(
        {
            "title": title,
            "description": description,
            "duration": duration,
            "categories": categories,
            "tags": tags,
            "is_quickie": is_quickie,
            "is_published": is_published,
        },
        bool_fields=("is_quickie", "is_published"),
        int_fields=("duration",),
    )
    # file_path is assigned below, once the metadata is known to be valid
    metadata = validate_model(VideoCreate, {**raw, "file_path": "pending"})

    video_path, video_url = new_media_file(VIDEOS_DIR, video_file.filename, SUPPORTED_VIDEO_EXTENSIONS)
    thumb_path: Optional[Path] = None
    thumb_url: Optional[str] = None
    if thumbnail_file is not None and thumbnail_file.filename:
        thumb_path, thumb_url = new_media_file(THUMBNAILS_DIR, thumbnail_file.filename, SUPPORTED_IMAGE_EXTENSIONS)

    size = await save_upload_with_size_limit(video_file, video_path, MAX_UPLOAD_SIZE)
    try:
        if thumb_path is not None:
            await save_upload_with_size_limit(thumbnail_file, thumb_path, MAX_THUMBNAIL_UPLOAD_SIZE)

        video_data = metadata.model_dump()
        if AUTO_TAGGING_ENABLED:
            apply_content_tags(video_data)
        video_data["file_path"] = video_url
        video_data["thumbnail_path"] = thumb_url
        video = await storage.create_video(user["id"], video_data)
    except Exception:
        video_path.unlink(missing_ok=True)
        if thumb_path is not None:
            thumb_path.unlink(missing_ok=True)
        raise

    audit(
        request,
        AuditAction.VIDEO_UPLOAD,
        user,
        resource_type="video",
        resource_id=video["id"],
        resource_name=video["title"],
        details={"size_bytes": size, "is_quickie": video["is_quickie"]},
    )
    video["creator"] = creator_summary(user)
    return video


@app.patch("/api/videos/{video_id}", response_model=VideoUpdateResponse)
async def update_video(
    request: Request,
    video_id: int,
    data: VideoUpdate,
    user: Dict[str, Any] = Depends(require_user),
):
    """Edit title, description, categories, tags or visibility (owner or admin)."""
    video = await get_video_or_404(video_id)
    if not can_manage_video(user, video):
        raise HTTPException(status_code=403, detail="You do not have permission to edit this video")

    fields = data.model_dump(exclude_unset=True)
    # Only description may be cleared; null for the others means "leave as is"
    fields = {key: value for key, value in fields.items() if value is not None or key == "description"}
    updated = await storage.update_video(video_id, fields)

    audit(
        request,
        AuditAction.VIDEO_UPDATE,
        user,
        resource_type="video",
        resource_id=video_id,
        resource_name=updated["title"],
        details={"fields": sorted(fields)},
    )
    return {**updated, "message": "Video updated successfully"}


@app.delete("/api/videos/{video_id}", response_model=MessageResponse)
async def delete_video(request: Request, video_id: int, user: Dict[str, Any] = Depends(require_user)):
    video = await get_video_or_404(video_id)
    if not can_manage_video(user, video):
        raise HTTPException(status_code=403, detail="You do not have permission to delete this video")

    await storage.delete_video(video_id)
    remove_media_file(video["file_path"])
    remove_media_file(video["thumbnail_path"])

    audit(
        request,
        AuditAction.VIDEO_DELETE,
        user,
        resource_type="video",
        resource_id=video_id,
        resource_name=video["title"],
    )
    return {"message": "Video deleted successfully"}


@app.post("/api/videos/{video_id}/thumbnail", response_model=ThumbnailUpdateResponse)
@limiter.limit(RATE_LIMIT_UPLOAD)
@handle_api_exceptions("thumbnail_upload", "Failed to update thumbnail")
async def upload_thumbnail(
    request: Request,
    video_id: int,
    thumbnail_file: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Depends(require_user),
):
    """Replace a video's thumbnail with an uploaded image (owner or admin)."""
    video = await get_video_or_404(video_id)
    if not can_manage_video(user, video):
        raise HTTPException(status_code=403, detail="You do not have permission to edit this video")
    if thumbnail_file is None or not thumbnail_file.filename:
        raise HTTPException(status_code=400, detail="No thumbnail file uploaded")

    thumb_path, thumb_url = new_media_file(THUMBNAILS_DIR, thumbnail_file.filename, SUPPORTED_IMAGE_EXTENSIONS)
    await save_upload_with_size_limit(thumbnail_file, thumb_path, MAX_THUMBNAIL_UPLOAD_SIZE)
    try:
        updated = await storage.update_video(video_id, {"thumbnail_path": thumb_url})
    except Exception:
        thumb_path.unlink(missing_ok=True)
        raise
    remove_media_file(video["thumbnail_path"])

    audit(
        request,
        AuditAction.VIDEO_THUMBNAIL_UPDATE,
        user,
        resource_type="video",
        resource_id=video_id,
        resource_name=video["title"],
    )
    return {"success": True, "video": updated, "thumbnail_url": thumb_url}


async def _react(video_id: int, user: Dict[str, Any], reaction: Reaction) -> Dict[str, Any]:
    state = await storage.toggle_reaction(user["id"], video_id, reaction)
    if state is None:
        raise HTTPException(status_code=404, detail="Video not found")
    return state


@app.post("/api/videos/{video_id}/like", response_model=ReactionStateResponse)
async def like_video(video_id: int, user: Dict[str, Any] = Depends(require_user)):
    """Toggle a like. Liking a disliked video switches the reaction."""
    return await _react(video_id, user, Reaction.LIKE)


@app.post("/api/videos/{video_id}/dislike", response_model=ReactionStateResponse)
async def dislike_video(video_id: int, user: Dict[str, Any] = Depends(require_user)):
    """Toggle a dislike. Disliking a liked video switches the reaction."""
    return await _react(video_id, user, Reaction.DISLIKE)


@app.post("/api/videos/{video_id}/view", response_model=ViewCountResponse)
async def record_view(request: Request, video_id: int):
    """Count a view without fetching the whole watch page payload."""
    video = await get_video_or_404(video_id)
    user = await get_current_user(request)
    # Same visibility rule as the watch page
    if not video["is_published"] and not can_manage_video(user, video):
        raise HTTPException(status_code=404, detail="Video not found")

    views = await storage.increment_views(video_id)
    if views is None:
        raise HTTPException(status_code=404, detail="Video not found")
    if user is not None:
        await storage.add_history(user["id"], video_id)
    return {"views": views}


# ============ Comments ============


@app.get("/api/videos/{video_id}/comments", response_model=List[CommentResponse])
async def list_comments(video_id: int):
    await get_video_or_404(video_id)
    return await storage.list_comments(video_id)


@app.post("/api/videos/{video_id}/comments", status_code=201, response_model=CommentResponse)
@limiter.limit(RATE_LIMIT_DEFAULT)
async def add_comment(
    request: Request,
    video_id: int,
    data: CommentCreate,
    user: Dict[str, Any] = Depends(require_user),
):
    await get_video_or_404(video_id)
    comment = await storage.create_comment(video_id, user["id"], data.content)
    comment["user"] = creator_summary(user)
    return comment


# ============ Channels ============


async def save_banner(banner_file: Optional[UploadFile]) -> Tuple[Optional[Path], Optional[str]]:
    """Save an uploaded banner image. Returns (path, url), or (None, None) without a file."""
    if banner_file is None or not banner_file.filename:
        return None, None
    path, url = new_media_file(BANNERS_DIR, banner_file.filename, SUPPORTED_IMAGE_EXTENSIONS)
    await save_upload_with_size_limit(banner_file, path, MAX_THUMBNAIL_UPLOAD_SIZE)
    return path, url


@app.get("/api/channels/user", response_model=List[ChannelResponse])
async def my_channels(user: Dict[str, Any] = Depends(require_user)):
    return await storage.list_channels_by_user(user["id"])


@app.get("/api/channels/{channel_id}", response_model=ChannelDetailResponse)
async def get_channel(request: Request, channel_id: int):
    """A channel with its owner and whether the current user follows it."""
    channel = await get_channel_or_404(channel_id)
    user = await get_current_user(request)

    channel["is_user_subscribed"] = (
        await storage.is_subscribed(user["id"], channel_id) if user is not None else False
    )
    owner = await storage.get_user(channel["user_id"])
    channel["user"] = creator_summary(owner, include_subscribers=True)
    return channel


@app.post("/api/channels", status_code=201, response_model=ChannelResponse)
@handle_api_exceptions("channel_create", "Failed to create channel")
async def create_channel(
    request: Request,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    banner_image: Optional[str] = Form(None),
    banner_file: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Depends(require_user),
):
    """Create a channel. The banner is either an uploaded image or a URL."""
    data = validate_model(
        ChannelCreate,
        coerce_form_fields({"name": name, "description": description, "banner_image": banner_image}),
    )
    fields = data.model_dump()
    saved_path, banner_url = await save_banner(banner_file)
    if banner_url:
        fields["banner_image"] = banner_url
    try:
        channel = await storage.create_channel(user["id"], fields)
    except Exception:
        if saved_path is not None:
            saved_path.unlink(missing_ok=True)
        raise

    audit(
        request,
        AuditAction.CHANNEL_CREATE,
        user,
        resource_type="channel",
        resource_id=channel["id"],
        resource_name=channel["name"],
    )
    return channel


@app.patch("/api/channels/{channel_id}", response_model=ChannelResponse)
@handle_api_exceptions("channel_update", "Failed to update channel")
async def update_channel(
    request: Request,
    channel_id: int,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    banner_image: Optional[str] = Form(None),
    banner_file: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Depends(require_user),
):
    """Update a channel (owner only)."""
    channel = await get_channel_or_404(channel_id)
    if channel["user_id"] != user["id"]:
        raise HTTPException(status_code=403, detail="Not authorized to update this channel")

    data = validate_model(
        ChannelUpdate,
        coerce_form_fields({"name": name, "description": description, "banner_image": banner_image}),
    )
    fields = data.model_dump(exclude_unset=True)
    saved_path, banner_url = await save_banner(banner_file)
    if banner_url:
        fields["banner_image"] = banner_url
    try:
        updated = await storage.update_channel(channel_id, fields)
    except Exception:
        if saved_path is not None:
            saved_path.unlink(missing_ok=True)
        raise
    if "banner_image" in fields and fields["banner_image"] != channel["banner_image"]:
        remove_media_file(channel["banner_image"])

    audit(
        request,
        AuditAction.CHANNEL_UPDATE,
        user,
        resource_type="channel",
        resource_id=channel_id,
        resource_name=updated["name"],
        details={"fields": sorted(fields)},
    )
    return updated


@app.post("/api/channels/{channel_id}/subscribe", status_code=201, response_model=SubscriptionStateResponse)
async def subscribe(channel_id: int, response: Response, user: Dict[str, Any] = Depends(require_user)):
    """Follow a channel. Subscribing twice is a no-op answered with 200."""
    channel = await get_channel_or_404(channel_id)
    created = await storage.subscribe(user["id"], channel)
    if not created:
        response.status_code = 200
        return {"success": True, "message": "Already subscribed to this channel", "is_user_subscribed": True}
    return {"success": True, "message": "Subscribed successfully", "is_user_subscribed": True}


@app.delete("/api/channels/{channel_id}/subscribe", response_model=SubscriptionStateResponse)
async def unsubscribe(channel_id: int, user: Dict[str, Any] = Depends(require_user)):
    channel = await get_channel_or_404(channel_id)
    removed = await storage.unsubscribe(user["id"], channel)
    if not removed:
        return {"success": True, "message": "Not subscribed to this channel", "is_user_subscribed": False}
    return {"success": True, "message": "Unsubscribed successfully", "is_user_subscribed": False}


# ============ Users ============


@app.patch("/api/users/profile", response_model=UserResponse)
@handle_api_exceptions("profile_update", "Failed to update profile")
async def update_profile(
    request: Request,
    username: Optional[str] = Form(None),
    display_name: Optional[str] = Form(None),
    bio: Optional[str] = Form(None),
    profile_image: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Depends(require_user),
):
    """Update the current user's profile, optionally with a new avatar."""
    data = validate_model(
        ProfileUpdate,
        coerce_form_fields({"username": username, "display_name": display_name, "bio": bio}),
    )
    fields = data.model_dump(exclude_unset=True)

    if data.username and data.username != user["username"]:
        existing = await storage.get_user_by_username(data.username)
        if existing is not None and existing["id"] != user["id"]:
            raise HTTPException(status_code=400, detail="Username already taken")

    saved_path = None
    if profile_image is not None and profile_image.filename:
        saved_path, avatar_url = new_media_file(AVATARS_DIR, profile_image.filename, SUPPORTED_IMAGE_EXTENSIONS)
        await save_upload_with_size_limit(profile_image, saved_path, MAX_THUMBNAIL_UPLOAD_SIZE)
        fields["profile_image"] = avatar_url

    try:
        updated = await storage.update_user(user["id"], fields)
    except Exception as e:
        if saved_path is not None:
            saved_path.unlink(missing_ok=True)
        if is_unique_violation(e, "username"):
            raise HTTPException(status_code=400, detail="Username already taken")
        raise
    if "profile_image" in fields:
        remove_media_file(user["profile_image"])

    audit(
        request,
        AuditAction.PROFILE_UPDATE,
        user,
        resource_type="user",
        resource_id=user["id"],
        resource_name=updated["username"],
        details={"fields": sorted(fields)},
    )
    return updated


@app.get("/api/users/{user_id}/subscriptions", response_model=List[SubscriptionResponse])
async def user_subscriptions(user_id: int):
    return await storage.list_subscriptions(user_id)


@app.get("/api/users/{user_id}/liked-videos", response_model=List[LikedVideoResponse])
async def user_liked_videos(user_id: int):
    return await storage.list_liked_videos(user_id)


@app.get("/api/users/{user_id}/history", response_model=List[HistoryEntryResponse])
async def user_history(user_id: int, user: Dict[str, Any] = Depends(require_user)):
    """Watch history. Users can only read their own."""
    if user_id != user["id"]:
        raise HTTPException(status_code=403, detail="Access denied")
    return await storage.list_history(user_id)


@app.get("/api/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(user: Dict[str, Any] = Depends(require_user)):
    return await storage.get_dashboard_stats(user["id"])


@app.get("/api/discover", response_model=List[DiscoverVideoResponse])
async def discover(user: Dict[str, Any] = Depends(require_user)):
    """Personalized recommendations from the user's history and likes."""
    watched_ids, liked_ids = await storage.list_interacted_video_ids(user["id"])
    interacted = await storage.get_videos_by_ids(watched_ids + liked_ids)
    candidates = await storage.list_recent_videos(CANDIDATE_POOL_SIZE)
    ranked = rank_discover(candidates, interacted.values(), watched_ids, DISCOVER_LIMIT)
    return await storage.attach_creators(ranked)


@app.post("/api/reports", status_code=201, response_model=ReportResponse)
@limiter.limit(RATE_LIMIT_CONTACT)
async def create_report(request: Request, data: ReportCreate, user: Dict[str, Any] = Depends(require_user)):
    """Flag a video, comment or user for moderation."""
    report = await storage.create_report(user["id"], data.model_dump())
    audit(
        request,
        AuditAction.REPORT_CREATE,
        user,
        resource_type=report["report_type"],
        resource_id=report["content_id"],
        details={"report_id": report["id"], "reason": report["reason"]},
    )
    return report


# ============ Admin ============


@app.get("/api/admin/users", response_model=List[UserResponse])
async def admin_list_users(admin: Dict[str, Any] = Depends(require_admin)):
    return await storage.list_users()


@app.patch("/api/admin/users/{user_id}/{action}", response_model=AdminUserActionResponse)
async def admin_user_action(
    request: Request,
    user_id: int,
    action: UserAction,
    admin: Dict[str, Any] = Depends(require_admin),
):
    """
    Moderate a user: ban, unban, promote to admin, or demote.

    Banning revokes every session of the user. Admins can't ban or demote
    themselves.
    """
    target = await storage.get_user(user_id)
    if target is None:
        raise HTTPException(status_code=404, detail="User not found")
    if target["id"] == admin["id"] and action in (UserAction.BAN, UserAction.DEMOTE):
        raise HTTPException(status_code=400, detail="Cannot ban or demote your own account")

    if action == UserAction.BAN:
        updated = await storage.update_user(user_id, {"is_banned": True})
        revoked = await storage.delete_sessions_for_user(user_id)
        security_logger.info(
            "User banned, sessions revoked",
            extra={"event": "sessions_revoked", "user_id": user_id, "count": revoked},
        )
        audit_action, message = AuditAction.USER_BAN, "User banned"
    elif action == UserAction.UNBAN:
        updated = await storage.update_user(user_id, {"is_banned": False})
        audit_action, message = AuditAction.USER_UNBAN, "User unbanned"
    elif action == UserAction.PROMOTE:
        updated = await storage.update_user(user_id, {"is_admin": True})
        audit_action, message = AuditAction.USER_PROMOTE, "User promoted to admin"
    else:
        updated = await storage.update_user(user_id, {"is_admin": False})
        audit_action, message = AuditAction.USER_DEMOTE, "User demoted"

    audit(
        request,
        audit_action,
        admin,
        resource_type="user",
        resource_id=user_id,
        resource_name=target["username"],
    )
    return {**updated, "message": message}


@app.delete("/api/admin/users/{user_id}", response_model=MessageResponse)
async def admin_delete_user(request: Request, user_id: int, admin: Dict[str, Any] = Depends(require_admin)):
    """Delete a user with their channels, videos, comments and reactions."""
    if user_id == admin["id"]:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    target = await storage.get_user(user_id)
    if target is None:
        raise HTTPException(status_code=404, detail="User not found")

    owned_videos = await storage.list_videos_by_user(user_id)
    await storage.delete_user(user_id)
    for video in owned_videos:
        remove_media_file(video["file_path"])
        remove_media_file(video["thumbnail_path"])
    remove_media_file(target["profile_image"])

    audit(
        request,
        AuditAction.USER_DELETE,
        admin,
        resource_type="user",
        resource_id=user_id,
        resource_name=target["username"],
        details={"videos_deleted": len(owned_videos)},
    )
    return {"message": "User deleted successfully"}


@app.get("/api/admin/videos", response_model=List[VideoResponse])
async def admin_list_videos(admin: Dict[str, Any] = Depends(require_admin)):
    """Newest videos including unpublished ones."""
    videos = await storage.list_videos(ADMIN_VIDEOS_LIMIT, published_only=False)
    return await storage.attach_creators(videos)


@app.post("/api/admin/videos", status_code=201, response_model=VideoResponse)
async def admin_create_video(
    request: Request,
    data: AdminVideoCreate,
    admin: Dict[str, Any] = Depends(require_admin),
):
    """Register a video by metadata, for files already hosted elsewhere."""
    owner = await storage.get_user(data.user_id)
    if owner is None:
        raise HTTPException(status_code=400, detail="User not found")

    video = await storage.create_video(owner["id"], data.model_dump(exclude={"user_id"}))
    audit(
        request,
        AuditAction.VIDEO_CREATE,
        admin,
        resource_type="video",
        resource_id=video["id"],
        resource_name=video["title"],
        details={"owner_id": owner["id"]},
    )
    video["creator"] = creator_summary(owner)
    return video


@app.delete("/api/admin/videos/{video_id}", response_model=MessageResponse)
async def admin_delete_video(request: Request, video_id: int, admin: Dict[str, Any] = Depends(require_admin)):
    video = await storage.delete_video(video_id)
    if video is None:
        raise HTTPException(status_code=404, detail="Video not found")
    remove_media_file(video["file_path"])
    remove_media_file(video["thumbnail_path"])

    audit(
        request,
        AuditAction.VIDEO_DELETE,
        admin,
        resource_type="video",
        resource_id=video_id,
        resource_name=video["title"],
    )
    return {"message": "Video deleted successfully"}


@app.delete("/api/admin/channels/{channel_id}", response_model=MessageResponse)
async def admin_delete_channel(request: Request, channel_id: int, admin: Dict[str, Any] = Depends(require_admin)):
    channel = await storage.delete_channel(channel_id)
    if channel is None:
        raise HTTPException(status_code=404, detail="Channel not found")
    remove_media_file(channel["banner_image"])

    audit(
        request,
        AuditAction.CHANNEL_DELETE,
        admin,
        resource_type="channel",
        resource_id=channel_id,
        resource_name=channel["name"],
    )
    return {"message": "Channel deleted successfully"}


@app.get("/api/admin/site-settings", response_model=SiteSettingsResponse)
async def admin_get_site_settings(admin: Dict[str, Any] = Depends(require_admin)):
    settings = await storage.get_site_settings()
    if settings is None:
        raise HTTPException(status_code=404, detail="Site settings not found")
    return settings


def _check_merged_ad_lists(current: Optional[Dict[str, Any]], fields: Dict[str, Any]) -> None:
    current = current or {}
    urls = fields.get("site_ad_urls", current.get("site_ad_urls")) or []
    positions = fields.get("site_ad_positions", current.get("site_ad_positions")) or []
    if len(urls) != len(positions):
        raise HTTPException(
            status_code=400,
            detail="site_ad_urls and site_ad_positions must have the same length",
        )


@app.put("/api/admin/site-settings", response_model=SiteSettingsUpdateResponse)
async def admin_update_site_settings(
    request: Request,
    data: SiteSettingsUpdate,
    admin: Dict[str, Any] = Depends(require_admin),
):
    """Merge the given fields into the site settings."""
    fields = data.model_dump(mode="json", exclude_unset=True)
    _check_merged_ad_lists(await storage.get_site_settings(), fields)
    settings = await storage.update_site_settings(fields)

    audit(
        request,
        AuditAction.SITE_SETTINGS_UPDATE,
        admin,
        resource_type="site_settings",
        details={"fields": sorted(fields)},
    )
    return {**settings, "message": "Site settings updated successfully"}


@app.post("/api/admin/upload-intro-video", status_code=201, response_model=IntroVideoUploadResponse)
@handle_api_exceptions("intro_video_upload", ERROR_MESSAGES["upload"])
async def admin_upload_intro_video(
    request: Request,
    file: Optional[UploadFile] = File(None),
    duration: Optional[str] = Form(None),
    admin: Dict[str, Any] = Depends(require_admin),
):
    """
    Store an intro clip and return its URL.

    The URL is not applied automatically; the admin UI saves it through
    PUT /api/admin/site-settings.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    raw = coerce_form_fields({"duration": duration}, int_fields=("duration",))
    clip_duration = raw.get("duration", DEFAULT_INTRO_DURATION)
    if not isinstance(clip_duration, int) or clip_duration < 0:
        raise HTTPException(status_code=400, detail="Duration must be a non-negative integer")

    path, url = new_media_file(VIDEOS_DIR, file.filename, SUPPORTED_VIDEO_EXTENSIONS)
    await save_upload_with_size_limit(file, path, MAX_UPLOAD_SIZE)
    return {"file_path": url, "duration": clip_duration, "message": "Intro video uploaded successfully"}


@app.get("/api/admin/ads/site", response_model=SiteAdSettingsResponse, response_model_exclude_none=True)
async def admin_get_site_ads(admin: Dict[str, Any] = Depends(require_admin)):
    settings = await storage.get_site_settings()
    if settings is None:
        raise HTTPException(status_code=404, detail="Site settings not found")
    return settings


@app.post("/api/admin/ads/site", response_model=SiteAdSettingsResponse)
async def admin_update_site_ads(
    request: Request,
    data: SiteAdSettings,
    admin: Dict[str, Any] = Depends(require_admin),
):
    """Replace the site-wide ad list. URLs and positions are parallel arrays."""
    settings = await storage.update_site_settings(data.model_dump(mode="json"))
    audit(
        request,
        AuditAction.SITE_ADS_UPDATE,
        admin,
        resource_type="site_settings",
        details={"site_ads_enabled": data.site_ads_enabled, "ad_count": len(data.site_ad_urls)},
    )
    return {**settings, "message": "Site ad settings updated successfully"}


@app.post("/api/admin/ads/videos/{video_id}", response_model=VideoAdSettingsResponse)
async def admin_update_video_ads(
    request: Request,
    video_id: int,
    data: VideoAdSettings,
    admin: Dict[str, Any] = Depends(require_admin),
):
    video = await storage.update_video_ads(
        video_id,
        has_ads=data.has_ads,
        ad_url=data.ad_url,
        ad_start_time=data.ad_start_time,
        ad_skippable=data.ad_skippable,
    )
    if video is None:
        raise HTTPException(status_code=404, detail="Video not found")

    audit(
        request,
        AuditAction.VIDEO_ADS_UPDATE,
        admin,
        resource_type="video",
        resource_id=video_id,
        resource_name=video["title"],
        details={"has_ads": video["has_ads"]},
    )
    return {
        "video_id": video["id"],
        "has_ads": video["has_ads"],
        "ad_url": video["ad_url"],
        "ad_start_time": video["ad_start_time"],
        "ad_skippable": video["ad_skippable"],
        "message": "Ads enabled for this video" if video["has_ads"] else "Ads disabled for this video",
    }


@app.get("/api/admin/reports", response_model=List[ReportResponse])
async def admin_list_reports(
    status: Optional[ReportStatus] = Query(default=None),
    admin: Dict[str, Any] = Depends(require_admin),
):
    return await storage.list_reports(status)


@app.post("/api/admin/reports/{report_id}/resolve", response_model=ReportResolveResponse)
async def admin_resolve_report(request: Request, report_id: int, admin: Dict[str, Any] = Depends(require_admin)):
    report = await storage.get_report(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    report = await storage.resolve_report(report_id)

    audit(
        request,
        AuditAction.REPORT_RESOLVE,
        admin,
        resource_type="report",
        resource_id=report_id,
        details={"report_type": report["report_type"], "content_id": report["content_id"]},
    )
    return {"id": report["id"], "status": report["status"], "message": "Report marked as resolved successfully"}


# ============ Contact ============


@app.post("/api/contact", status_code=201, response_model=MessageResponse)
@limiter.limit(RATE_LIMIT_CONTACT)
async def contact(request: Request, data: ContactRequest):
    message = await storage.create_contact_message(data.model_dump())
    logger.info(f"Contact message {message['id']} received from {get_real_ip(request)}")
    return {"message": "Message received"}
