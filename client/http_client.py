"""HTTP client for the XPlay REST API."""

from contextlib import ExitStack
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from config import API_URL


class XPlayAPIError(Exception):
    """Exception raised when the XPlay API returns an error."""

    def __init__(self, status_code: int, message: str, errors: Optional[List[dict]] = None):
        self.status_code = status_code
        self.message = message
        self.errors = errors or []
        super().__init__(f"API error {status_code}: {message}")

    @property
    def user_message(self) -> str:
        """One line fit for display. Validation errors show the first failing field's message."""
        if self.errors:
            return self.errors[0].get("message") or self.message
        return self.message


# Timeout presets (seconds)
TIMEOUT_DEFAULT = 30.0
TIMEOUT_FILE_TRANSFER = 300.0


def _error_from_response(resp: httpx.Response) -> XPlayAPIError:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("detail") or resp.reason_phrase
        return XPlayAPIError(resp.status_code, str(detail), body.get("errors"))
    return XPlayAPIError(resp.status_code, resp.text or resp.reason_phrase)


def _form_fields(values: Dict[str, Any]) -> Dict[str, str]:
    """Multipart form values: drop None, lower-case booleans, join lists."""
    data = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, bool):
            data[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            data[key] = ",".join(str(item) for item in value)
        else:
            data[key] = str(value)
    return data


class XPlayClient:
    """
    Typed wrapper over every XPlay endpoint.

    The session cookie set by login/register lives in the underlying
    httpx cookie jar and is sent on every following request. Nothing is
    retried; failures raise XPlayAPIError.
    """

    def __init__(
        self,
        base_url: str = API_URL,
        timeout: float = TIMEOUT_DEFAULT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Base URL of the API (e.g., http://localhost:8000)
            timeout: Default request timeout in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            limits = httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            )
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                limits=limits,
                transport=self.transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> Any:
        """Make one API request and return the decoded JSON body."""
        client = await self._get_client()
        try:
            resp = await client.request(
                method,
                path,
                json=json,
                timeout=timeout if timeout is not None else self.timeout,
                **kwargs,
            )
        except httpx.RequestError as e:
            raise XPlayAPIError(0, f"Connection error: {e}")

        if resp.status_code >= 400:
            raise _error_from_response(resp)
        return resp.json()

    # ============ Auth ============

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        confirm_password: str,
        display_name: Optional[str] = None,
    ) -> dict:
        payload = {
            "username": username,
            "email": email,
            "password": password,
            "confirm_password": confirm_password,
        }
        if display_name is not None:
            payload["display_name"] = display_name
        return await self._request("POST", "/api/auth/register", json=payload)

    async def login(self, email: str, password: str) -> dict:
        return await self._request("POST", "/api/auth/login", json={"email": email, "password": password})

    async def logout(self) -> dict:
        return await self._request("POST", "/api/auth/logout")

    async def me(self) -> dict:
        return await self._request("GET", "/api/auth/me")

    async def send_verification(self, email: str) -> dict:
        return await self._request("POST", "/api/auth/send-verification", json={"email": email})

    async def verify_email(self, email: str, code: str) -> dict:
        return await self._request("POST", "/api/auth/verify-email", json={"email": email, "code": code})

    # ============ Videos ============

    async def list_videos(self, limit: int = 20, offset: int = 0) -> List[dict]:
        return await self._request("GET", "/api/videos", params={"limit": limit, "offset": offset})

    async def recent_videos(self) -> List[dict]:
        return await self._request("GET", "/api/videos/recent")

    async def trending_videos(self) -> List[dict]:
        return await self._request("GET", "/api/videos/trending")

    async def quickie_videos(self) -> List[dict]:
        return await self._request("GET", "/api/videos/quickies")

    async def get_video(self, video_id: int) -> dict:
        return await self._request("GET", f"/api/videos/{video_id}")

    async def upload_video(
        self,
        video_path: Path,
        title: str,
        thumbnail_path: Optional[Path] = None,
        description: Optional[str] = None,
        duration: Optional[int] = None,
        categories: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
        is_quickie: bool = False,
        is_published: bool = True,
    ) -> dict:
        """
        Upload a video file with its metadata.

        Args:
            video_path: Local video file
            title: Video title
            thumbnail_path: Optional local thumbnail image
            categories: Sent as a comma-separated form value
            tags: Sent as a comma-separated form value
        """
        data = _form_fields(
            {
                "title": title,
                "description": description,
                "duration": duration,
                "categories": categories,
                "tags": tags,
                "is_quickie": is_quickie,
                "is_published": is_published,
            }
        )
        with ExitStack() as stack:
            video_path = Path(video_path)
            files = {"video_file": (video_path.name, stack.enter_context(open(video_path, "rb")))}
            if thumbnail_path is not None:
                thumbnail_path = Path(thumbnail_path)
                files["thumbnail_file"] = (thumbnail_path.name, stack.enter_context(open(thumbnail_path, "rb")))
            return await self._request(
                "POST",
                "/api/videos",
                data=data,
                files=files,
                timeout=TIMEOUT_FILE_TRANSFER,
            )

    async def update_video(self, video_id: int, **fields) -> dict:
        """Update title, description, categories, tags or is_published."""
        return await self._request("PATCH", f"/api/videos/{video_id}", json=fields)

    async def delete_video(self, video_id: int) -> dict:
        return await self._request("DELETE", f"/api/videos/{video_id}")

    async def upload_thumbnail(self, video_id: int, thumbnail_path: Path) -> dict:
        thumbnail_path = Path(thumbnail_path)
        with open(thumbnail_path, "rb") as f:
            return await self._request(
                "POST",
                f"/api/videos/{video_id}/thumbnail",
                files={"thumbnail_file": (thumbnail_path.name, f)},
                timeout=TIMEOUT_FILE_TRANSFER,
            )

    async def like_video(self, video_id: int) -> dict:
        return await self._request("POST", f"/api/videos/{video_id}/like")

    async def dislike_video(self, video_id: int) -> dict:
        return await self._request("POST", f"/api/videos/{video_id}/dislike")

    async def record_view(self, video_id: int) -> dict:
        return await self._request("POST", f"/api/videos/{video_id}/view")

    async def list_comments(self, video_id: int) -> List[dict]:
        return await self._request("GET", f"/api/videos/{video_id}/comments")

    async def add_comment(self, video_id: int, content: str) -> dict:
        return await self._request("POST", f"/api/videos/{video_id}/comments", json={"content": content})

    # ============ Channels ============

    async def my_channels(self) -> List[dict]:
        return await self._request("GET", "/api/channels/user")

    async def get_channel(self, channel_id: int) -> dict:
        return await self._request("GET", f"/api/channels/{channel_id}")

    async def create_channel(
        self,
        name: str,
        description: Optional[str] = None,
        banner_image: Optional[str] = None,
    ) -> dict:
        data = _form_fields({"name": name, "description": description, "banner_image": banner_image})
        return await self._request("POST", "/api/channels", data=data)

    async def update_channel(self, channel_id: int, **fields) -> dict:
        return await self._request("PATCH", f"/api/channels/{channel_id}", data=_form_fields(fields))

    async def subscribe(self, channel_id: int) -> dict:
        return await self._request("POST", f"/api/channels/{channel_id}/subscribe")

    async def unsubscribe(self, channel_id: int) -> dict:
        return await self._request("DELETE", f"/api/channels/{channel_id}/subscribe")

    # ============ Users ============

    async def user_subscriptions(self, user_id: int) -> List[dict]:
        return await self._request("GET", f"/api/users/{user_id}/subscriptions")

    async def user_liked_videos(self, user_id: int) -> List[dict]:
        return await self._request("GET", f"/api/users/{user_id}/liked-videos")

    async def user_history(self, user_id: int) -> List[dict]:
        return await self._request("GET", f"/api/users/{user_id}/history")

    async def update_profile(self, **fields) -> dict:
        """Update username, display_name or bio of the logged-in user."""
        return await self._request("PATCH", "/api/users/profile", data=_form_fields(fields))

    async def dashboard_stats(self) -> dict:
        return await self._request("GET", "/api/dashboard/stats")

    async def discover(self) -> List[dict]:
        return await self._request("GET", "/api/discover")

    async def create_report(
        self,
        report_type: str,
        content_id: int,
        reason: str,
        details: Optional[str] = None,
    ) -> dict:
        payload = {"report_type": report_type, "content_id": content_id, "reason": reason}
        if details is not None:
            payload["details"] = details
        return await self._request("POST", "/api/reports", json=payload)

    # ============ Admin ============

    async def admin_users(self) -> List[dict]:
        return await self._request("GET", "/api/admin/users")

    async def admin_user_action(self, user_id: int, action: str) -> dict:
        """Apply ban, unban, promote or demote to a user."""
        return await self._request("PATCH", f"/api/admin/users/{user_id}/{action}")

    async def admin_delete_user(self, user_id: int) -> dict:
        return await self._request("DELETE", f"/api/admin/users/{user_id}")

    async def admin_videos(self) -> List[dict]:
        return await self._request("GET", "/api/admin/videos")

    async def admin_create_video(self, **fields) -> dict:
        return await self._request("POST", "/api/admin/videos", json=fields)

    async def admin_delete_video(self, video_id: int) -> dict:
        return await self._request("DELETE", f"/api/admin/videos/{video_id}")

    async def admin_delete_channel(self, channel_id: int) -> dict:
        return await self._request("DELETE", f"/api/admin/channels/{channel_id}")

    async def get_site_settings(self) -> dict:
        return await self._request("GET", "/api/admin/site-settings")

    async def update_site_settings(self, **fields) -> dict:
        return await self._request("PUT", "/api/admin/site-settings", json=fields)

    async def upload_intro_video(self, video_path: Path, duration: Optional[int] = None) -> dict:
        video_path = Path(video_path)
        with open(video_path, "rb") as f:
            return await self._request(
                "POST",
                "/api/admin/upload-intro-video",
                data=_form_fields({"duration": duration}),
                files={"file": (video_path.name, f)},
                timeout=TIMEOUT_FILE_TRANSFER,
            )

    async def get_site_ads(self) -> dict:
        return await self._request("GET", "/api/admin/ads/site")

    async def update_site_ads(self, site_ads_enabled: bool, site_ad_urls: List[str], site_ad_positions: List[str]) -> dict:
        return await self._request(
            "POST",
            "/api/admin/ads/site",
            json={
                "site_ads_enabled": site_ads_enabled,
                "site_ad_urls": site_ad_urls,
                "site_ad_positions": site_ad_positions,
            },
        )

    async def update_video_ads(
        self,
        video_id: int,
        has_ads: bool,
        ad_url: Optional[str] = None,
        ad_start_time: Optional[int] = None,
        ad_skippable: bool = True,
    ) -> dict:
        return await self._request(
            "POST",
            f"/api/admin/ads/videos/{video_id}",
            json={
                "has_ads": has_ads,
                "ad_url": ad_url,
                "ad_start_time": ad_start_time,
                "ad_skippable": ad_skippable,
            },
        )

    async def admin_reports(self, status: Optional[str] = None) -> List[dict]:
        params = {"status": status} if status else None
        return await self._request("GET", "/api/admin/reports", params=params)

    async def resolve_report(self, report_id: int) -> dict:
        return await self._request("POST", f"/api/admin/reports/{report_id}/resolve")

    # ============ Misc ============

    async def contact(self, name: str, email: str, subject: str, message: str) -> dict:
        return await self._request(
            "POST",
            "/api/contact",
            json={"name": name, "email": email, "subject": subject, "message": message},
        )

    async def health(self) -> dict:
        """Health payload. Returned as-is for 503 so callers can read the failing checks."""
        client = await self._get_client()
        try:
            resp = await client.get("/health")
        except httpx.RequestError as e:
            raise XPlayAPIError(0, f"Connection error: {e}")
        if resp.status_code not in (200, 503):
            raise _error_from_response(resp)
        return resp.json()
