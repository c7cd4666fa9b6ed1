"""
Client-side auth state.

AuthSession mirrors what the web frontend keeps in its auth context: the
current user, a loading flag while a call is in flight, and one error string.

    unauthenticated --login/register ok--> authenticated --logout--> unauthenticated

A failed login or register leaves the session unauthenticated with `error` set.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from client.http_client import XPlayAPIError, XPlayClient

logger = logging.getLogger(__name__)


class AuthSession:
    """Tracks the logged-in user for one XPlayClient (and its cookie jar)."""

    def __init__(self, client: XPlayClient):
        self.client = client
        self.user: Optional[Dict[str, Any]] = None
        self.is_loading = False
        self.error: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return bool(self.user and self.user.get("is_admin"))

    @asynccontextmanager
    async def _loading(self):
        self.is_loading = True
        self.error = None
        try:
            yield
        finally:
            self.is_loading = False

    async def probe(self) -> Optional[Dict[str, Any]]:
        """
        Ask the server who the ambient session cookie belongs to.

        A 401 just means nobody is logged in and is not reported as an error.
        """
        async with self._loading():
            try:
                self.user = await self.client.me()
            except XPlayAPIError as e:
                self.user = None
                if e.status_code != 401:
                    logger.warning(f"Session probe failed: {e}")
                    self.error = e.user_message
        return self.user

    async def login(self, email: str, password: str) -> bool:
        """Log in. Returns True on success; on failure `error` holds the reason."""
        async with self._loading():
            try:
                self.user = await self.client.login(email, password)
            except XPlayAPIError as e:
                self.user = None
                self.error = e.user_message
                return False
        return True

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        confirm_password: str,
        display_name: Optional[str] = None,
    ) -> bool:
        """
        Create an account and log in.

        The register response is a summary, so the full user is loaded from
        /api/auth/me afterwards.
        """
        async with self._loading():
            try:
                created = await self.client.register(username, email, password, confirm_password, display_name)
            except XPlayAPIError as e:
                self.user = None
                self.error = e.user_message
                return False
            try:
                self.user = await self.client.me()
            except XPlayAPIError as e:
                logger.warning(f"Could not load the new account after registering: {e}")
                self.user = created
        return True

    async def logout(self) -> None:
        """Log out. Local state is cleared even when the server call fails."""
        async with self._loading():
            try:
                await self.client.logout()
            except XPlayAPIError as e:
                self.error = e.user_message
            finally:
                self.user = None
