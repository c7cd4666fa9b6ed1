"""
User authentication: password hashing, server-side sessions, and the
FastAPI dependencies that resolve the current user from the session cookie.

The browser only ever holds an opaque, HTTP-only session token. Every request
looks the token up in user_sessions; expired tokens are rejected and removed.
"""

import base64
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, Response

from api.common import ensure_utc, get_real_ip
from config import (
    BOOTSTRAP_ADMIN_EMAIL,
    BOOTSTRAP_ADMIN_PASSWORD,
    BOOTSTRAP_ADMIN_USERNAME,
    PASSWORD_HASH_ITERATIONS,
    SECURE_COOKIES,
    SESSION_COOKIE_NAME,
    SESSION_EXPIRY_HOURS,
)

# Security event logger for authentication events
security_logger = logging.getLogger("security.auth")

PASSWORD_HASH_ALGORITHM = "pbkdf2_sha256"
PASSWORD_SALT_BYTES = 16


# ============ Passwords ============


def hash_password(password: str, iterations: Optional[int] = None) -> str:
    """
    Hash a password with salted PBKDF2-HMAC-SHA256.

    Format: "pbkdf2_sha256$<iterations>$<salt>$<hash>" with base64 salt/hash,
    so the work factor can be raised later without invalidating old hashes.
    """
    iterations = iterations or PASSWORD_HASH_ITERATIONS
    salt = secrets.token_bytes(PASSWORD_SALT_BYTES)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return "$".join(
        [
            PASSWORD_HASH_ALGORITHM,
            str(iterations),
            base64.b64encode(salt).decode("ascii"),
            base64.b64encode(digest).decode("ascii"),
        ]
    )


def verify_password(password: str, stored_hash: Optional[str]) -> bool:
    """Check a password against a stored hash. Malformed hashes never match."""
    if not stored_hash:
        return False
    try:
        algorithm, iterations, salt_b64, hash_b64 = stored_hash.split("$")
        if algorithm != PASSWORD_HASH_ALGORITHM:
            return False
        salt = base64.b64decode(salt_b64)
        expected = base64.b64decode(hash_b64)
        digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, int(iterations))
    except ValueError:
        return False
    # Constant-time comparison
    return hmac.compare_digest(digest, expected)


def build_bootstrap_admin() -> Optional[Dict[str, Any]]:
    """User dict for the configured bootstrap admin, or None when not configured."""
    if not BOOTSTRAP_ADMIN_EMAIL or not BOOTSTRAP_ADMIN_PASSWORD:
        return None
    return {
        "username": BOOTSTRAP_ADMIN_USERNAME,
        "email": BOOTSTRAP_ADMIN_EMAIL,
        "password": hash_password(BOOTSTRAP_ADMIN_PASSWORD),
        "display_name": BOOTSTRAP_ADMIN_USERNAME,
    }


# ============ Email verification codes ============

VERIFICATION_CODE_DIGITS = 6


def generate_verification_code() -> str:
    """Random 6-digit code, never starting with 0."""
    low = 10 ** (VERIFICATION_CODE_DIGITS - 1)
    return str(low + secrets.randbelow(9 * low))


def hash_verification_code(code: str) -> str:
    return hashlib.sha256(code.strip().encode("utf-8")).hexdigest()


def verification_code_matches(code: str, code_hash: str) -> bool:
    # Constant-time comparison
    return hmac.compare_digest(hash_verification_code(code), code_hash)


# ============ Sessions ============


async def create_user_session(
    storage,
    user_id: int,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> str:
    """Create a new session for a user and return the session token."""
    session_token = secrets.token_urlsafe(48)  # 64 chars base64
    expires_at = datetime.now(timezone.utc) + timedelta(hours=SESSION_EXPIRY_HOURS)

    await storage.create_session(
        user_id=user_id,
        session_token=session_token,
        expires_at=expires_at,
        ip_address=ip_address[:45] if ip_address else None,
        user_agent=user_agent,
    )

    security_logger.info(
        "User session created",
        extra={
            "event": "session_created",
            "user_id": user_id,
            "client_ip": ip_address,
            "expires_at": expires_at.isoformat(),
        },
    )
    return session_token


async def validate_session_token(storage, session_token: str) -> Optional[int]:
    """
    Validate a session token against the database.

    Returns the user id for a valid session, None otherwise. Expired sessions
    are deleted on sight. Updates last_used_at for valid sessions.
    """
    if not session_token:
        return None

    session = await storage.get_session(session_token)
    if session is None:
        return None

    if ensure_utc(session["expires_at"]) <= datetime.now(timezone.utc):
        await storage.delete_session(session_token)
        security_logger.info(
            "Expired session rejected",
            extra={"event": "session_expired", "user_id": session["user_id"]},
        )
        return None

    await storage.touch_session(session["id"])
    return session["user_id"]


async def delete_user_session(storage, session_token: str) -> None:
    """Delete a session if it exists."""
    await storage.delete_session(session_token)


async def cleanup_expired_sessions(storage) -> int:
    """Delete expired sessions. Returns the number of sessions deleted."""
    return await storage.delete_expired_sessions()


def set_session_cookie(response: Response, session_token: str) -> None:
    # SameSite=Lax allows the cookie to be sent with top-level navigations
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_token,
        httponly=True,
        secure=SECURE_COOKIES,
        samesite="lax",
        max_age=SESSION_EXPIRY_HOURS * 3600,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=SECURE_COOKIES,
        samesite="lax",
    )


# ============ Dependencies ============


async def get_current_user(request: Request) -> Optional[Dict[str, Any]]:
    """
    Resolve the logged-in user from the session cookie.

    Returns None for anonymous requests, unknown or expired sessions, and
    banned users. The result is cached on request.state for the request.
    """
    if hasattr(request.state, "current_user"):
        return request.state.current_user

    storage = request.app.state.storage
    user = None
    session_token = request.cookies.get(SESSION_COOKIE_NAME, "")
    if session_token:
        user_id = await validate_session_token(storage, session_token)
        if user_id is not None:
            user = await storage.get_user(user_id)
            if user is not None and user["is_banned"]:
                security_logger.warning(
                    "Banned user presented a session",
                    extra={"event": "banned_session", "user_id": user_id, "client_ip": get_real_ip(request)},
                )
                user = None

    request.state.current_user = user
    return user


async def require_user(request: Request) -> Dict[str, Any]:
    """Dependency for endpoints that need a logged-in user (401 otherwise)."""
    user = await get_current_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


async def require_admin(request: Request) -> Dict[str, Any]:
    """Dependency for admin endpoints: 401 when anonymous, 403 for non-admins."""
    user = await get_current_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not user["is_admin"]:
        security_logger.warning(
            "Admin access denied",
            extra={
                "event": "admin_denied",
                "user_id": user["id"],
                "path": request.url.path,
                "client_ip": get_real_ip(request),
            },
        )
        raise HTTPException(status_code=403, detail="Forbidden: Admin access required")
    return user
