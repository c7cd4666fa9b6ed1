"""Tests for AuthSession state transitions."""

from unittest import mock

import pytest

from client.http_client import XPlayAPIError
from client.session import AuthSession

ALICE = {"id": 1, "username": "alice", "email": "alice@example.com", "is_admin": False}


def make_session(**methods) -> AuthSession:
    client = mock.Mock()
    for name, value in methods.items():
        setattr(client, name, mock.AsyncMock(**value))
    return AuthSession(client)


class TestProbe:
    """Tests for AuthSession.probe."""

    async def test_existing_session(self):
        session = make_session(me={"return_value": ALICE})
        assert await session.probe() == ALICE
        assert session.is_authenticated
        assert session.error is None
        assert session.is_loading is False

    async def test_no_session_is_not_an_error(self):
        session = make_session(me={"side_effect": XPlayAPIError(401, "Not authenticated")})
        assert await session.probe() is None
        assert not session.is_authenticated
        assert session.error is None

    async def test_server_error_reported(self):
        session = make_session(me={"side_effect": XPlayAPIError(500, "Failed to load user")})
        await session.probe()
        assert session.error == "Failed to load user"


class TestLogin:
    """Tests for AuthSession.login."""

    async def test_success(self):
        session = make_session(login={"return_value": ALICE})
        assert await session.login("alice@example.com", "secret123") is True
        assert session.user == ALICE
        session.client.login.assert_awaited_once_with("alice@example.com", "secret123")

    async def test_failure_sets_error(self):
        session = make_session(login={"side_effect": XPlayAPIError(401, "Invalid email or password")})
        assert await session.login("alice@example.com", "wrong") is False
        assert not session.is_authenticated
        assert session.error == "Invalid email or password"
        assert session.is_loading is False

    async def test_success_clears_previous_error(self):
        session = make_session(login={"side_effect": [XPlayAPIError(401, "Invalid email or password"), ALICE]})
        await session.login("alice@example.com", "wrong")
        await session.login("alice@example.com", "secret123")
        assert session.error is None
        assert session.is_authenticated

    async def test_is_admin(self):
        session = make_session(login={"return_value": dict(ALICE, is_admin=True)})
        assert session.is_admin is False
        await session.login("alice@example.com", "secret123")
        assert session.is_admin is True


class TestRegister:
    """Tests for AuthSession.register."""

    async def test_loads_full_user(self):
        session = make_session(register={"return_value": {"id": 1, "username": "alice"}}, me={"return_value": ALICE})
        assert await session.register("alice", "alice@example.com", "secret123", "secret123") is True
        assert session.user == ALICE

    async def test_falls_back_to_summary(self):
        summary = {"id": 1, "username": "alice"}
        session = make_session(
            register={"return_value": summary},
            me={"side_effect": XPlayAPIError(0, "Connection error: reset")},
        )
        assert await session.register("alice", "alice@example.com", "secret123", "secret123") is True
        assert session.user == summary

    async def test_validation_error_message(self):
        error = XPlayAPIError(
            400,
            "Validation error",
            [{"path": "confirm_password", "message": "Passwords do not match", "code": "password_mismatch"}],
        )
        session = make_session(register={"side_effect": error})
        assert await session.register("alice", "alice@example.com", "secret123", "other") is False
        assert session.error == "Passwords do not match"


class TestLogout:
    """Tests for AuthSession.logout."""

    @pytest.fixture
    async def logged_in(self):
        session = make_session(login={"return_value": ALICE}, logout={"return_value": {"message": "Logged out"}})
        await session.login("alice@example.com", "secret123")
        return session

    async def test_clears_user(self, logged_in):
        await logged_in.logout()
        assert not logged_in.is_authenticated
        assert logged_in.error is None

    async def test_clears_user_when_server_fails(self, logged_in):
        logged_in.client.logout.side_effect = XPlayAPIError(0, "Connection error: refused")
        await logged_in.logout()
        assert not logged_in.is_authenticated
        assert logged_in.error == "Connection error: refused"
