"""Tests for access-token verification and the authenticated-user dependency."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException
from httpx import ASGITransport, AsyncClient
from jose import jwt

from garden.config import settings
from garden.services.auth_service import create_access_token, get_user, verify_token

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_TEST_SECRET = "test-secret-key-for-unit-tests"
FAKE_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture(autouse=True)
def _jwt_secret():
    with patch.object(settings, "JWT_SECRET_KEY", _TEST_SECRET):
        yield


def _make_fake_user(is_active: bool = True, is_admin: bool = False) -> MagicMock:
    """Build a MagicMock that quacks like a User ORM instance."""
    user = MagicMock()
    user.user_id = FAKE_USER_ID
    user.email = "member@example.com"
    user.is_active = is_active
    user.is_admin = is_admin
    user.created_at = datetime.now(timezone.utc)
    return user


def _build_scalar_result(value):
    """Return a mock SQLAlchemy result whose scalar_one_or_none() returns *value*."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _encode(claims: dict) -> str:
    return jwt.encode(claims, _TEST_SECRET, algorithm="HS256")


def _streak_results():
    """Streak config lookup, then an empty streak row."""
    config_result = MagicMock()
    config_result.fetchall.return_value = []
    streak_result = MagicMock()
    streak_result.fetchone.return_value = None
    return [config_result, streak_result]


# ---------------------------------------------------------------------------
# 1. Token verification
# ---------------------------------------------------------------------------


def test_token_round_trip():
    token = create_access_token(FAKE_USER_ID)
    payload = verify_token(token)

    assert payload["sub"] == str(FAKE_USER_ID)
    assert payload["aud"] == "authenticated"


def test_expired_token_rejected():
    token = create_access_token(FAKE_USER_ID, expires_minutes=-5)

    with pytest.raises(HTTPException) as exc_info:
        verify_token(token)

    assert exc_info.value.status_code == 401


def test_wrong_audience_rejected():
    token = _encode({
        "sub": str(FAKE_USER_ID),
        "aud": "anon",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    })

    with pytest.raises(HTTPException) as exc_info:
        verify_token(token)

    assert exc_info.value.detail == "Invalid or expired token"


def test_wrong_secret_rejected():
    token = jwt.encode(
        {"sub": str(FAKE_USER_ID), "aud": "authenticated"},
        "some-other-secret",
        algorithm="HS256",
    )

    with pytest.raises(HTTPException):
        verify_token(token)


def test_token_without_subject_rejected():
    token = _encode({
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    })

    with pytest.raises(HTTPException) as exc_info:
        verify_token(token)

    assert exc_info.value.detail == "Token has no subject"


# ---------------------------------------------------------------------------
# 2. Member lookup
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_get_user_inactive_is_not_found():
    mock_db = AsyncMock()
    mock_db.execute.return_value = _build_scalar_result(_make_fake_user(is_active=False))

    with pytest.raises(HTTPException) as exc_info:
        await get_user(mock_db, FAKE_USER_ID)

    assert exc_info.value.status_code == 404


# ---------------------------------------------------------------------------
# 3. get_current_user via the API
# ---------------------------------------------------------------------------


async def _get_streak(mock_session, headers=None, cookies=None):
    from garden.database import get_db
    from garden.main import app

    async def _override_get_db():
        yield mock_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(
            transport=transport, base_url="http://test", cookies=cookies,
        ) as client:
            return await client.get("/api/v1/checkin/streak", headers=headers)
    finally:
        app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_bearer_token_authenticates():
    mock_session = AsyncMock()
    mock_session.execute.side_effect = [
        _build_scalar_result(_make_fake_user()),
        *_streak_results(),
    ]

    resp = await _get_streak(
        mock_session,
        headers={"Authorization": f"Bearer {create_access_token(FAKE_USER_ID)}"},
    )

    assert resp.status_code == 200
    assert resp.json()["streak"]["current_streak"] == 0


@pytest.mark.asyncio
async def test_cookie_token_authenticates():
    mock_session = AsyncMock()
    mock_session.execute.side_effect = [
        _build_scalar_result(_make_fake_user()),
        *_streak_results(),
    ]

    resp = await _get_streak(
        mock_session,
        cookies={"access_token": create_access_token(FAKE_USER_ID)},
    )

    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_deactivated_user_rejected():
    mock_session = AsyncMock()
    mock_session.execute.return_value = _build_scalar_result(_make_fake_user(is_active=False))

    resp = await _get_streak(
        mock_session,
        headers={"Authorization": f"Bearer {create_access_token(FAKE_USER_ID)}"},
    )

    assert resp.status_code == 401
    assert resp.json()["detail"] == "User not found or deactivated"


@pytest.mark.asyncio
async def test_garbage_token_rejected():
    mock_session = AsyncMock()

    resp = await _get_streak(mock_session, headers={"Authorization": "Bearer not-a-jwt"})

    assert resp.status_code == 401
    mock_session.execute.assert_not_called()
