"""Tests for portfolio balances, status multipliers, and the portfolio API."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException
from httpx import ASGITransport, AsyncClient

from garden.services.portfolio_service import (
    ensure_portfolio,
    get_portfolio,
    get_reward_multiplier,
    get_status_levels,
    get_status_summary,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FAKE_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")


def _make_mock_db():
    return AsyncMock()


def _row(*values):
    return values


def _result(fetchone=None, fetchall=None):
    result = MagicMock()
    result.fetchone.return_value = fetchone
    result.fetchall.return_value = fetchall or []
    return result


def _portfolio_row(available="0", lock_90="0", lock_360="0", total="0"):
    return _row(
        FAKE_USER_ID, Decimal(available), Decimal("0"), Decimal(lock_90),
        Decimal(lock_360), Decimal(total), None, None, None, None,
    )


def _make_fake_user():
    user = MagicMock()
    user.user_id = FAKE_USER_ID
    user.is_active = True
    user.is_admin = False
    return user


# ---------------------------------------------------------------------------
# 1. Portfolio reads
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_ensure_portfolio_is_idempotent_insert():
    mock_db = _make_mock_db()

    await ensure_portfolio(mock_db, FAKE_USER_ID)

    sql = str(mock_db.execute.call_args[0][0])
    assert "ON CONFLICT (user_id) DO NOTHING" in sql


@pytest.mark.asyncio
async def test_get_portfolio_derives_tier():
    mock_db = _make_mock_db()
    mock_db.execute.return_value = _result(fetchone=_portfolio_row(available="12", lock_360="2500"))

    portfolio = await get_portfolio(mock_db, FAKE_USER_ID)

    assert portfolio.available_nctr == Decimal("12")
    assert portfolio.tier == "gold"


@pytest.mark.asyncio
async def test_get_portfolio_missing():
    mock_db = _make_mock_db()
    mock_db.execute.return_value = _result(fetchone=None)

    with pytest.raises(HTTPException) as exc_info:
        await get_portfolio(mock_db, FAKE_USER_ID)

    assert exc_info.value.status_code == 404


# ---------------------------------------------------------------------------
# 2. Multipliers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_reward_multiplier_from_status_level():
    mock_db = _make_mock_db()
    mock_db.execute.return_value = _result(fetchone=_row(Decimal("1.150")))

    multiplier = await get_reward_multiplier(mock_db, FAKE_USER_ID)

    assert multiplier == Decimal("1.150")
    sql = str(mock_db.execute.call_args[0][0])
    assert "min_locked_nctr <= p.lock_360_nctr" in sql
    assert "ORDER BY l.min_locked_nctr DESC" in sql


@pytest.mark.asyncio
async def test_reward_multiplier_defaults_to_one():
    mock_db = _make_mock_db()
    mock_db.execute.return_value = _result(fetchone=None)

    assert await get_reward_multiplier(mock_db, FAKE_USER_ID) == Decimal("1")


@pytest.mark.asyncio
async def test_status_summary():
    mock_db = _make_mock_db()
    mock_db.execute.side_effect = [
        _result(fetchone=_portfolio_row(lock_360="1500")),
        _result(fetchone=_row(Decimal("1.050"))),
    ]

    summary = await get_status_summary(mock_db, FAKE_USER_ID)

    assert summary.tier == "silver"
    assert summary.tier_name == "Silver"
    assert summary.reward_multiplier == Decimal("1.050")
    assert summary.next_tier == "gold"
    assert summary.nctr_to_next_tier == Decimal("1000")


@pytest.mark.asyncio
async def test_status_levels():
    mock_db = _make_mock_db()
    mock_db.execute.return_value = _result(fetchall=[
        _row("bronze", Decimal("0.00000001"), 360, Decimal("1.000"), "Entry", None),
        _row("silver", Decimal("1000"), 360, Decimal("1.050"), "5%", ["Early access"]),
    ])

    levels = await get_status_levels(mock_db)

    assert [level.status_name for level in levels] == ["bronze", "silver"]
    assert levels[1].benefits == ["Early access"]


# ---------------------------------------------------------------------------
# 3. Endpoints
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_portfolio_endpoint():
    from garden.api.dependencies import get_current_user
    from garden.database import get_db
    from garden.main import app

    mock_session = AsyncMock()
    mock_session.execute.side_effect = [
        _result(),  # ensure_portfolio
        _result(fetchone=_portfolio_row(available="5", lock_90="10", lock_360="0", total="15")),
    ]

    async def _override_get_db():
        yield mock_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_current_user] = _make_fake_user

    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/api/v1/portfolio")

        assert resp.status_code == 200
        data = resp.json()
        assert data["tier"] == "starter"
        assert Decimal(data["lock_90_nctr"]) == Decimal("10")
        assert resp.headers["Cache-Control"] == "no-store"
    finally:
        app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_portfolio_endpoint_requires_auth():
    from garden.database import get_db
    from garden.main import app

    mock_session = AsyncMock()

    async def _override_get_db():
        yield mock_session

    app.dependency_overrides[get_db] = _override_get_db

    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/api/v1/portfolio")

        assert resp.status_code == 401
        mock_session.execute.assert_not_called()
    finally:
        app.dependency_overrides.clear()
