"""Tests for daily check-ins and streak bonuses.

Run with:
    python -m pytest tests/test_checkin.py -v
"""

from __future__ import annotations

import json
import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException

from garden.services.checkin_service import (
    StreakConfig,
    days_until_next_bonus,
    get_streak,
    get_streak_config,
    next_streak_length,
    process_daily_checkin,
    streak_progress,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FAKE_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
FAKE_LOCK_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
TODAY = date(2025, 3, 14)
YESTERDAY = date(2025, 3, 13)


def _make_mock_db():
    return AsyncMock()


def _row(*values):
    return values


def _result(fetchone=None, fetchall=None):
    result = MagicMock()
    result.fetchone.return_value = fetchone
    result.fetchall.return_value = fetchall or []
    return result


def _daily_award_results():
    """Duplicate check, ensure_portfolio, available credit, transaction insert."""
    return [
        _result(fetchone=None),
        _result(),
        _result(),
        _result(fetchone=_row(uuid.uuid4())),
    ]


def _bonus_award_results():
    return [
        _result(fetchone=None),
        _result(),
        _result(),
        _result(fetchone=_row(FAKE_LOCK_ID)),
        _result(),
        _result(fetchone=_row(uuid.uuid4())),
    ]


# ---------------------------------------------------------------------------
# 1. Pure helpers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "streak,requirement,expected",
    [(0, 7, 7), (1, 7, 6), (6, 7, 1), (7, 7, 7), (9, 7, 5), (3, 0, 0)],
)
def test_days_until_next_bonus(streak, requirement, expected):
    assert days_until_next_bonus(streak, requirement) == expected


def test_streak_progress():
    assert streak_progress(0, 7) == 0.0
    assert streak_progress(7, 7) == 0.0
    assert streak_progress(14, 4) == 50.0
    assert streak_progress(5, 0) == 0.0


def test_next_streak_length():
    assert next_streak_length(4, YESTERDAY, TODAY) == 5
    assert next_streak_length(4, date(2025, 3, 10), TODAY) == 1
    assert next_streak_length(0, None, TODAY) == 1


# ---------------------------------------------------------------------------
# 2. Config and reads
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_streak_config_defaults():
    mock_db = _make_mock_db()
    mock_db.execute.return_value = _result(fetchall=[])

    config = await get_streak_config(mock_db)

    assert config == StreakConfig()
    assert config.streak_requirement == 7
    assert config.bonus_lock_type == "360LOCK"


@pytest.mark.asyncio
async def test_streak_config_from_json_string():
    mock_db = _make_mock_db()
    stored = json.dumps({"streak_requirement": 5, "bonus_nctr_amount": "250"})
    mock_db.execute.return_value = _result(
        fetchall=[_row("daily_checkin_streak_config", stored)],
    )

    config = await get_streak_config(mock_db)

    assert config.streak_requirement == 5
    assert config.bonus_nctr_amount == Decimal("250")


@pytest.mark.asyncio
async def test_get_streak_without_history():
    mock_db = _make_mock_db()
    mock_db.execute.return_value = _result(fetchone=None)

    streak = await get_streak(mock_db, FAKE_USER_ID)

    assert streak.current_streak == 0
    assert streak.last_checkin_date is None


# ---------------------------------------------------------------------------
# 3. test_first_checkin
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_first_checkin():
    mock_db = _make_mock_db()
    mock_db.execute.side_effect = [
        _result(fetchall=[]),                   # streak config
        _result(fetchone=None),                 # streak row
        _result(fetchone=_row(Decimal("15"))),  # daily reward
        *_daily_award_results(),
        _result(),                              # streak upsert
    ]

    result = await process_daily_checkin(mock_db, FAKE_USER_ID, today=TODAY)

    assert mock_db.execute.call_count == 8
    assert result.nctr_awarded == Decimal("15")
    assert result.bonus_awarded is False
    assert result.bonus_amount == Decimal("0")
    assert result.days_until_next_bonus == 6
    assert result.streak.current_streak == 1
    assert result.streak.total_checkins == 1

    dup_params = mock_db.execute.call_args_list[3][0][1]
    assert dup_params["external_transaction_id"] == f"CHECKIN_{FAKE_USER_ID}_2025-03-14"

    upsert_params = mock_db.execute.call_args_list[7][0][1]
    assert upsert_params["last_checkin_date"] == TODAY


# ---------------------------------------------------------------------------
# 4. test_streak_bonus_on_seventh_day
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_streak_bonus_on_seventh_day():
    mock_db = _make_mock_db()
    mock_db.execute.side_effect = [
        _result(fetchall=[]),
        _result(fetchone=_row(6, 6, 20, 2, YESTERDAY)),
        _result(fetchone=None),                 # daily reward falls back to default
        *_daily_award_results(),
        *_bonus_award_results(),
        _result(),
    ]

    result = await process_daily_checkin(mock_db, FAKE_USER_ID, today=TODAY)

    assert mock_db.execute.call_count == 14
    assert result.nctr_awarded == Decimal("10")
    assert result.bonus_awarded is True
    assert result.bonus_amount == Decimal("100")
    assert result.days_until_next_bonus == 7
    assert result.streak.current_streak == 7
    assert result.streak.longest_streak == 7
    assert result.streak.streak_bonuses_earned == 3

    bonus_dup = mock_db.execute.call_args_list[7][0][1]
    assert bonus_dup["external_transaction_id"] == f"STREAK_{FAKE_USER_ID}_2025-03-14"
    bonus_lock = mock_db.execute.call_args_list[10][0][1]
    assert bonus_lock["lock_category"] == "360LOCK"


# ---------------------------------------------------------------------------
# 5. test_gap_resets_streak
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_gap_resets_streak():
    mock_db = _make_mock_db()
    mock_db.execute.side_effect = [
        _result(fetchall=[]),
        _result(fetchone=_row(6, 12, 40, 5, date(2025, 3, 1))),
        _result(fetchone=None),
        *_daily_award_results(),
        _result(),
    ]

    result = await process_daily_checkin(mock_db, FAKE_USER_ID, today=TODAY)

    assert result.streak.current_streak == 1
    assert result.streak.longest_streak == 12
    assert result.bonus_awarded is False


# ---------------------------------------------------------------------------
# 6. test_second_checkin_same_day
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_second_checkin_same_day():
    mock_db = _make_mock_db()
    mock_db.execute.side_effect = [
        _result(fetchall=[]),
        _result(fetchone=_row(3, 3, 3, 0, TODAY)),
    ]

    with pytest.raises(HTTPException) as exc_info:
        await process_daily_checkin(mock_db, FAKE_USER_ID, today=TODAY)

    assert exc_info.value.status_code == 409
    assert mock_db.execute.call_count == 2


# ---------------------------------------------------------------------------
# 7. test_disabled_streak_bonus
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_disabled_streak_bonus():
    mock_db = _make_mock_db()
    mock_db.execute.side_effect = [
        _result(fetchall=[_row("daily_checkin_streak_config", {"enabled": False})]),
        _result(fetchone=_row(6, 6, 6, 0, YESTERDAY)),
        _result(fetchone=None),
        *_daily_award_results(),
        _result(),
    ]

    result = await process_daily_checkin(mock_db, FAKE_USER_ID, today=TODAY)

    assert result.streak.current_streak == 7
    assert result.bonus_awarded is False
    assert mock_db.execute.call_count == 8


# ---------------------------------------------------------------------------
# 8. Endpoint
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_checkin_endpoint_twice_same_day():
    from datetime import datetime, timezone

    from httpx import ASGITransport, AsyncClient

    from garden.api.dependencies import get_current_user
    from garden.database import get_db
    from garden.main import app

    user = MagicMock()
    user.user_id = FAKE_USER_ID
    user.is_active = True

    today = datetime.now(timezone.utc).date()
    mock_session = AsyncMock()
    mock_session.execute.side_effect = [
        _result(fetchall=[]),
        _result(fetchone=_row(2, 2, 2, 0, today)),
    ]

    async def _override_get_db():
        yield mock_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_current_user] = lambda: user
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.post("/api/v1/checkin")

        assert resp.status_code == 409
        assert resp.json()["detail"] == "Already checked in today"
    finally:
        app.dependency_overrides.clear()
