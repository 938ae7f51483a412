"""Daily check-ins and streak bonuses."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import structlog
from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from garden.services.ledger_service import award_nctr
from garden.services.lock_service import LOCK_360
from garden.services.settings_service import get_opportunity_reward, get_site_settings

log = structlog.get_logger()

STREAK_CONFIG_KEY = "daily_checkin_streak_config"
DEFAULT_DAILY_REWARD = Decimal("10")


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class StreakConfig(BaseModel):
    enabled: bool = True
    streak_requirement: int = 7
    bonus_nctr_amount: Decimal = Decimal("100")
    bonus_lock_type: str = LOCK_360
    streak_bonus_description: str = "Check in 7 days in a row for a 360LOCK bonus"


class StreakResponse(BaseModel):
    current_streak: int = 0
    longest_streak: int = 0
    total_checkins: int = 0
    streak_bonuses_earned: int = 0
    last_checkin_date: Optional[date] = None


class CheckinResult(BaseModel):
    streak: StreakResponse
    nctr_awarded: Decimal
    bonus_awarded: bool
    bonus_amount: Decimal
    days_until_next_bonus: int


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def days_until_next_bonus(current_streak: int, requirement: int) -> int:
    if requirement <= 0:
        return 0
    remainder = current_streak % requirement
    return requirement if remainder == 0 else requirement - remainder


def streak_progress(current_streak: int, requirement: int) -> float:
    """Percent of the way through the current bonus cycle."""
    if requirement <= 0:
        return 0.0
    return (current_streak % requirement) / requirement * 100


def next_streak_length(current_streak: int, last_checkin: date | None, today: date) -> int:
    """Consecutive days extend the streak; any gap starts over at 1."""
    if last_checkin is not None and last_checkin == today - timedelta(days=1):
        return current_streak + 1
    return 1


# ---------------------------------------------------------------------------
# Service functions
# ---------------------------------------------------------------------------

async def get_streak_config(db: AsyncSession) -> StreakConfig:
    stored = await get_site_settings(db, [STREAK_CONFIG_KEY])
    value = stored.get(STREAK_CONFIG_KEY)
    if not isinstance(value, dict):
        return StreakConfig()
    return StreakConfig(**value)


async def get_streak(db: AsyncSession, user_id: uuid.UUID) -> StreakResponse:
    result = await db.execute(
        text(
            "SELECT current_streak, longest_streak, total_checkins, "
            "streak_bonuses_earned, last_checkin_date "
            "FROM daily_checkin_streaks WHERE user_id = :user_id"
        ),
        {"user_id": user_id},
    )
    row = result.fetchone()
    if row is None:
        return StreakResponse()
    return StreakResponse(
        current_streak=row[0],
        longest_streak=row[1],
        total_checkins=row[2],
        streak_bonuses_earned=row[3],
        last_checkin_date=row[4],
    )


async def process_daily_checkin(
    db: AsyncSession,
    user_id: uuid.UUID,
    today: date | None = None,
) -> CheckinResult:
    """Record today's check-in, pay the daily reward and any streak bonus.

    Raises HTTPException(409) if the member already checked in today.
    """
    today = today or datetime.now(timezone.utc).date()
    config = await get_streak_config(db)

    result = await db.execute(
        text(
            "SELECT current_streak, longest_streak, total_checkins, "
            "streak_bonuses_earned, last_checkin_date "
            "FROM daily_checkin_streaks WHERE user_id = :user_id "
            "FOR UPDATE"
        ),
        {"user_id": user_id},
    )
    row = result.fetchone()
    previous = StreakResponse() if row is None else StreakResponse(
        current_streak=row[0],
        longest_streak=row[1],
        total_checkins=row[2],
        streak_bonuses_earned=row[3],
        last_checkin_date=row[4],
    )
    if previous.last_checkin_date == today:
        raise HTTPException(status_code=409, detail="Already checked in today")

    streak = next_streak_length(previous.current_streak, previous.last_checkin_date, today)

    daily_reward = await get_opportunity_reward(db, "daily_checkin", DEFAULT_DAILY_REWARD)
    await award_nctr(
        db,
        user_id,
        daily_reward,
        "daily_checkin",
        external_transaction_id=f"CHECKIN_{user_id}_{today.isoformat()}",
        use_multiplier=False,
        description="Daily check-in",
    )

    bonus_awarded = (
        config.enabled
        and config.streak_requirement > 0
        and streak % config.streak_requirement == 0
    )
    bonus_amount = Decimal("0")
    if bonus_awarded:
        bonus = await award_nctr(
            db,
            user_id,
            config.bonus_nctr_amount,
            "streak_bonus",
            external_transaction_id=f"STREAK_{user_id}_{today.isoformat()}",
            lock_category=config.bonus_lock_type,
            use_multiplier=False,
            description=f"{streak}-day check-in streak bonus",
            metadata={"streak": streak},
        )
        bonus_amount = bonus.multiplied_amount

    updated = StreakResponse(
        current_streak=streak,
        longest_streak=max(previous.longest_streak, streak),
        total_checkins=previous.total_checkins + 1,
        streak_bonuses_earned=previous.streak_bonuses_earned + (1 if bonus_awarded else 0),
        last_checkin_date=today,
    )
    await db.execute(
        text(
            "INSERT INTO daily_checkin_streaks "
            "(user_id, current_streak, longest_streak, total_checkins, "
            "streak_bonuses_earned, last_checkin_date) "
            "VALUES (:user_id, :current_streak, :longest_streak, :total_checkins, "
            ":streak_bonuses_earned, :last_checkin_date) "
            "ON CONFLICT (user_id) DO UPDATE SET "
            "current_streak = EXCLUDED.current_streak, "
            "longest_streak = EXCLUDED.longest_streak, "
            "total_checkins = EXCLUDED.total_checkins, "
            "streak_bonuses_earned = EXCLUDED.streak_bonuses_earned, "
            "last_checkin_date = EXCLUDED.last_checkin_date"
        ),
        {"user_id": user_id, **updated.model_dump()},
    )

    log.info(
        "daily_checkin",
        user_id=str(user_id),
        streak=streak,
        bonus_awarded=bonus_awarded,
    )
    return CheckinResult(
        streak=updated,
        nctr_awarded=daily_reward,
        bonus_awarded=bonus_awarded,
        bonus_amount=bonus_amount,
        days_until_next_bonus=days_until_next_bonus(streak, config.streak_requirement),
    )
