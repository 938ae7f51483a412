"""Daily check-in endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from garden.api.dependencies import get_current_user
from garden.database import get_db
from garden.models import User
from garden.services.checkin_service import (
    CheckinResult,
    days_until_next_bonus,
    get_streak,
    get_streak_config,
    process_daily_checkin,
    streak_progress,
)

router = APIRouter(prefix="/api/v1/checkin", tags=["checkin"])


@router.get("/streak")
async def read_streak(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the member's streak with progress toward the next bonus."""
    config = await get_streak_config(db)
    streak = await get_streak(db, current_user.user_id)
    return {
        "streak": streak,
        "config": config,
        "days_until_next_bonus": days_until_next_bonus(streak.current_streak, config.streak_requirement),
        "progress_percent": streak_progress(streak.current_streak, config.streak_requirement),
    }


@router.post("", response_model=CheckinResult)
async def check_in(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await process_daily_checkin(db, current_user.user_id)
