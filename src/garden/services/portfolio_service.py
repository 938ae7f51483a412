"""Portfolio balances, status levels, and reward multipliers."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from garden.services.tiers import get_tier_for_amount, get_tier_name, get_tier_progress

DEFAULT_MULTIPLIER = Decimal("1")


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class PortfolioResponse(BaseModel):
    user_id: uuid.UUID
    available_nctr: Decimal
    pending_nctr: Decimal
    lock_90_nctr: Decimal
    lock_360_nctr: Decimal
    total_earned: Decimal
    nctr_live_available: Optional[Decimal] = None
    nctr_live_lock_360: Optional[Decimal] = None
    nctr_live_total: Optional[Decimal] = None
    last_sync_at: Optional[datetime] = None
    tier: str


class StatusLevelResponse(BaseModel):
    status_name: str
    min_locked_nctr: Decimal
    min_lock_duration: int
    reward_multiplier: Decimal
    description: Optional[str] = None
    benefits: Optional[list[str]] = None


class StatusSummary(BaseModel):
    user_id: uuid.UUID
    tier: str
    tier_name: str
    lock_360_nctr: Decimal
    reward_multiplier: Decimal
    next_tier: Optional[str] = None
    next_tier_required: Optional[int] = None
    progress_percent: float
    nctr_to_next_tier: Decimal


# ---------------------------------------------------------------------------
# Service functions
# ---------------------------------------------------------------------------

async def ensure_portfolio(db: AsyncSession, user_id: uuid.UUID) -> None:
    """Create an empty portfolio row for the user if none exists."""
    await db.execute(
        text(
            "INSERT INTO nctr_portfolio (user_id) VALUES (:user_id) "
            "ON CONFLICT (user_id) DO NOTHING"
        ),
        {"user_id": user_id},
    )


async def get_portfolio(db: AsyncSession, user_id: uuid.UUID) -> PortfolioResponse:
    result = await db.execute(
        text(
            "SELECT user_id, available_nctr, pending_nctr, lock_90_nctr, "
            "lock_360_nctr, total_earned, nctr_live_available, "
            "nctr_live_lock_360, nctr_live_total, last_sync_at "
            "FROM nctr_portfolio WHERE user_id = :user_id"
        ),
        {"user_id": user_id},
    )
    row = result.fetchone()
    if row is None:
        raise HTTPException(status_code=404, detail="Portfolio not found")

    return PortfolioResponse(
        user_id=row[0],
        available_nctr=row[1],
        pending_nctr=row[2],
        lock_90_nctr=row[3],
        lock_360_nctr=row[4],
        total_earned=row[5],
        nctr_live_available=row[6],
        nctr_live_lock_360=row[7],
        nctr_live_total=row[8],
        last_sync_at=row[9],
        tier=get_tier_for_amount(row[4]),
    )


async def get_status_levels(db: AsyncSession) -> list[StatusLevelResponse]:
    result = await db.execute(
        text(
            "SELECT status_name, min_locked_nctr, min_lock_duration, "
            "reward_multiplier, description, benefits "
            "FROM opportunity_status_levels ORDER BY min_locked_nctr"
        )
    )
    return [
        StatusLevelResponse(
            status_name=row[0],
            min_locked_nctr=row[1],
            min_lock_duration=row[2],
            reward_multiplier=row[3],
            description=row[4],
            benefits=row[5],
        )
        for row in result.fetchall()
    ]


async def get_reward_multiplier(db: AsyncSession, user_id: uuid.UUID) -> Decimal:
    """Multiplier of the highest status level the user's 360LOCK balance reaches."""
    result = await db.execute(
        text(
            "SELECT l.reward_multiplier "
            "FROM opportunity_status_levels l "
            "JOIN nctr_portfolio p ON p.user_id = :user_id "
            "WHERE l.min_locked_nctr <= p.lock_360_nctr "
            "ORDER BY l.min_locked_nctr DESC "
            "LIMIT 1"
        ),
        {"user_id": user_id},
    )
    row = result.fetchone()
    if row is None or row[0] is None:
        return DEFAULT_MULTIPLIER
    return Decimal(row[0])


async def get_status_summary(db: AsyncSession, user_id: uuid.UUID) -> StatusSummary:
    portfolio = await get_portfolio(db, user_id)
    multiplier = await get_reward_multiplier(db, user_id)
    progress = get_tier_progress(portfolio.lock_360_nctr)

    return StatusSummary(
        user_id=user_id,
        tier=progress.current,
        tier_name=get_tier_name(progress.current),
        lock_360_nctr=portfolio.lock_360_nctr,
        reward_multiplier=multiplier,
        next_tier=progress.next.status if progress.next else None,
        next_tier_required=progress.next.required if progress.next else None,
        progress_percent=progress.percent,
        nctr_to_next_tier=progress.remaining,
    )
