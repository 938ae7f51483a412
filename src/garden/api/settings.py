"""Public configuration endpoints: site settings, status levels, tiers, price."""

from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from garden.database import get_db
from garden.services.portfolio_service import StatusLevelResponse, get_status_levels
from garden.services.price_service import PriceFeedClient, format_change, format_price
from garden.services.settings_service import get_invite_reward, get_site_settings
from garden.services.tiers import (
    CRESCENDO_TIER_DISPLAY,
    TIER_PERKS,
    get_ordered_tier_levels,
)

router = APIRouter(prefix="/api/v1", tags=["settings"])


@router.get("/settings")
async def read_site_settings(
    keys: Optional[list[str]] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await get_site_settings(db, keys)


@router.get("/settings/status-levels", response_model=list[StatusLevelResponse])
async def read_status_levels(db: AsyncSession = Depends(get_db)):
    return await get_status_levels(db)


@router.get("/settings/invite-reward")
async def read_invite_reward(db: AsyncSession = Depends(get_db)):
    return {"lock_360_nctr_reward": await get_invite_reward(db)}


@router.get("/settings/price")
async def read_price(request: Request):
    """Current NCTR/USD price, cached briefly in Redis when available."""
    client = PriceFeedClient(redis=getattr(request.app.state, "redis", None))
    price = await client.get_current_price()
    return {
        **asdict(price),
        "formatted_price": format_price(price.price_usd),
        "formatted_change": format_change(price.price_change_24h),
    }


@router.get("/tiers")
async def read_tiers():
    """Tier ladder with display metadata and perks, lowest first."""
    return [
        {
            "status": level.status,
            "required": level.required,
            **CRESCENDO_TIER_DISPLAY[level.status],
            "perks": TIER_PERKS.get(level.status, []),
        }
        for level in get_ordered_tier_levels()
    ]
