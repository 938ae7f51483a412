"""Site settings and configured reward amounts."""

from __future__ import annotations

import copy
import json
import uuid
from decimal import Decimal
from typing import Any, Optional

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

DEFAULT_SITE_SETTINGS: dict[str, Any] = {
    "nctr_distribution_rate": {"tokens_per_second": 50, "current_total": 2500000},
    "site_stats": {"brand_partners": "5K+"},
}

DEFAULT_INVITE_REWARD = Decimal("500")


class OpportunityResponse(BaseModel):
    opportunity_id: uuid.UUID
    opportunity_type: str
    title: str
    nctr_reward: Optional[Decimal] = None
    is_active: bool


def _decode_setting(value: Any) -> Any:
    """Stored values may be JSONB or a JSON-encoded string; fall back to raw."""
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value


async def get_site_settings(
    db: AsyncSession, keys: Optional[list[str]] = None,
) -> dict[str, Any]:
    """Return the defaults overlaid with stored settings (optionally filtered)."""
    if keys:
        result = await db.execute(
            text(
                "SELECT setting_key, setting_value FROM site_settings "
                "WHERE setting_key = ANY(:keys)"
            ),
            {"keys": keys},
        )
    else:
        result = await db.execute(
            text("SELECT setting_key, setting_value FROM site_settings")
        )

    merged = copy.deepcopy(DEFAULT_SITE_SETTINGS)
    for key, value in result.fetchall():
        merged[key] = _decode_setting(value)
    return merged


def get_setting(settings_map: dict[str, Any], key: str, default: Any = "") -> Any:
    """Look up *key*, treating falsy stored values as missing."""
    return settings_map.get(key) or default


async def get_invite_reward(db: AsyncSession) -> Decimal:
    """NCTR granted (into 360LOCK) for a successful invite."""
    result = await db.execute(
        text(
            "SELECT lock_360_nctr_reward FROM earning_opportunities "
            "WHERE opportunity_type = 'invite' AND is_active = true "
            "LIMIT 1"
        )
    )
    row = result.fetchone()
    if row is None or not row[0]:
        return DEFAULT_INVITE_REWARD
    return Decimal(row[0])


async def get_opportunity(db: AsyncSession, opportunity_id: uuid.UUID) -> OpportunityResponse:
    result = await db.execute(
        text(
            "SELECT opportunity_id, opportunity_type, title, nctr_reward, is_active "
            "FROM earning_opportunities WHERE opportunity_id = :opportunity_id"
        ),
        {"opportunity_id": opportunity_id},
    )
    row = result.fetchone()
    if row is None:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    return OpportunityResponse(
        opportunity_id=row[0],
        opportunity_type=row[1],
        title=row[2],
        nctr_reward=row[3],
        is_active=row[4],
    )


async def get_opportunity_reward(
    db: AsyncSession, opportunity_type: str, default: Decimal,
) -> Decimal:
    """Base ``nctr_reward`` of the active opportunity of a given type."""
    result = await db.execute(
        text(
            "SELECT nctr_reward FROM earning_opportunities "
            "WHERE opportunity_type = :opportunity_type AND is_active = true "
            "LIMIT 1"
        ),
        {"opportunity_type": opportunity_type},
    )
    row = result.fetchone()
    if row is None or row[0] is None:
        return default
    return Decimal(row[0])


# ---------------------------------------------------------------------------
# Partner brands
# ---------------------------------------------------------------------------

class BrandRate(BaseModel):
    name: str
    nctr_per_dollar: Optional[Decimal] = None


async def find_brand_by_name(db: AsyncSession, name: str, partial: bool = False) -> Optional[BrandRate]:
    """Case-insensitive brand lookup; *partial* matches any name containing *name*."""
    pattern = f"%{name}%" if partial else name
    result = await db.execute(
        text(
            "SELECT name, nctr_per_dollar FROM brands "
            "WHERE name ILIKE :pattern AND is_active = true "
            "ORDER BY name LIMIT 1"
        ),
        {"pattern": pattern},
    )
    row = result.fetchone()
    if row is None:
        return None
    return BrandRate(name=row[0], nctr_per_dollar=row[1])


async def find_brand_by_loyalize_id(db: AsyncSession, loyalize_id: str) -> Optional[BrandRate]:
    result = await db.execute(
        text(
            "SELECT name, nctr_per_dollar FROM brands "
            "WHERE loyalize_id = :loyalize_id LIMIT 1"
        ),
        {"loyalize_id": loyalize_id},
    )
    row = result.fetchone()
    if row is None:
        return None
    return BrandRate(name=row[0], nctr_per_dollar=row[1])


async def find_user_by_tracking_id(db: AsyncSession, tracking_id: str) -> Optional[uuid.UUID]:
    """User the affiliate link *tracking_id* was issued to, if it is mapped."""
    result = await db.execute(
        text("SELECT user_id FROM affiliate_link_mappings WHERE tracking_id = :tracking_id"),
        {"tracking_id": tracking_id},
    )
    row = result.fetchone()
    return row[0] if row else None
