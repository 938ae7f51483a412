"""Crescendo status tiers -- pure lookups from 360-locked NCTR to a named band.

The thresholds mirror the ``opportunity_status_levels`` seed rows. A member
with nothing committed is ``starter``; any positive commitment is at least
``bronze``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

Amount = Union[int, float, Decimal]

CRESCENDO_TIER_THRESHOLDS: dict[str, int] = {
    "bronze": 0,
    "silver": 1000,
    "gold": 2500,
    "platinum": 10000,
    "diamond": 50000,
}

CRESCENDO_TIER_DISPLAY: dict[str, dict[str, str]] = {
    "starter": {"name": "Starter", "emoji": "\U0001F331", "icon": "TrendingUp"},
    "bronze": {"name": "Bronze", "emoji": "\U0001F949", "icon": "Award"},
    "silver": {"name": "Silver", "emoji": "\U0001F948", "icon": "Star"},
    "gold": {"name": "Gold", "emoji": "\U0001F947", "icon": "Crown"},
    "platinum": {"name": "Platinum", "emoji": "\U0001F48E", "icon": "Gem"},
    "diamond": {"name": "Diamond", "emoji": "\U0001F4A0", "icon": "Diamond"},
}

TIER_PERKS: dict[str, list[str]] = {
    "bronze": [
        "Access to The Garden shopping",
        "Basic NCTR earning rate",
        "Community access",
    ],
    "silver": [
        "5% bonus NCTR on purchases",
        "Early access to new brands",
        "Priority email support",
    ],
    "gold": [
        "10% bonus NCTR on purchases",
        "Early access to rewards",
        "Priority support",
    ],
    "platinum": [
        "15% bonus NCTR on purchases",
        "Exclusive partner deals",
        "VIP support access",
    ],
    "diamond": [
        "20% bonus NCTR on purchases",
        "Founding member perks",
        "Direct team access",
        "Exclusive investment opportunities",
    ],
}


@dataclass(frozen=True)
class TierLevel:
    status: str
    required: int


@dataclass(frozen=True)
class TierProgress:
    """Where an amount sits on the ladder and how far the next band is."""

    current: str
    next: Optional[TierLevel]
    percent: float
    remaining: Decimal


def get_tier_for_amount(nctr_amount: Amount) -> str:
    """Return the tier name for an amount of 360-locked NCTR."""
    amount = Decimal(str(nctr_amount))
    if amount >= CRESCENDO_TIER_THRESHOLDS["diamond"]:
        return "diamond"
    if amount >= CRESCENDO_TIER_THRESHOLDS["platinum"]:
        return "platinum"
    if amount >= CRESCENDO_TIER_THRESHOLDS["gold"]:
        return "gold"
    if amount >= CRESCENDO_TIER_THRESHOLDS["silver"]:
        return "silver"
    if amount > CRESCENDO_TIER_THRESHOLDS["bronze"]:
        return "bronze"
    return "starter"


def _fallback_name(status: str) -> str:
    return status[:1].upper() + status[1:]


def get_tier_display(status: str) -> str:
    tier = CRESCENDO_TIER_DISPLAY.get(status)
    return f"{tier['emoji']} {tier['name']}" if tier else _fallback_name(status)


def get_tier_emoji(status: str) -> str:
    tier = CRESCENDO_TIER_DISPLAY.get(status)
    return tier["emoji"] if tier else CRESCENDO_TIER_DISPLAY["starter"]["emoji"]


def get_tier_name(status: str) -> str:
    tier = CRESCENDO_TIER_DISPLAY.get(status)
    return tier["name"] if tier else _fallback_name(status)


def get_ordered_tier_levels() -> list[TierLevel]:
    """Bronze through diamond, lowest first."""
    return [
        TierLevel(status=status, required=required)
        for status, required in CRESCENDO_TIER_THRESHOLDS.items()
    ]


def get_next_tier_info(current_status: str) -> Optional[TierLevel]:
    """Return the level after *current_status*, or None at the top.

    Starter (and any unknown status) advances to bronze.
    """
    levels = get_ordered_tier_levels()
    statuses = [level.status for level in levels]
    if current_status not in statuses:
        return levels[0]
    index = statuses.index(current_status)
    return levels[index + 1] if index + 1 < len(levels) else None


def get_tier_progress(nctr_amount: Amount) -> TierProgress:
    amount = Decimal(str(nctr_amount))
    current = get_tier_for_amount(amount)
    next_level = get_next_tier_info(current)

    if next_level is None:
        return TierProgress(current=current, next=None, percent=100.0, remaining=Decimal("0"))

    floor = Decimal(CRESCENDO_TIER_THRESHOLDS.get(current, 0))
    span = Decimal(next_level.required) - floor
    if span <= 0:
        percent = 0.0
    else:
        percent = float((amount - floor) / span * 100)
    percent = min(100.0, max(0.0, percent))

    remaining = max(Decimal("0"), Decimal(next_level.required) - amount)
    return TierProgress(current=current, next=next_level, percent=percent, remaining=remaining)
