"""ORM models package -- re-exports all models and the Base class."""

from garden.models.base import Base
from garden.models.user import User
from garden.models.ledger import (
    NctrLock,
    NctrPortfolio,
    NctrTransaction,
    ProcessedWebhook,
)
from garden.models.rewards import (
    AffiliateLinkMapping,
    Brand,
    DailyCheckinStreak,
    EarningOpportunity,
    SiteSetting,
    StatusLevel,
)

__all__ = [
    "Base",
    "User",
    "NctrPortfolio",
    "NctrLock",
    "NctrTransaction",
    "ProcessedWebhook",
    "StatusLevel",
    "SiteSetting",
    "EarningOpportunity",
    "Brand",
    "AffiliateLinkMapping",
    "DailyCheckinStreak",
]
