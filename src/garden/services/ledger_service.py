"""NCTR reward ledger -- awards, auto-lock policy, and transaction history."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

import structlog
from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from garden.services.audit_logger import audit
from garden.services.lock_service import LOCK_90, LOCK_360, create_lock
from garden.services.portfolio_service import ensure_portfolio, get_reward_multiplier
from garden.services.settings_service import get_invite_reward

log = structlog.get_logger()

NCTR_QUANTUM = Decimal("0.00000001")

EARNING_SOURCES = frozenset({
    "affiliate_purchase",
    "referral",
    "daily_checkin",
    "streak_bonus",
    "token_purchase",
    "manual_credit",
    "free_trial",
    "learning",
    "nctr_live_sync",
})

# Sources missing here credit available_nctr.
AUTO_LOCK_POLICY: dict[str, str] = {
    "affiliate_purchase": LOCK_90,
    "manual_credit": LOCK_90,
    "free_trial": LOCK_90,
    "token_purchase": LOCK_360,
    "referral": LOCK_360,
}


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class AwardResult(BaseModel):
    transaction_id: uuid.UUID
    base_amount: Decimal
    multiplier: Decimal
    multiplied_amount: Decimal
    lock_category: Optional[str] = None
    lock_id: Optional[uuid.UUID] = None


class TransactionResponse(BaseModel):
    transaction_id: uuid.UUID
    transaction_type: str
    nctr_amount: Decimal
    earning_source: Optional[str] = None
    auto_lock_type: Optional[str] = None
    external_transaction_id: Optional[str] = None
    partner_name: Optional[str] = None
    purchase_amount: Optional[Decimal] = None
    description: Optional[str] = None
    status: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Policy helpers
# ---------------------------------------------------------------------------

def auto_lock_category(earning_source: str) -> str | None:
    """Lock category an award from *earning_source* lands in, or None."""
    return AUTO_LOCK_POLICY.get(earning_source)


def apply_multiplier(base_amount: Decimal, multiplier: Decimal) -> Decimal:
    return (Decimal(str(base_amount)) * Decimal(str(multiplier))).quantize(NCTR_QUANTUM)


# ---------------------------------------------------------------------------
# Service functions
# ---------------------------------------------------------------------------

async def is_duplicate_transaction(db: AsyncSession, external_transaction_id: str) -> bool:
    """Return True if a transaction with this external id was already recorded."""
    result = await db.execute(
        text(
            "SELECT 1 FROM nctr_transactions "
            "WHERE external_transaction_id = :external_transaction_id "
            "LIMIT 1"
        ),
        {"external_transaction_id": external_transaction_id},
    )
    return result.fetchone() is not None


async def award_nctr(
    db: AsyncSession,
    user_id: uuid.UUID,
    base_amount: Decimal,
    earning_source: str,
    *,
    external_transaction_id: str | None = None,
    lock_category: str | None = None,
    use_multiplier: bool = True,
    partner_name: str | None = None,
    purchase_amount: Decimal | None = None,
    description: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AwardResult:
    """Credit NCTR to a member and record the earning.

    The amount is scaled by the member's status multiplier unless
    *use_multiplier* is False, then locked per ``AUTO_LOCK_POLICY`` (or the
    explicit *lock_category*) or added to the available balance.

    Raises HTTPException(409) when *external_transaction_id* was already
    credited.
    """
    if earning_source not in EARNING_SOURCES:
        raise HTTPException(status_code=400, detail=f"Unknown earning source: {earning_source}")
    base_amount = Decimal(str(base_amount))
    if base_amount <= 0:
        raise HTTPException(status_code=400, detail="Award amount must be positive")

    if external_transaction_id and await is_duplicate_transaction(db, external_transaction_id):
        raise HTTPException(status_code=409, detail="Transaction already credited")

    multiplier = await get_reward_multiplier(db, user_id) if use_multiplier else Decimal("1")
    amount = apply_multiplier(base_amount, multiplier)

    await ensure_portfolio(db, user_id)

    category = lock_category or auto_lock_category(earning_source)
    if category is None:
        await db.execute(
            text(
                "UPDATE nctr_portfolio "
                "SET total_earned = total_earned + :amount, "
                "available_nctr = available_nctr + :amount "
                "WHERE user_id = :user_id"
            ),
            {"user_id": user_id, "amount": amount},
        )
        lock_id = None
    else:
        await db.execute(
            text(
                "UPDATE nctr_portfolio SET total_earned = total_earned + :amount "
                "WHERE user_id = :user_id"
            ),
            {"user_id": user_id, "amount": amount},
        )
        lock_id = await create_lock(db, user_id, amount, category)

    txn_metadata = dict(metadata or {})
    txn_metadata.update({
        "base_amount": str(base_amount),
        "multiplier": str(multiplier),
    })
    if lock_id is not None:
        txn_metadata["lock_id"] = str(lock_id)

    result = await db.execute(
        text(
            "INSERT INTO nctr_transactions "
            "(user_id, transaction_type, nctr_amount, earning_source, auto_lock_type, "
            "external_transaction_id, partner_name, purchase_amount, description, "
            "status, metadata, created_at) "
            "VALUES (:user_id, 'earned', :amount, :earning_source, :auto_lock_type, "
            ":external_transaction_id, :partner_name, :purchase_amount, :description, "
            "'completed', CAST(:metadata AS JSONB), :created_at) "
            "RETURNING transaction_id"
        ),
        {
            "user_id": user_id,
            "amount": amount,
            "earning_source": earning_source,
            "auto_lock_type": category,
            "external_transaction_id": external_transaction_id,
            "partner_name": partner_name,
            "purchase_amount": purchase_amount,
            "description": description,
            "metadata": json.dumps(txn_metadata),
            "created_at": datetime.now(timezone.utc),
        },
    )
    transaction_id: uuid.UUID = result.fetchone()[0]

    audit.log_nctr_award(
        user_id=user_id,
        amount=amount,
        earning_source=earning_source,
        multiplier=multiplier,
        lock_category=category,
        external_transaction_id=external_transaction_id,
    )

    return AwardResult(
        transaction_id=transaction_id,
        base_amount=base_amount,
        multiplier=multiplier,
        multiplied_amount=amount,
        lock_category=category,
        lock_id=lock_id,
    )


async def list_transactions(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int = 50,
    earning_source: str | None = None,
) -> list[TransactionResponse]:
    query = (
        "SELECT transaction_id, transaction_type, nctr_amount, earning_source, "
        "auto_lock_type, external_transaction_id, partner_name, purchase_amount, "
        "description, status, created_at "
        "FROM nctr_transactions WHERE user_id = :user_id "
    )
    params: dict[str, Any] = {"user_id": user_id, "limit": limit}
    if earning_source is not None:
        query += "AND earning_source = :earning_source "
        params["earning_source"] = earning_source
    query += "ORDER BY created_at DESC LIMIT :limit"

    result = await db.execute(text(query), params)
    return [
        TransactionResponse(
            transaction_id=row[0],
            transaction_type=row[1],
            nctr_amount=row[2],
            earning_source=row[3],
            auto_lock_type=row[4],
            external_transaction_id=row[5],
            partner_name=row[6],
            purchase_amount=row[7],
            description=row[8],
            status=row[9],
            created_at=row[10],
        )
        for row in result.fetchall()
    ]


async def award_referral_reward(
    db: AsyncSession,
    referrer_id: uuid.UUID,
    referred_user_id: uuid.UUID,
) -> AwardResult:
    """Grant the invite reward to *referrer_id* once per referred member."""
    if referrer_id == referred_user_id:
        raise HTTPException(status_code=409, detail="Members cannot refer themselves")

    reward = await get_invite_reward(db)
    return await award_nctr(
        db,
        referrer_id,
        reward,
        "referral",
        external_transaction_id=f"REFERRAL_{referred_user_id}",
        use_multiplier=False,
        description="Referral reward",
        metadata={"referred_user_id": str(referred_user_id)},
    )
