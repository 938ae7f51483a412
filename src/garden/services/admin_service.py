"""Admin ledger jobs -- manual credits, Loyalize sync, referral rewards."""

from __future__ import annotations

import time
import uuid
from decimal import Decimal
from typing import Any, Optional

import structlog
from fastapi import HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from garden.config import settings
from garden.integrations.loyalize import LoyalizeClient, LoyalizeTransaction
from garden.services.audit_logger import audit
from garden.services.auth_service import get_user
from garden.services.ledger_service import AwardResult, award_nctr, award_referral_reward
from garden.services.lock_service import LOCK_90
from garden.services.settings_service import (
    find_brand_by_loyalize_id,
    find_brand_by_name,
    find_user_by_tracking_id,
)

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class ManualCreditRequest(BaseModel):
    user_id: uuid.UUID
    purchase_amount: Decimal = Field(..., gt=0)
    partner_name: str = Field(..., min_length=1)
    order_id: Optional[str] = None
    notes: Optional[str] = None
    nctr_per_dollar: Optional[Decimal] = Field(default=None, gt=0)


class ManualCreditResponse(BaseModel):
    success: bool = True
    nctr_credited: Decimal
    purchase_amount: Decimal
    lock_id: Optional[uuid.UUID] = None
    transaction_id: uuid.UUID


class ReferralRewardRequest(BaseModel):
    referrer_id: uuid.UUID
    referred_user_id: uuid.UUID


class SyncResults(BaseModel):
    checked: int = 0
    credited: int = 0
    already_processed: int = 0
    skipped: int = 0
    failed: int = 0
    details: list[dict[str, Any]] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Manual credit
# ---------------------------------------------------------------------------

def manual_external_id(order_id: str | None, user_id: uuid.UUID) -> str:
    reference = order_id or str(int(time.time() * 1000))
    return f"MANUAL_{reference}_{str(user_id)[:8]}"


async def manual_credit_purchase(
    db: AsyncSession,
    admin_id: uuid.UUID,
    request: ManualCreditRequest,
) -> ManualCreditResponse:
    """Credit a purchase the affiliate network never reported.

    Rate precedence: explicit request rate, then the brand's rate, then the
    default rate. The award goes into a 90LOCK without the status multiplier.
    """
    await get_user(db, request.user_id)

    rate = request.nctr_per_dollar
    if rate is None:
        brand = await find_brand_by_name(db, request.partner_name)
        if brand is not None and brand.nctr_per_dollar:
            rate = brand.nctr_per_dollar
    if rate is None:
        rate = Decimal(str(settings.DEFAULT_NCTR_PER_DOLLAR))

    external_id = manual_external_id(request.order_id, request.user_id)
    try:
        award = await award_nctr(
            db,
            request.user_id,
            request.purchase_amount * rate,
            "manual_credit",
            external_transaction_id=external_id,
            lock_category=LOCK_90,
            use_multiplier=False,
            partner_name=request.partner_name,
            purchase_amount=request.purchase_amount,
            description=(
                f"Manual credit: {request.partner_name} purchase "
                f"(${request.purchase_amount}) - {request.notes or 'Admin credited'}"
            ),
            metadata={"admin_id": str(admin_id), "order_id": request.order_id},
        )
    except HTTPException as exc:
        if exc.status_code == 409:
            raise HTTPException(status_code=400, detail="This purchase has already been credited")
        raise

    audit.log_admin_action(
        admin_id=admin_id,
        action="manual_credit",
        target_user_id=request.user_id,
        transaction_id=award.transaction_id,
        amount=award.multiplied_amount,
        rate=rate,
    )
    return ManualCreditResponse(
        nctr_credited=award.multiplied_amount,
        purchase_amount=request.purchase_amount,
        lock_id=award.lock_id,
        transaction_id=award.transaction_id,
    )


# ---------------------------------------------------------------------------
# Loyalize sync
# ---------------------------------------------------------------------------

async def _credit_loyalize_transaction(
    db: AsyncSession,
    txn: LoyalizeTransaction,
    user_id: uuid.UUID,
) -> AwardResult:
    brand = None
    if txn.store_id is not None:
        brand = await find_brand_by_loyalize_id(db, str(txn.store_id))
    rate = (brand.nctr_per_dollar if brand else None) or Decimal(str(settings.DEFAULT_NCTR_PER_DOLLAR))
    partner_name = brand.name if brand else txn.store_name

    return await award_nctr(
        db,
        user_id,
        txn.sale_amount * rate,
        "affiliate_purchase",
        external_transaction_id=f"LOYALIZE_{txn.id}",
        partner_name=partner_name,
        purchase_amount=txn.sale_amount,
        description=f"{partner_name} purchase via Loyalize - Order: {txn.order_number or txn.id}",
        metadata={"loyalize_status": txn.status, "tracking_id": txn.sid},
    )


async def sync_loyalize_transactions(
    db: AsyncSession,
    admin_id: uuid.UUID,
    client: LoyalizeClient | None = None,
) -> SyncResults:
    """Credit every new commissionable Loyalize transaction.

    Each transaction runs in its own savepoint, so one failure is recorded
    in the results and the rest of the batch continues.
    """
    client = client or LoyalizeClient()
    transactions = await client.get_transactions()
    results = SyncResults()

    for txn in transactions:
        results.checked += 1

        if not txn.commissionable:
            results.skipped += 1
            results.details.append({"transaction_id": txn.id, "status": "skipped", "reason": txn.status})
            continue

        user_id = await find_user_by_tracking_id(db, txn.sid) if txn.sid else None
        if user_id is None:
            results.failed += 1
            results.details.append({
                "transaction_id": txn.id,
                "status": "failed",
                "reason": f"No user mapping found for tracking_id: {txn.sid or 'MISSING'}",
            })
            continue

        if txn.sale_amount <= 0:
            results.skipped += 1
            results.details.append({"transaction_id": txn.id, "status": "skipped", "reason": "zero_amount"})
            continue

        try:
            async with db.begin_nested():
                award = await _credit_loyalize_transaction(db, txn, user_id)
        except HTTPException as exc:
            if exc.status_code == 409:
                results.already_processed += 1
                results.details.append({"transaction_id": txn.id, "status": "already_processed"})
            else:
                results.failed += 1
                results.details.append({"transaction_id": txn.id, "status": "failed", "error": exc.detail})
            continue
        except SQLAlchemyError as exc:
            log.error("loyalize_credit_failed", transaction_id=txn.id, error=str(exc))
            results.failed += 1
            results.details.append({"transaction_id": txn.id, "status": "failed", "error": "database error"})
            continue

        results.credited += 1
        results.details.append({
            "transaction_id": txn.id,
            "status": "credited",
            "base_nctr": str(award.base_amount),
            "final_nctr": str(award.multiplied_amount),
            "multiplier": str(award.multiplier),
            "user_id": str(user_id)[:8] + "...",
        })

    log.info(
        "loyalize_sync_completed",
        checked=results.checked,
        credited=results.credited,
        already_processed=results.already_processed,
        skipped=results.skipped,
        failed=results.failed,
    )
    audit.log_admin_action(
        admin_id=admin_id,
        action="loyalize_sync",
        checked=results.checked,
        credited=results.credited,
    )
    return results


# ---------------------------------------------------------------------------
# Referrals
# ---------------------------------------------------------------------------

async def reward_referral(
    db: AsyncSession,
    admin_id: uuid.UUID,
    request: ReferralRewardRequest,
) -> AwardResult:
    award = await award_referral_reward(db, request.referrer_id, request.referred_user_id)
    audit.log_admin_action(
        admin_id=admin_id,
        action="referral_reward",
        target_user_id=request.referrer_id,
        referred_user_id=request.referred_user_id,
        amount=award.multiplied_amount,
    )
    return award
