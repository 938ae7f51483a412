"""Admin-only ledger endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from garden.api.dependencies import require_admin
from garden.database import get_db
from garden.integrations.loyalize import LoyalizeAPIError, LoyalizeClient
from garden.models import User
from garden.services.admin_service import (
    ManualCreditRequest,
    ManualCreditResponse,
    ReferralRewardRequest,
    SyncResults,
    manual_credit_purchase,
    reward_referral,
    sync_loyalize_transactions,
)
from garden.services.ledger_service import AwardResult

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


def get_loyalize_client() -> LoyalizeClient:
    return LoyalizeClient()


@router.post("/manual-credit", response_model=ManualCreditResponse)
async def manual_credit_endpoint(
    body: ManualCreditRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Credit an unreported partner purchase into a 90LOCK."""
    return await manual_credit_purchase(db, admin.user_id, body)


@router.post("/loyalize/sync")
async def loyalize_sync_endpoint(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    client: LoyalizeClient = Depends(get_loyalize_client),
):
    try:
        results: SyncResults = await sync_loyalize_transactions(db, admin.user_id, client)
    except LoyalizeAPIError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {"success": True, "message": "Transaction sync complete", "results": results}


@router.post("/referrals/reward", response_model=AwardResult)
async def referral_reward_endpoint(
    body: ReferralRewardRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await reward_referral(db, admin.user_id, body)
