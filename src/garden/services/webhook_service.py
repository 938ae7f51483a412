"""Partner webhook receivers: affiliate purchases, NCTR Live syncs, free trials.

Each handler authenticates the caller, validates the payload, and books the
result through ``ledger_service``. Replays are detected by the
``external_transaction_id`` guard in ``award_nctr`` and acknowledged.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

import structlog
from fastapi import HTTPException
from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from garden.config import settings
from garden.services.audit_logger import audit
from garden.services.ledger_service import AwardResult, award_nctr
from garden.services.settings_service import (
    find_brand_by_name,
    find_user_by_tracking_id,
    get_opportunity,
)

log = structlog.get_logger()

VALID_ORDER_STATUSES = frozenset({
    "pending", "completed", "paid", "success", "failed", "cancelled", "refunded",
})
COMPLETED_ORDER_STATUSES = frozenset({"completed", "paid", "success"})

MAX_ORDER_TOTAL = Decimal("10000")
MAX_ORDER_PRODUCTS = 100


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class AffiliateProduct(BaseModel):
    name: str
    amount: Decimal
    quantity: int = 1
    category: Optional[str] = None


class AffiliatePurchasePayload(BaseModel):
    order_id: str = Field(..., min_length=1)
    order_status: str = ""
    total_amount: Decimal = Field(..., ge=0, le=MAX_ORDER_TOTAL)
    currency: str = "USD"
    user_id: Optional[uuid.UUID] = None
    tracking_id: Optional[str] = None
    ref: Optional[str] = None
    source: Optional[str] = None
    purchase_date: Optional[str] = None
    customer_email: Optional[str] = None
    products: list[AffiliateProduct] = Field(default_factory=list, max_length=MAX_ORDER_PRODUCTS)

    @field_validator("order_status")
    @classmethod
    def validate_order_status(cls, v: str) -> str:
        v = v.strip().lower()
        if v and v not in VALID_ORDER_STATUSES:
            raise ValueError("Invalid order_status")
        return v


class NctrLivePayload(BaseModel):
    event: Optional[str] = None
    wallet_address: Optional[str] = None
    email: Optional[str] = None
    user_id: Optional[str] = None
    total_nctr: Decimal = Decimal("0")
    available_nctr: Decimal = Decimal("0")
    locked_360_nctr: Decimal = Decimal("0")
    timestamp: Optional[str] = None


class FreeTrialPayload(BaseModel):
    user_id: uuid.UUID
    opportunity_id: uuid.UUID


# ---------------------------------------------------------------------------
# Caller authentication
# ---------------------------------------------------------------------------

def compute_signature(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_affiliate_signature(body: bytes, signature: str | None) -> None:
    secret = settings.AFFILIATE_WEBHOOK_SECRET
    if not secret:
        log.error("webhook_secret_missing", webhook="affiliate-purchase")
        raise HTTPException(status_code=503, detail="Service unavailable")
    if not signature:
        log.warning("webhook_rejected", webhook="affiliate-purchase", reason="missing_signature")
        raise HTTPException(status_code=401, detail="Authentication required")
    if not hmac.compare_digest(signature, compute_signature(secret, body)):
        log.warning("webhook_rejected", webhook="affiliate-purchase", reason="bad_signature")
        raise HTTPException(status_code=401, detail="Authentication failed")


def verify_bearer_secret(authorization: str | None) -> None:
    secret = settings.NCTR_LIVE_WEBHOOK_SECRET
    if not secret or not authorization or not hmac.compare_digest(authorization, f"Bearer {secret}"):
        log.warning("webhook_rejected", webhook="nctr-live", reason="unauthorized")
        raise HTTPException(status_code=401, detail="Unauthorized")


def verify_free_trial_caller(client_ip: str, webhook_secret: str | None) -> None:
    if client_ip not in settings.FREE_TRIAL_ALLOWED_IPS:
        log.warning("webhook_rejected", webhook="free-trial", reason="ip_not_allowed", ip=client_ip)
        raise HTTPException(status_code=403, detail="Unauthorized IP address")
    secret = settings.FREE_TRIAL_WEBHOOK_SECRET
    if not secret or not webhook_secret or not hmac.compare_digest(webhook_secret, secret):
        log.warning("webhook_rejected", webhook="free-trial", reason="bad_secret", ip=client_ip)
        raise HTTPException(status_code=401, detail="Unauthorized")


# ---------------------------------------------------------------------------
# Affiliate purchases
# ---------------------------------------------------------------------------

def parse_affiliate_payload(body: bytes) -> AffiliatePurchasePayload:
    try:
        return AffiliatePurchasePayload.model_validate_json(body)
    except ValidationError as exc:
        log.warning("webhook_rejected", webhook="affiliate-purchase", reason="invalid_payload", errors=exc.error_count())
        raise HTTPException(status_code=400, detail="Invalid request format")


def parse_legacy_tracking_id(tracking_id: str) -> Optional[uuid.UUID]:
    """Extract the member id from pre-mapping tracking id formats.

    ``tgn_<user>_<link>_<ts>`` carries the user in the second segment;
    ``<user>-<link>-<brand>`` leads with it.
    """
    candidate: Optional[str] = None
    if "_" in tracking_id:
        parts = tracking_id.split("_")
        if len(parts) >= 3:
            candidate = parts[1]
    elif "-" in tracking_id:
        # Member ids are dashed UUIDs, so take the full 36-character prefix.
        candidate = tracking_id[:36]
    if not candidate:
        return None
    try:
        return uuid.UUID(candidate)
    except ValueError:
        return None


async def _user_exists(db: AsyncSession, user_id: uuid.UUID) -> bool:
    result = await db.execute(
        text("SELECT 1 FROM users WHERE user_id = :user_id"),
        {"user_id": user_id},
    )
    return result.fetchone() is not None


async def resolve_affiliate_user(db: AsyncSession, payload: AffiliatePurchasePayload) -> uuid.UUID:
    user_id = payload.user_id
    if user_id is None and payload.tracking_id:
        user_id = await find_user_by_tracking_id(db, payload.tracking_id)
        if user_id is None:
            user_id = parse_legacy_tracking_id(payload.tracking_id)

    if user_id is None or not await _user_exists(db, user_id):
        log.warning("affiliate_user_unresolved", order_id=payload.order_id, tracking_id=payload.tracking_id)
        raise HTTPException(status_code=400, detail="Unable to identify user from webhook data")
    return user_id


async def process_affiliate_purchase(db: AsyncSession, payload: AffiliatePurchasePayload) -> dict[str, Any]:
    if payload.order_status not in COMPLETED_ORDER_STATUSES:
        log.info("affiliate_order_ignored", order_id=payload.order_id, order_status=payload.order_status)
        return {
            "success": True,
            "message": f"Order status {payload.order_status or 'unknown'} - waiting for completion",
        }

    user_id = await resolve_affiliate_user(db, payload)

    partner_name = payload.source or "Gift Cards"
    nctr_per_dollar = Decimal(str(settings.AFFILIATE_DEFAULT_NCTR_PER_DOLLAR))
    if payload.source:
        brand = await find_brand_by_name(db, payload.source, partial=True)
        if brand is not None:
            partner_name = brand.name
            nctr_per_dollar = brand.nctr_per_dollar or nctr_per_dollar

    base_reward = payload.total_amount * nctr_per_dollar
    if base_reward <= 0:
        return {"success": True, "message": "Zero-value order - nothing to credit", "order_id": payload.order_id}

    product_name = payload.products[0].name if payload.products else "Affiliate Purchase"
    try:
        award = await award_nctr(
            db,
            user_id,
            base_reward,
            "affiliate_purchase",
            external_transaction_id=payload.order_id,
            partner_name=partner_name,
            purchase_amount=payload.total_amount,
            description=f"{product_name} via {partner_name} - Order: {payload.order_id}",
            metadata={"tracking_id": payload.tracking_id, "currency": payload.currency},
        )
    except HTTPException as exc:
        if exc.status_code != 409:
            raise
        return {"success": True, "message": "Transaction already processed", "order_id": payload.order_id}

    log.info(
        "affiliate_purchase_credited",
        order_id=payload.order_id,
        user_id=str(user_id),
        nctr=str(award.multiplied_amount),
    )
    return {
        "success": True,
        "message": "Affiliate purchase processed successfully",
        "nctr_earned": award.multiplied_amount,
        "order_id": payload.order_id,
        "user_id": user_id,
        "partner_name": partner_name,
        "purchase_amount": payload.total_amount,
    }


# ---------------------------------------------------------------------------
# NCTR Live balance sync
# ---------------------------------------------------------------------------

async def process_nctr_live_sync(db: AsyncSession, payload: NctrLivePayload) -> dict[str, Any]:
    """Mirror a member's external NCTR Live balances into their portfolio."""
    if not payload.event or not payload.wallet_address or not payload.email:
        raise HTTPException(status_code=400, detail="Missing required fields")

    result = await db.execute(
        text(
            "SELECT user_id, nctr_live_verified FROM users "
            "WHERE wallet_address = :wallet_address AND email = :email"
        ),
        {"wallet_address": payload.wallet_address, "email": payload.email},
    )
    row = result.fetchone()
    if row is None:
        raise HTTPException(
            status_code=404,
            detail="User not found with this wallet and email combination",
        )
    user_id, verified = row[0], row[1]

    now = datetime.now(timezone.utc)
    await db.execute(
        text(
            "UPDATE nctr_portfolio SET "
            "nctr_live_available = :available, "
            "nctr_live_lock_360 = :locked_360, "
            "nctr_live_total = :total, "
            "last_sync_at = :now, "
            "last_sync_error = NULL "
            "WHERE user_id = :user_id"
        ),
        {
            "user_id": user_id,
            "available": payload.available_nctr,
            "locked_360": payload.locked_360_nctr,
            "total": payload.total_nctr,
            "now": now,
        },
    )

    if not verified:
        await db.execute(
            text(
                "UPDATE users SET nctr_live_verified = true, "
                "nctr_live_user_id = :nctr_live_user_id, "
                "nctr_live_email = :email "
                "WHERE user_id = :user_id"
            ),
            {"user_id": user_id, "nctr_live_user_id": payload.user_id, "email": payload.email},
        )

    await db.execute(
        text(
            "INSERT INTO nctr_transactions "
            "(user_id, transaction_type, nctr_amount, earning_source, description, "
            "status, metadata, created_at) "
            "VALUES (:user_id, 'sync', :amount, 'nctr_live_sync', :description, "
            "'completed', CAST(:metadata AS JSONB), :created_at)"
        ),
        {
            "user_id": user_id,
            "amount": payload.total_nctr,
            "description": f"NCTR Live webhook update: {payload.event}",
            "metadata": json.dumps({"event": payload.event, "timestamp": payload.timestamp, "webhook": True}),
            "created_at": now,
        },
    )

    balances = {
        "total": payload.total_nctr,
        "available": payload.available_nctr,
        "locked_360": payload.locked_360_nctr,
    }
    audit.log_portfolio_sync(user_id=user_id, source="nctr_live", balances=balances)

    return {
        "success": True,
        "message": "Portfolio updated successfully",
        "user_id": user_id,
        "balances": balances,
    }


# ---------------------------------------------------------------------------
# Free trial completions
# ---------------------------------------------------------------------------

async def process_free_trial(db: AsyncSession, payload: FreeTrialPayload) -> dict[str, Any]:
    opportunity = await get_opportunity(db, payload.opportunity_id)
    if not opportunity.nctr_reward:
        raise HTTPException(status_code=400, detail="Opportunity has no NCTR reward")

    try:
        award: AwardResult = await award_nctr(
            db,
            payload.user_id,
            opportunity.nctr_reward,
            "free_trial",
            external_transaction_id=f"FREE_TRIAL_{payload.user_id}_{payload.opportunity_id}",
            partner_name=opportunity.title,
            description=f"Free trial completed: {opportunity.title}",
            metadata={"opportunity_id": str(payload.opportunity_id)},
        )
    except HTTPException as exc:
        if exc.status_code != 409:
            raise
        return {"success": True, "credited": 0, "message": "Free trial already credited"}

    return {
        "success": True,
        "credited": award.multiplied_amount,
        "message": "Free trial completion credited",
    }
