"""Stripe NCTR purchases -- checkout sessions and webhook handling."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

import stripe
import structlog
from fastapi import HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from garden.config import settings
from garden.services.ledger_service import award_nctr
from garden.services.lock_service import LOCK_360

stripe.api_key = settings.STRIPE_SECRET_KEY

log = structlog.get_logger()

# Stripe rejects card charges below 50 cents.
MIN_CHARGE_CENTS = 50


class CheckoutRequest(BaseModel):
    nctr_amount: Decimal = Field(..., gt=0)


class CheckoutResponse(BaseModel):
    checkout_url: str
    nctr_amount: Decimal
    amount_cents: int
    price_usd: float


class CheckoutMetadataError(Exception):
    """Raised when a completed checkout carries no usable purchase metadata."""


# ---------------------------------------------------------------------------
# Checkout session creation
# ---------------------------------------------------------------------------

def checkout_amount_cents(nctr_amount: Decimal, price_usd: float) -> int:
    cents = (Decimal(str(nctr_amount)) * Decimal(str(price_usd)) * 100).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP,
    )
    return max(MIN_CHARGE_CENTS, int(cents))


async def create_checkout_session(
    user_id: uuid.UUID,
    nctr_amount: Decimal,
    price_usd: float,
) -> CheckoutResponse:
    """Create a Stripe Checkout Session for an NCTR purchase locked into 360LOCK."""
    amount_cents = checkout_amount_cents(nctr_amount, price_usd)

    session = stripe.checkout.Session.create(
        line_items=[
            {
                "price_data": {
                    "currency": "usd",
                    "unit_amount": amount_cents,
                    "product_data": {
                        "name": f"{nctr_amount} NCTR",
                        "description": "Locked in 360LOCK",
                    },
                },
                "quantity": 1,
            }
        ],
        mode="payment",
        metadata={
            "user_id": str(user_id),
            "nctr_amount": str(nctr_amount),
            "purchase_type": "nctr_360lock",
        },
        success_url=settings.CHECKOUT_SUCCESS_URL,
        cancel_url=settings.CHECKOUT_CANCEL_URL,
    )

    log.info("checkout_created", user_id=str(user_id), nctr_amount=str(nctr_amount), amount_cents=amount_cents)
    return CheckoutResponse(
        checkout_url=session.url,
        nctr_amount=nctr_amount,
        amount_cents=amount_cents,
        price_usd=price_usd,
    )


# ---------------------------------------------------------------------------
# Webhook helpers
# ---------------------------------------------------------------------------

def _verify_stripe_event(payload: bytes, sig_header: str | None) -> dict:
    """Verify the Stripe webhook signature and return the parsed event."""
    if not sig_header:
        raise HTTPException(status_code=400, detail="No signature header")
    try:
        return stripe.Webhook.construct_event(
            payload,
            sig_header,
            settings.STRIPE_WEBHOOK_SECRET,
        )
    except stripe.SignatureVerificationError:
        raise HTTPException(status_code=400, detail="Invalid signature")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")


async def _is_already_processed(db: AsyncSession, event_id: str) -> bool:
    """Return True if this webhook event has already been handled."""
    existing = await db.execute(
        text("SELECT 1 FROM processed_webhooks WHERE event_id = :event_id"),
        {"event_id": event_id},
    )
    return existing.fetchone() is not None


async def _mark_event_processed(db: AsyncSession, event_id: str) -> None:
    """Record a webhook event ID so it is not replayed."""
    await db.execute(
        text(
            "INSERT INTO processed_webhooks (event_id, processed_at) "
            "VALUES (:event_id, :processed_at)"
        ),
        {"event_id": event_id, "processed_at": datetime.now(timezone.utc)},
    )


async def _process_checkout_completed(db: AsyncSession, session_obj: dict, event_id: str) -> None:
    """Credit purchased NCTR into a 360LOCK for the paying member."""
    metadata = session_obj.get("metadata") or {}
    if not metadata.get("user_id") or not metadata.get("nctr_amount"):
        raise CheckoutMetadataError("Missing metadata in checkout session")
    try:
        user_id = uuid.UUID(metadata["user_id"])
        nctr_amount = Decimal(metadata["nctr_amount"])
    except (ValueError, ArithmeticError) as exc:
        raise CheckoutMetadataError(f"Malformed checkout metadata: {exc}") from exc
    if not nctr_amount.is_finite() or nctr_amount <= 0:
        raise CheckoutMetadataError(f"Invalid nctr_amount in checkout metadata: {metadata['nctr_amount']}")

    amount_total = session_obj.get("amount_total") or 0
    usd_amount = (Decimal(amount_total) / 100).quantize(Decimal("0.01"))

    try:
        await award_nctr(
            db,
            user_id,
            nctr_amount,
            "token_purchase",
            external_transaction_id=session_obj["id"],
            lock_category=LOCK_360,
            use_multiplier=False,
            purchase_amount=usd_amount,
            description=f"NCTR purchase via Stripe (${usd_amount}) - Locked in 360LOCK",
            metadata={
                "stripe_event_id": event_id,
                "payment_intent": session_obj.get("payment_intent"),
            },
        )
    except HTTPException as exc:
        if exc.status_code != 409:
            raise
        log.info("checkout_already_credited", session_id=session_obj["id"])


# ---------------------------------------------------------------------------
# Webhook entry-point
# ---------------------------------------------------------------------------

async def handle_webhook(
    payload: bytes,
    sig_header: str | None,
    db: AsyncSession,
) -> dict:
    """Verify a Stripe webhook signature and process the event.

    Idempotent -- skips events that have already been processed. Checkout
    sessions without purchase metadata are acknowledged with an ``error``
    so Stripe does not keep retrying them.
    """
    event = _verify_stripe_event(payload, sig_header)
    event_id: str = event["id"]

    if await _is_already_processed(db, event_id):
        return {"received": True, "duplicate": True}

    response: dict = {"received": True}
    if event["type"] == "checkout.session.completed":
        try:
            await _process_checkout_completed(db, event["data"]["object"], event_id)
        except CheckoutMetadataError as exc:
            log.error("checkout_metadata_invalid", event_id=event_id, error=str(exc))
            response["error"] = str(exc)

    await _mark_event_processed(db, event_id)
    return response
