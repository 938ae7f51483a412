"""Inbound webhook endpoints (Stripe, affiliate network, NCTR Live, free trials)."""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from garden.database import get_db
from garden.middleware.rate_limit import get_client_ip
from garden.services.payment_service import handle_webhook
from garden.services.webhook_service import (
    FreeTrialPayload,
    NctrLivePayload,
    parse_affiliate_payload,
    process_affiliate_purchase,
    process_free_trial,
    process_nctr_live_sync,
    verify_affiliate_signature,
    verify_bearer_secret,
    verify_free_trial_caller,
)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])

log = structlog.get_logger()


async def _run_guarded(
    db: AsyncSession,
    webhook: str,
    handler: Callable[..., Awaitable[Any]],
    *args: Any,
) -> Any:
    """Run a ledger handler; unexpected failures roll back and return a generic 500."""
    try:
        return await handler(db, *args)
    except HTTPException:
        raise
    except Exception as exc:
        await db.rollback()
        log.error("webhook_failed", webhook=webhook, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Transaction processing failed"},
        )


async def _parse_json(request: Request, model):
    try:
        return model.model_validate_json(await request.body())
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid request format")


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Receive and process Stripe webhook events.

    Reads the raw request body and the Stripe-Signature header,
    then delegates to the payment service for verification and handling.
    Signature failures stay 400; anything unexpected after that is a
    generic 500.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    return await _run_guarded(
        db, "stripe", lambda session: handle_webhook(payload, sig_header, session),
    )


@router.post("/affiliate-purchase")
async def affiliate_purchase_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """HMAC-signed purchase notification from an affiliate partner."""
    body = await request.body()
    verify_affiliate_signature(body, request.headers.get("x-webhook-signature"))
    payload = parse_affiliate_payload(body)
    return await _run_guarded(db, "affiliate-purchase", process_affiliate_purchase, payload)


@router.post("/nctr-live")
async def nctr_live_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    verify_bearer_secret(request.headers.get("authorization"))
    payload = await _parse_json(request, NctrLivePayload)
    return await _run_guarded(db, "nctr-live", process_nctr_live_sync, payload)


@router.post("/free-trial")
async def free_trial_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    verify_free_trial_caller(get_client_ip(request), request.headers.get("x-webhook-secret"))
    payload = await _parse_json(request, FreeTrialPayload)
    return await _run_guarded(db, "free-trial", process_free_trial, payload)
