"""NCTR purchase endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from garden.api.dependencies import get_current_user
from garden.models import User
from garden.services.payment_service import CheckoutRequest, CheckoutResponse, create_checkout_session
from garden.services.price_service import PriceFeedClient

router = APIRouter(prefix="/api/v1/purchases", tags=["purchases"])


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    body: CheckoutRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    """Create a Stripe Checkout Session priced at the current NCTR rate."""
    client = PriceFeedClient(redis=getattr(request.app.state, "redis", None))
    price = await client.get_current_price()
    return await create_checkout_session(current_user.user_id, body.nctr_amount, price.price_usd)
