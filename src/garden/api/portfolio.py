"""Member portfolio, status, and transaction history endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from garden.api.dependencies import get_current_user
from garden.database import get_db
from garden.models import User
from garden.services.ledger_service import TransactionResponse, list_transactions
from garden.services.portfolio_service import (
    PortfolioResponse,
    StatusSummary,
    ensure_portfolio,
    get_portfolio,
    get_status_summary,
)

router = APIRouter(prefix="/api/v1/portfolio", tags=["portfolio"])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("", response_model=PortfolioResponse)
async def read_portfolio(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return balances and tier, creating an empty portfolio on first visit."""
    await ensure_portfolio(db, current_user.user_id)
    return await get_portfolio(db, current_user.user_id)


@router.get("/status", response_model=StatusSummary)
async def read_status(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_status_summary(db, current_user.user_id)


@router.get("/transactions", response_model=list[TransactionResponse])
async def read_transactions(
    limit: int = Query(50, ge=1, le=200),
    earning_source: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await list_transactions(db, current_user.user_id, limit=limit, earning_source=earning_source)
