"""Lock commitment endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from garden.api.dependencies import get_current_user
from garden.database import get_db
from garden.models import User
from garden.services.lock_service import (
    BulkUpgradeResult,
    CommitAllResult,
    CommitRequest,
    CommitResult,
    LockResponse,
    UpgradeResult,
    commit_all_nctr_to_360lock,
    commit_available_to_360lock,
    list_locks,
    upgrade_all_90locks_to_360,
    upgrade_lock_to_360,
)

router = APIRouter(prefix="/api/v1/locks", tags=["locks"])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("", response_model=list[LockResponse])
async def read_locks(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the authenticated member's locks, newest first."""
    return await list_locks(db, current_user.user_id)


@router.post("/upgrade-all", response_model=BulkUpgradeResult)
async def upgrade_all_endpoint(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await upgrade_all_90locks_to_360(db, current_user.user_id)


@router.post("/commit-available", response_model=CommitResult)
async def commit_available_endpoint(
    body: CommitRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Move part of the available balance into a new 360LOCK."""
    return await commit_available_to_360lock(db, current_user.user_id, body.amount)


@router.post("/commit-all", response_model=CommitAllResult)
async def commit_all_endpoint(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await commit_all_nctr_to_360lock(db, current_user.user_id)


@router.post("/{lock_id}/upgrade", response_model=UpgradeResult)
async def upgrade_lock_endpoint(
    lock_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Upgrade a single 90LOCK to 360LOCK."""
    return await upgrade_lock_to_360(db, current_user.user_id, lock_id)
