"""Lock commitments -- 90LOCK / 360LOCK creation, upgrades, and commits.

Every mutation updates both the ``nctr_locks`` row and the matching
portfolio column in the same transaction, so ``lock_90_nctr`` and
``lock_360_nctr`` always equal the sum of the user's active locks of that
category.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import structlog
from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from garden.services.audit_logger import audit

log = structlog.get_logger()


@dataclass(frozen=True)
class LockTerms:
    commitment_days: int
    can_upgrade: bool
    portfolio_column: str


LOCK_90 = "90LOCK"
LOCK_360 = "360LOCK"

LOCK_TERMS: dict[str, LockTerms] = {
    LOCK_90: LockTerms(commitment_days=90, can_upgrade=True, portfolio_column="lock_90_nctr"),
    LOCK_360: LockTerms(commitment_days=360, can_upgrade=False, portfolio_column="lock_360_nctr"),
}


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class LockResponse(BaseModel):
    lock_id: uuid.UUID
    nctr_amount: Decimal
    lock_category: str
    commitment_days: int
    lock_date: datetime
    unlock_date: datetime
    can_upgrade: bool
    original_lock_type: Optional[str] = None
    upgraded_from_lock_id: Optional[uuid.UUID] = None
    status: str


class UpgradeResult(BaseModel):
    old_lock_id: uuid.UUID
    new_lock_id: uuid.UUID
    nctr_amount: Decimal


class BulkUpgradeResult(BaseModel):
    locks_upgraded: int
    total_amount: Decimal


class CommitRequest(BaseModel):
    amount: Decimal


class CommitResult(BaseModel):
    lock_id: uuid.UUID
    nctr_amount: Decimal
    available_nctr: Decimal


class CommitAllResult(BaseModel):
    available_committed: Decimal
    locks_upgraded: int
    upgraded_amount: Decimal
    total_committed: Decimal


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

async def create_lock(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount: Decimal,
    lock_category: str,
    upgraded_from: uuid.UUID | None = None,
    original_lock_type: str | None = None,
) -> uuid.UUID:
    """Insert a lock and add its amount to the matching portfolio column.

    Returns the new lock id.
    """
    amount = Decimal(str(amount))
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Lock amount must be positive")
    terms = LOCK_TERMS.get(lock_category)
    if terms is None:
        raise HTTPException(status_code=400, detail=f"Unknown lock category: {lock_category}")

    now = datetime.now(timezone.utc)
    result = await db.execute(
        text(
            "INSERT INTO nctr_locks "
            "(user_id, nctr_amount, lock_type, lock_category, commitment_days, "
            "lock_date, unlock_date, can_upgrade, original_lock_type, "
            "upgraded_from_lock_id, status) "
            "VALUES (:user_id, :amount, :lock_category, :lock_category, "
            ":commitment_days, :lock_date, :unlock_date, :can_upgrade, "
            ":original_lock_type, :upgraded_from, 'active') "
            "RETURNING lock_id"
        ),
        {
            "user_id": user_id,
            "amount": amount,
            "lock_category": lock_category,
            "commitment_days": terms.commitment_days,
            "lock_date": now,
            "unlock_date": now + timedelta(days=terms.commitment_days),
            "can_upgrade": terms.can_upgrade,
            "original_lock_type": original_lock_type,
            "upgraded_from": upgraded_from,
        },
    )
    lock_id: uuid.UUID = result.fetchone()[0]

    # Column name comes from LOCK_TERMS, never from input.
    await db.execute(
        text(
            f"UPDATE nctr_portfolio "
            f"SET {terms.portfolio_column} = {terms.portfolio_column} + :amount "
            f"WHERE user_id = :user_id"
        ),
        {"user_id": user_id, "amount": amount},
    )

    audit.log_lock_event(
        user_id=user_id,
        lock_id=lock_id,
        action="upgrade" if upgraded_from else "create",
        amount=amount,
        lock_category=lock_category,
        source_lock_id=upgraded_from,
    )
    return lock_id


async def list_locks(db: AsyncSession, user_id: uuid.UUID) -> list[LockResponse]:
    result = await db.execute(
        text(
            "SELECT lock_id, nctr_amount, lock_category, commitment_days, "
            "lock_date, unlock_date, can_upgrade, original_lock_type, "
            "upgraded_from_lock_id, status "
            "FROM nctr_locks WHERE user_id = :user_id "
            "ORDER BY lock_date DESC"
        ),
        {"user_id": user_id},
    )
    return [
        LockResponse(
            lock_id=row[0],
            nctr_amount=row[1],
            lock_category=row[2],
            commitment_days=row[3],
            lock_date=row[4],
            unlock_date=row[5],
            can_upgrade=row[6],
            original_lock_type=row[7],
            upgraded_from_lock_id=row[8],
            status=row[9],
        )
        for row in result.fetchall()
    ]


# ---------------------------------------------------------------------------
# Upgrades
# ---------------------------------------------------------------------------

async def upgrade_lock_to_360(
    db: AsyncSession,
    user_id: uuid.UUID,
    lock_id: uuid.UUID,
) -> UpgradeResult:
    """Convert an active 90LOCK into a new 360LOCK for the same amount.

    The old lock is kept with status ``upgraded`` and the new lock points
    back at it through ``upgraded_from_lock_id``.
    """
    result = await db.execute(
        text(
            "SELECT lock_id, user_id, nctr_amount, lock_category, can_upgrade, status "
            "FROM nctr_locks WHERE lock_id = :lock_id "
            "FOR UPDATE"
        ),
        {"lock_id": lock_id},
    )
    row = result.fetchone()
    if row is None or row[1] != user_id:
        raise HTTPException(status_code=404, detail="Lock not found")

    amount = Decimal(row[2])
    if row[3] != LOCK_90 or not row[4] or row[5] != "active":
        raise HTTPException(status_code=409, detail="Lock cannot be upgraded")

    await db.execute(
        text(
            "UPDATE nctr_locks SET status = 'upgraded', can_upgrade = false "
            "WHERE lock_id = :lock_id"
        ),
        {"lock_id": lock_id},
    )
    await db.execute(
        text(
            "UPDATE nctr_portfolio SET lock_90_nctr = lock_90_nctr - :amount "
            "WHERE user_id = :user_id"
        ),
        {"user_id": user_id, "amount": amount},
    )

    new_lock_id = await create_lock(
        db, user_id, amount, LOCK_360,
        upgraded_from=lock_id, original_lock_type=LOCK_90,
    )
    log.info("lock_upgraded", user_id=str(user_id), lock_id=str(lock_id), new_lock_id=str(new_lock_id))

    return UpgradeResult(old_lock_id=lock_id, new_lock_id=new_lock_id, nctr_amount=amount)


async def upgrade_all_90locks_to_360(db: AsyncSession, user_id: uuid.UUID) -> BulkUpgradeResult:
    result = await db.execute(
        text(
            "SELECT lock_id FROM nctr_locks "
            "WHERE user_id = :user_id AND lock_category = '90LOCK' "
            "AND status = 'active' AND can_upgrade = true "
            "ORDER BY lock_date "
            "FOR UPDATE"
        ),
        {"user_id": user_id},
    )
    lock_ids = [row[0] for row in result.fetchall()]

    total = Decimal("0")
    for lock_id in lock_ids:
        upgraded = await upgrade_lock_to_360(db, user_id, lock_id)
        total += upgraded.nctr_amount

    return BulkUpgradeResult(locks_upgraded=len(lock_ids), total_amount=total)


# ---------------------------------------------------------------------------
# Commits from the available balance
# ---------------------------------------------------------------------------

async def commit_available_to_360lock(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount: Decimal,
) -> CommitResult:
    """Move *amount* of available NCTR into a new 360LOCK.

    Uses a conditional UPDATE so concurrent commits cannot overdraw the
    available balance.
    """
    amount = Decimal(str(amount))
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Commit amount must be positive")

    result = await db.execute(
        text(
            "UPDATE nctr_portfolio "
            "SET available_nctr = available_nctr - :amount "
            "WHERE user_id = :user_id AND available_nctr >= :amount "
            "RETURNING available_nctr"
        ),
        {"user_id": user_id, "amount": amount},
    )
    row = result.fetchone()
    if row is None:
        raise HTTPException(status_code=409, detail="Insufficient available NCTR")
    remaining = Decimal(row[0])

    lock_id = await create_lock(db, user_id, amount, LOCK_360)
    return CommitResult(lock_id=lock_id, nctr_amount=amount, available_nctr=remaining)


async def commit_all_nctr_to_360lock(db: AsyncSession, user_id: uuid.UUID) -> CommitAllResult:
    """Upgrade every 90LOCK and commit the whole available balance."""
    result = await db.execute(
        text(
            "SELECT available_nctr FROM nctr_portfolio "
            "WHERE user_id = :user_id "
            "FOR UPDATE"
        ),
        {"user_id": user_id},
    )
    row = result.fetchone()
    if row is None:
        raise HTTPException(status_code=404, detail="Portfolio not found")
    available = Decimal(row[0])

    upgraded = await upgrade_all_90locks_to_360(db, user_id)
    if upgraded.locks_upgraded == 0 and available <= 0:
        raise HTTPException(status_code=409, detail="No NCTR available to commit")

    committed = Decimal("0")
    if available > 0:
        commit = await commit_available_to_360lock(db, user_id, available)
        committed = commit.nctr_amount

    log.info(
        "commit_all_completed",
        user_id=str(user_id),
        available_committed=str(committed),
        locks_upgraded=upgraded.locks_upgraded,
    )
    return CommitAllResult(
        available_committed=committed,
        locks_upgraded=upgraded.locks_upgraded,
        upgraded_amount=upgraded.total_amount,
        total_committed=committed + upgraded.total_amount,
    )
