"""Portfolio, lock, and transaction ledger models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from garden.models.base import Base

if TYPE_CHECKING:
    from garden.models.user import User

NCTR = Numeric(20, 8)


class NctrPortfolio(Base):
    __tablename__ = "nctr_portfolio"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id"), primary_key=True
    )
    available_nctr: Mapped[Decimal] = mapped_column(NCTR, default=0, nullable=False)
    pending_nctr: Mapped[Decimal] = mapped_column(NCTR, default=0, nullable=False)
    lock_90_nctr: Mapped[Decimal] = mapped_column(NCTR, default=0, nullable=False)
    lock_360_nctr: Mapped[Decimal] = mapped_column(NCTR, default=0, nullable=False)
    total_earned: Mapped[Decimal] = mapped_column(NCTR, default=0, nullable=False)
    nctr_live_available: Mapped[Optional[Decimal]] = mapped_column(NCTR, nullable=True)
    nctr_live_lock_360: Mapped[Optional[Decimal]] = mapped_column(NCTR, nullable=True)
    nctr_live_total: Mapped[Optional[Decimal]] = mapped_column(NCTR, nullable=True)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_sync_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("available_nctr >= 0", name="ck_portfolio_available_nonneg"),
        CheckConstraint("lock_90_nctr >= 0", name="ck_portfolio_lock90_nonneg"),
        CheckConstraint("lock_360_nctr >= 0", name="ck_portfolio_lock360_nonneg"),
    )

    user: Mapped[User] = relationship(back_populates="portfolio")


class NctrLock(Base):
    __tablename__ = "nctr_locks"

    lock_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False
    )
    nctr_amount: Mapped[Decimal] = mapped_column(NCTR, nullable=False)
    lock_type: Mapped[str] = mapped_column(String(10), nullable=False)
    lock_category: Mapped[str] = mapped_column(String(10), nullable=False)
    commitment_days: Mapped[int] = mapped_column(Integer, nullable=False)
    lock_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )
    unlock_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    can_upgrade: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    original_lock_type: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    upgraded_from_lock_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("nctr_locks.lock_id"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    __table_args__ = (
        CheckConstraint("nctr_amount >= 0", name="ck_lock_amount_nonneg"),
        CheckConstraint(
            "lock_category IN ('90LOCK', '360LOCK')", name="ck_lock_category"
        ),
        CheckConstraint(
            "status IN ('active', 'upgraded', 'unlocked')", name="ck_lock_status"
        ),
    )

    user: Mapped[User] = relationship(back_populates="locks")


class NctrTransaction(Base):
    """Append-only; completed rows are protected by a trigger."""

    __tablename__ = "nctr_transactions"

    transaction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False
    )
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    nctr_amount: Mapped[Decimal] = mapped_column(NCTR, nullable=False)
    earning_source: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    auto_lock_type: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    external_transaction_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True
    )
    partner_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    purchase_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    metadata_: Mapped[Optional[dict]] = mapped_column("metadata", JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "transaction_type IN ('earned', 'sync', 'locked', 'adjustment')",
            name="ck_nctr_txn_type",
        ),
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed', 'reversed')",
            name="ck_nctr_txn_status",
        ),
    )

    user: Mapped[User] = relationship(back_populates="transactions")


class ProcessedWebhook(Base):
    __tablename__ = "processed_webhooks"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )
