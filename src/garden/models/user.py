"""Member profile model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from garden.models.base import Base

if TYPE_CHECKING:
    from garden.models.ledger import NctrLock, NctrPortfolio, NctrTransaction


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(40), unique=True, nullable=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    wallet_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    nctr_live_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    nctr_live_user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    nctr_live_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )

    # Relationships
    portfolio: Mapped[Optional[NctrPortfolio]] = relationship(
        back_populates="user", lazy="selectin", uselist=False
    )
    locks: Mapped[list[NctrLock]] = relationship(back_populates="user", lazy="selectin")
    transactions: Mapped[list[NctrTransaction]] = relationship(
        back_populates="user", lazy="selectin"
    )
