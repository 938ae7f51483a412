"""Reward configuration models: status levels, opportunities, brands, streaks."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from garden.models.base import Base


class StatusLevel(Base):
    __tablename__ = "opportunity_status_levels"

    level_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status_name: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    min_locked_nctr: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    min_lock_duration: Mapped[int] = mapped_column(Integer, default=360, nullable=False)
    reward_multiplier: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    benefits: Mapped[Optional[list[str]]] = mapped_column(ARRAY(Text), nullable=True)


class SiteSetting(Base):
    __tablename__ = "site_settings"

    setting_key: Mapped[str] = mapped_column(String(100), primary_key=True)
    setting_value: Mapped[dict] = mapped_column(JSONB, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )


class EarningOpportunity(Base):
    __tablename__ = "earning_opportunities"

    opportunity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    opportunity_type: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    partner_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    nctr_reward: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 8), nullable=True)
    lock_90_nctr_reward: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(20, 8), nullable=True
    )
    lock_360_nctr_reward: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(20, 8), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Brand(Base):
    __tablename__ = "brands"

    brand_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    loyalize_id: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)
    nctr_per_dollar: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 4), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class AffiliateLinkMapping(Base):
    __tablename__ = "affiliate_link_mappings"

    tracking_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False
    )
    brand_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("brands.brand_id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, nullable=False
    )


class DailyCheckinStreak(Base):
    __tablename__ = "daily_checkin_streaks"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id"), primary_key=True
    )
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_checkins: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    streak_bonuses_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_checkin_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
