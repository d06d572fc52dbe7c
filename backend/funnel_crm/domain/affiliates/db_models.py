from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from funnel_crm.domain.affiliates.statuses import CONVERSION_TYPE_BOOKING, default_commission_status
from funnel_crm.infra.db import Base


class Affiliate(Base):
    __tablename__ = "affiliates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    referral_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False, default=Decimal("0.1"))
    # Denormalized aggregates, maintained at sale/booking time outside the ledger.
    total_clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_leads: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_bookings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_sales: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    conversions: Mapped[list["AffiliateConversion"]] = relationship(
        "AffiliateConversion", back_populates="affiliate"
    )


class AffiliateConversion(Base):
    __tablename__ = "affiliate_conversions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    affiliate_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("affiliates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quiz_session_id: Mapped[str | None] = mapped_column(String(36), index=True)
    conversion_type: Mapped[str] = mapped_column(String(16), nullable=False, default=CONVERSION_TYPE_BOOKING)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    commission_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=default_commission_status
    )
    hold_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    affiliate: Mapped[Affiliate] = relationship("Affiliate", back_populates="conversions")

    __table_args__ = (
        Index("ix_affiliate_conversions_status_hold_until", "commission_status", "hold_until"),
    )
