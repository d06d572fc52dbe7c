from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from funnel_crm.domain.closers.statuses import TASK_STATUS_PENDING
from funnel_crm.infra.db import Base


class Closer(Base):
    __tablename__ = "closers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    closer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("closers.id", ondelete="SET NULL"), index=True
    )
    quiz_session_id: Mapped[str | None] = mapped_column(String(36), index=True)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    outcome: Mapped[str | None] = mapped_column(String(32))
    notes: Mapped[str | None] = mapped_column(Text)
    sale_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    commission_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    affiliate_code: Mapped[str | None] = mapped_column(String(64))
    recording_link: Mapped[str | None] = mapped_column(String(1024))
    recording_link_converted: Mapped[str | None] = mapped_column(String(1024))
    recording_link_not_interested: Mapped[str | None] = mapped_column(String(1024))
    recording_link_needs_follow_up: Mapped[str | None] = mapped_column(String(1024))
    recording_link_wrong_number: Mapped[str | None] = mapped_column(String(1024))
    recording_link_no_answer: Mapped[str | None] = mapped_column(String(1024))
    recording_link_callback_requested: Mapped[str | None] = mapped_column(String(1024))
    recording_link_rescheduled: Mapped[str | None] = mapped_column(String(1024))
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

    closer: Mapped[Closer | None] = relationship("Closer", lazy="joined")


class Note(Base):
    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    lead_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(255))
    created_by_type: Mapped[str] = mapped_column(String(16), nullable=False, default="admin")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    closer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("closers.id", ondelete="SET NULL"), index=True
    )
    lead_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=TASK_STATUS_PENDING)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
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

    closer: Mapped[Closer | None] = relationship("Closer", lazy="joined")


class CloserAuditLog(Base):
    """Append-only record of closer actions; rows are never updated."""

    __tablename__ = "closer_audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    closer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("closers.id", ondelete="SET NULL"), index=True
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    closer: Mapped[Closer | None] = relationship("Closer", lazy="joined")

    __table_args__ = (
        Index("ix_closer_audit_logs_action_created_at", "action", "created_at"),
    )
