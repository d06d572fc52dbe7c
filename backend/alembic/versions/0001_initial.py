"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-01-01 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, with_updated: bool = False) -> list[sa.Column]:
    columns = [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]
    if with_updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                # ORM-managed updated_at (no database trigger).
                nullable=False,
            )
        )
    return columns


def upgrade() -> None:
    op.create_table(
        "quiz_questions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("quiz_type", sa.String(length=64), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_quiz_questions_quiz_type", "quiz_questions", ["quiz_type"])

    op.create_table(
        "quiz_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("quiz_type", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("affiliate_code", sa.String(length=64)),
        *_timestamps(),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_quiz_sessions_status_created_at", "quiz_sessions", ["status", "created_at"])
    op.create_index("ix_quiz_sessions_affiliate_code", "quiz_sessions", ["affiliate_code"])

    op.create_table(
        "quiz_answers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(length=36),
            sa.ForeignKey("quiz_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "question_id",
            sa.String(length=36),
            sa.ForeignKey("quiz_questions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("value", sa.JSON()),
        *_timestamps(),
    )
    op.create_index("ix_quiz_answers_session_id", "quiz_answers", ["session_id"])
    op.create_index("ix_quiz_answers_question_id", "quiz_answers", ["question_id"])

    op.create_table(
        "affiliates",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("referral_code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("commission_rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("total_clicks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_leads", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_bookings", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_sales", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_commission", sa.Numeric(12, 2), nullable=False, server_default="0"),
        *_timestamps(with_updated=True),
    )

    op.create_table(
        "affiliate_conversions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "affiliate_id",
            sa.String(length=36),
            sa.ForeignKey("affiliates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("quiz_session_id", sa.String(length=36)),
        sa.Column("conversion_type", sa.String(length=16), nullable=False),
        sa.Column("commission_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("commission_status", sa.String(length=16), nullable=False),
        sa.Column("hold_until", sa.DateTime(timezone=True)),
        sa.Column("released_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_affiliate_conversions_affiliate_id", "affiliate_conversions", ["affiliate_id"])
    op.create_index("ix_affiliate_conversions_quiz_session_id", "affiliate_conversions", ["quiz_session_id"])
    op.create_index(
        "ix_affiliate_conversions_status_hold_until",
        "affiliate_conversions",
        ["commission_status", "hold_until"],
    )

    op.create_table(
        "closers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("closer_id", sa.String(length=36), sa.ForeignKey("closers.id", ondelete="SET NULL")),
        sa.Column("quiz_session_id", sa.String(length=36)),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("outcome", sa.String(length=32)),
        sa.Column("notes", sa.Text()),
        sa.Column("sale_value", sa.Numeric(12, 2)),
        sa.Column("commission_amount", sa.Numeric(12, 2)),
        sa.Column("affiliate_code", sa.String(length=64)),
        sa.Column("recording_link", sa.String(length=1024)),
        sa.Column("recording_link_converted", sa.String(length=1024)),
        sa.Column("recording_link_not_interested", sa.String(length=1024)),
        sa.Column("recording_link_needs_follow_up", sa.String(length=1024)),
        sa.Column("recording_link_wrong_number", sa.String(length=1024)),
        sa.Column("recording_link_no_answer", sa.String(length=1024)),
        sa.Column("recording_link_callback_requested", sa.String(length=1024)),
        sa.Column("recording_link_rescheduled", sa.String(length=1024)),
        *_timestamps(with_updated=True),
    )
    op.create_index("ix_appointments_closer_id", "appointments", ["closer_id"])
    op.create_index("ix_appointments_quiz_session_id", "appointments", ["quiz_session_id"])
    op.create_index("ix_appointments_customer_email", "appointments", ["customer_email"])

    op.create_table(
        "notes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("lead_email", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_by", sa.String(length=255)),
        sa.Column("created_by_type", sa.String(length=16), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_notes_lead_email", "notes", ["lead_email"])

    op.create_table(
        "tasks",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("closer_id", sa.String(length=36), sa.ForeignKey("closers.id", ondelete="SET NULL")),
        sa.Column("lead_email", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        *_timestamps(with_updated=True),
    )
    op.create_index("ix_tasks_closer_id", "tasks", ["closer_id"])
    op.create_index("ix_tasks_lead_email", "tasks", ["lead_email"])

    op.create_table(
        "closer_audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("closer_id", sa.String(length=36), sa.ForeignKey("closers.id", ondelete="SET NULL")),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("details", sa.JSON()),
        *_timestamps(),
    )
    op.create_index("ix_closer_audit_logs_closer_id", "closer_audit_logs", ["closer_id"])
    op.create_index(
        "ix_closer_audit_logs_action_created_at", "closer_audit_logs", ["action", "created_at"]
    )


def downgrade() -> None:
    op.drop_table("closer_audit_logs")
    op.drop_table("tasks")
    op.drop_table("notes")
    op.drop_table("appointments")
    op.drop_table("closers")
    op.drop_table("affiliate_conversions")
    op.drop_table("affiliates")
    op.drop_table("quiz_answers")
    op.drop_table("quiz_sessions")
    op.drop_table("quiz_questions")
