"""Service layer for the per-lead activity timeline."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from funnel_crm.domain.affiliates.db_models import AffiliateConversion
from funnel_crm.domain.affiliates.statuses import CONVERSION_TYPE_SALE
from funnel_crm.domain.closers.audit import OutcomeUpdatedDetails, parse_audit_details
from funnel_crm.domain.closers.db_models import Appointment, CloserAuditLog, Note, Task
from funnel_crm.domain.closers.statuses import (
    AUDIT_ACTION_OUTCOME_UPDATED,
    OUTCOME_CONVERTED,
    RECORDING_LINK_FIELDS,
    TASK_STATUS_COMPLETED,
    TASK_STATUS_IN_PROGRESS,
)
from funnel_crm.domain.errors import ForbiddenError, NotFoundError
from funnel_crm.domain.leads.answers import resolve_lead_email, resolve_lead_name
from funnel_crm.domain.quiz.db_models import QuizAnswer, QuizSession
from funnel_crm.domain.timeline.schemas import (
    ACTIVITY_TYPE_PRIORITY,
    ActivityEvent,
    TimelineResponse,
    TimelineViewer,
)
from funnel_crm.shared.datetimes import as_utc

logger = logging.getLogger(__name__)

UNKNOWN_ACTOR = "Unknown"


def _amount(value: Decimal | None) -> float | None:
    return float(value) if value else None


def _closer_name(record: Appointment | Task | CloserAuditLog) -> str:
    closer = record.closer
    return closer.name if closer is not None else UNKNOWN_ACTOR


def legacy_recording_link(appointment: Appointment, outcome: str | None) -> str | None:
    """Recording link kept on the appointment row for the given outcome."""
    if not outcome:
        return appointment.recording_link
    field_name = RECORDING_LINK_FIELDS.get(outcome)
    if field_name is None:
        return appointment.recording_link
    return getattr(appointment, field_name)


def sort_activities(events: list[ActivityEvent]) -> list[ActivityEvent]:
    return sorted(
        events,
        key=lambda event: (
            as_utc(event.timestamp),
            ACTIVITY_TYPE_PRIORITY.get(event.type, 999),
        ),
    )


async def _load_quiz_session(session: AsyncSession, session_id: str) -> QuizSession:
    quiz_session = await session.scalar(
        select(QuizSession)
        .options(selectinload(QuizSession.answers).joinedload(QuizAnswer.question))
        .where(QuizSession.id == session_id)
    )
    if quiz_session is None:
        raise NotFoundError(detail="Quiz session not found")
    return quiz_session


async def ensure_viewer_can_access(
    session: AsyncSession, viewer: TimelineViewer, lead_email: str | None
) -> None:
    """Closers may only read leads linked to them by an appointment or a task."""
    if viewer.is_admin:
        return
    if not lead_email or not viewer.closer_id:
        raise ForbiddenError(detail="This lead is not assigned to you")

    appointment_id = await session.scalar(
        select(Appointment.id)
        .where(
            Appointment.customer_email == lead_email,
            Appointment.closer_id == viewer.closer_id,
        )
        .limit(1)
    )
    if appointment_id is not None:
        return

    task_count = await session.scalar(
        select(func.count())
        .select_from(Task)
        .where(Task.lead_email == lead_email, Task.closer_id == viewer.closer_id)
    )
    if not task_count:
        logger.warning(
            "timeline_access_denied",
            extra={"extra": {"closer_id": viewer.closer_id}},
        )
        raise ForbiddenError(detail="This lead is not assigned to you")


async def _appointment_outcome_logs(
    session: AsyncSession, appointment: Appointment
) -> list[tuple[CloserAuditLog, OutcomeUpdatedDetails]]:
    stmt = (
        select(CloserAuditLog)
        .where(CloserAuditLog.action == AUDIT_ACTION_OUTCOME_UPDATED)
        .order_by(CloserAuditLog.created_at.asc())
    )
    if appointment.closer_id:
        stmt = stmt.where(CloserAuditLog.closer_id == appointment.closer_id)
    logs = (await session.execute(stmt)).scalars().all()

    matched: list[tuple[CloserAuditLog, OutcomeUpdatedDetails]] = []
    for log in logs:
        details = parse_audit_details(log.action, log.details)
        if isinstance(details, OutcomeUpdatedDetails) and details.appointment_id == appointment.id:
            matched.append((log, details))
    return matched


def _snapshot_or(details: OutcomeUpdatedDetails | None, field_name: str, fallback: Any) -> Any:
    if details is not None:
        recorded, value = details.snapshot(field_name)
        if recorded:
            return value
    return fallback


def _outcome_events(
    appointment: Appointment,
    logs: list[tuple[CloserAuditLog, OutcomeUpdatedDetails]],
    lead_name: str,
) -> list[ActivityEvent]:
    events: list[ActivityEvent] = []
    for index, (log, details) in enumerate(logs):
        # Converted outcomes surface only as deal_closed.
        if details.outcome == OUTCOME_CONVERTED:
            continue
        is_first_outcome = index == 0
        recording_link = _snapshot_or(
            details, "recording_link", legacy_recording_link(appointment, details.outcome)
        )
        notes = _snapshot_or(details, "notes", appointment.notes)
        events.append(
            ActivityEvent(
                id=f"outcome_{log.id}",
                type="outcome_marked" if is_first_outcome else "outcome_updated",
                timestamp=log.created_at,
                lead_name=lead_name,
                actor=_closer_name(log),
                details={
                    "outcome": details.outcome,
                    "sale_value": _amount(details.sale_value),
                    "previous_outcome": details.previous_outcome or None,
                    "is_first_outcome": is_first_outcome,
                    "recording_link": recording_link or None,
                    "notes": notes or None,
                },
            )
        )

    if appointment.outcome and not logs and appointment.outcome != OUTCOME_CONVERTED:
        # Outcome recorded before audit logging existed.
        events.append(
            ActivityEvent(
                id=f"outcome_{appointment.id}",
                type="outcome_marked",
                timestamp=appointment.updated_at,
                lead_name=lead_name,
                actor=_closer_name(appointment),
                details={
                    "outcome": appointment.outcome,
                    "sale_value": _amount(appointment.sale_value),
                    "is_first_outcome": True,
                    "recording_link": legacy_recording_link(appointment, appointment.outcome) or None,
                    "notes": appointment.notes or None,
                },
            )
        )
    return events


async def _deal_closed_event(
    session: AsyncSession,
    quiz_session: QuizSession,
    appointment: Appointment,
    logs: list[tuple[CloserAuditLog, OutcomeUpdatedDetails]],
    lead_name: str,
) -> ActivityEvent:
    conversion_created_at = await session.scalar(
        select(AffiliateConversion.created_at)
        .where(
            AffiliateConversion.quiz_session_id == quiz_session.id,
            AffiliateConversion.conversion_type == CONVERSION_TYPE_SALE,
        )
        .order_by(AffiliateConversion.created_at.desc())
        .limit(1)
    )
    closed_at: datetime = conversion_created_at or appointment.updated_at

    converted_details = next(
        (details for _, details in logs if details.outcome == OUTCOME_CONVERTED), None
    )
    recording_link = _snapshot_or(
        converted_details,
        "recording_link",
        legacy_recording_link(appointment, OUTCOME_CONVERTED) or appointment.recording_link,
    )
    notes = _snapshot_or(converted_details, "notes", appointment.notes)

    return ActivityEvent(
        id=f"deal_{appointment.id}",
        type="deal_closed",
        timestamp=closed_at,
        lead_name=lead_name,
        actor=_closer_name(appointment),
        details={
            "outcome": OUTCOME_CONVERTED,
            "amount": _amount(appointment.sale_value),
            "sale_value": _amount(appointment.sale_value),
            "commission": _amount(appointment.commission_amount),
            "recording_link": recording_link or None,
            "notes": notes or None,
        },
    )


def _note_events(notes: list[Note], lead_name: str) -> list[ActivityEvent]:
    return [
        ActivityEvent(
            id=f"note_{note.id}",
            type="note_added",
            timestamp=note.created_at,
            lead_name=lead_name,
            actor=note.created_by or UNKNOWN_ACTOR,
            details={"content": note.content, "created_by_type": note.created_by_type},
        )
        for note in notes
    ]


def _task_events(tasks: list[Task], lead_name: str) -> list[ActivityEvent]:
    events: list[ActivityEvent] = []
    for task in tasks:
        actor = _closer_name(task)
        events.append(
            ActivityEvent(
                id=f"task_created_{task.id}",
                type="task_created",
                timestamp=task.created_at,
                lead_name=lead_name,
                actor=actor,
                details={
                    "title": task.title,
                    "description": task.description,
                    "priority": task.priority,
                    "status": task.status,
                    "due_date": task.due_date.isoformat() if task.due_date else None,
                },
            )
        )
        # No start timestamp is tracked; updated_at approximates it.
        if task.status in {TASK_STATUS_IN_PROGRESS, TASK_STATUS_COMPLETED}:
            events.append(
                ActivityEvent(
                    id=f"task_started_{task.id}",
                    type="task_started",
                    timestamp=task.updated_at,
                    lead_name=lead_name,
                    actor=actor,
                    details={"title": task.title},
                )
            )
        if task.completed_at:
            events.append(
                ActivityEvent(
                    id=f"task_completed_{task.id}",
                    type="task_completed",
                    timestamp=task.completed_at,
                    lead_name=lead_name,
                    actor=actor,
                    details={"title": task.title},
                )
            )
    return events


async def compose_timeline(
    session: AsyncSession, session_id: str, viewer: TimelineViewer
) -> TimelineResponse:
    """Assemble the chronological activity history of one lead.

    Includes:
    - Quiz completion
    - The most recent booked call and its outcome history
    - Deal closure for converted appointments
    - Notes and task lifecycle events

    Read-only. Sections keyed on the lead email are skipped when no email
    can be resolved from the quiz answers.
    """
    quiz_session = await _load_quiz_session(session, session_id)
    lead_email = resolve_lead_email(quiz_session.answers)
    lead_name = resolve_lead_name(quiz_session.answers)

    await ensure_viewer_can_access(session, viewer, lead_email)

    events: list[ActivityEvent] = []

    if quiz_session.completed_at:
        events.append(
            ActivityEvent(
                id=f"quiz_{quiz_session.id}",
                type="quiz_completed",
                timestamp=quiz_session.completed_at,
                lead_name=lead_name,
                details={
                    "quiz_type": quiz_session.quiz_type,
                    "answers_count": len(quiz_session.answers),
                },
            )
        )

    if lead_email:
        appointment = await session.scalar(
            select(Appointment)
            .where(Appointment.customer_email == lead_email)
            .order_by(Appointment.created_at.desc())
            .limit(1)
        )
        if appointment is not None:
            events.append(
                ActivityEvent(
                    id=f"call_{appointment.id}",
                    type="call_booked",
                    timestamp=appointment.created_at,
                    lead_name=lead_name,
                    actor=appointment.closer.name if appointment.closer else None,
                    details={
                        "scheduled_at": appointment.scheduled_at.isoformat(),
                        "closer_name": appointment.closer.name if appointment.closer else None,
                        "closer_id": appointment.closer_id,
                    },
                )
            )
            outcome_logs = await _appointment_outcome_logs(session, appointment)
            events.extend(_outcome_events(appointment, outcome_logs, lead_name))
            if appointment.outcome == OUTCOME_CONVERTED:
                events.append(
                    await _deal_closed_event(
                        session, quiz_session, appointment, outcome_logs, lead_name
                    )
                )

        notes = (
            await session.execute(
                select(Note).where(Note.lead_email == lead_email).order_by(Note.created_at.asc())
            )
        ).scalars().all()
        events.extend(_note_events(list(notes), lead_name))

        tasks = (
            await session.execute(
                select(Task).where(Task.lead_email == lead_email).order_by(Task.created_at.asc())
            )
        ).scalars().all()
        events.extend(_task_events(list(tasks), lead_name))
    else:
        logger.info("timeline_lead_email_missing", extra={"extra": {"session_id": session_id}})

    activities = sort_activities(events)
    return TimelineResponse(session_id=session_id, activities=activities, total=len(activities))
