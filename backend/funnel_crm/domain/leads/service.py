import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from funnel_crm.domain.affiliates.db_models import Affiliate
from funnel_crm.domain.closers.db_models import Appointment
from funnel_crm.domain.errors import NotFoundError
from funnel_crm.domain.leads.answers import (
    has_contact_answers,
    lead_email_from_answers,
    lead_name_from_answers,
    resolve_lead_email,
)
from funnel_crm.domain.leads.schemas import (
    DateRange,
    LeadCalculation,
    LeadScope,
    LeadStatusInfo,
    LeadSummary,
)
from funnel_crm.domain.quiz.db_models import QuizAnswer, QuizQuestion, QuizSession
from funnel_crm.domain.quiz.statuses import QUESTION_TYPE_EMAIL, SESSION_STATUS_COMPLETED
from funnel_crm.shared.datetimes import EPOCH, as_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_DATE_RANGE: DateRange = "30d"

COMPLETED_STATUS = LeadStatusInfo(
    status="completed",
    label="Completed",
    description="Completed quiz with contact info",
)

_RANGE_DELTAS: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
}


def resolve_window_start(date_range: str, now: datetime | None = None) -> datetime:
    """Lower bound of ``created_at`` for a relative range; unknown ranges fall back to 30 days."""
    if date_range == "all":
        return EPOCH
    reference = now or utcnow()
    return reference - _RANGE_DELTAS.get(date_range, _RANGE_DELTAS[DEFAULT_DATE_RANGE])


async def _resolve_affiliate_code(session: AsyncSession, scope: LeadScope) -> str | None:
    # Sessions are tagged by referral code, never by affiliate id.
    if scope.affiliate_id:
        referral_code = await session.scalar(
            select(Affiliate.referral_code).where(Affiliate.id == scope.affiliate_id)
        )
        if referral_code is None:
            logger.info(
                "lead_scope_affiliate_missing",
                extra={"extra": {"affiliate_id": scope.affiliate_id}},
            )
        return referral_code
    return scope.affiliate_code


def _completed_session_filters(
    scope: LeadScope, affiliate_code: str | None, now: datetime | None
) -> list[Any]:
    filters: list[Any] = [QuizSession.status == SESSION_STATUS_COMPLETED]
    if scope.has_explicit_window:
        filters.append(QuizSession.created_at >= scope.start_date)
        filters.append(QuizSession.created_at <= scope.end_date)
    else:
        filters.append(QuizSession.created_at >= resolve_window_start(scope.date_range, now))
    if scope.quiz_type:
        filters.append(QuizSession.quiz_type == scope.quiz_type)
    if affiliate_code:
        filters.append(QuizSession.affiliate_code == affiliate_code)
    return filters


def _has_email_answer_clause():
    return (
        select(QuizAnswer.id)
        .join(QuizQuestion, QuizQuestion.id == QuizAnswer.question_id)
        .where(
            QuizAnswer.session_id == QuizSession.id,
            QuizAnswer.value.is_not(None),
            or_(
                QuizQuestion.type == QUESTION_TYPE_EMAIL,
                func.lower(QuizQuestion.prompt).contains("email"),
            ),
        )
        .exists()
    )


def _recency(quiz_session: QuizSession) -> datetime:
    return as_utc(quiz_session.completed_at or quiz_session.created_at)


def dedupe_leads_by_email(leads: list[QuizSession]) -> list[QuizSession]:
    """Keep the most recent session per email string, compared exactly as stored."""
    leads_by_email: dict[str, QuizSession] = {}
    for lead in leads:
        email = lead_email_from_answers(lead.answers)
        if not email:
            continue
        existing = leads_by_email.get(email)
        if existing is None or _recency(lead) > _recency(existing):
            leads_by_email[email] = lead
    return list(leads_by_email.values())


async def calculate_leads(
    session: AsyncSession, scope: LeadScope, *, now: datetime | None = None
) -> LeadCalculation:
    """Resolve de-duplicated leads for the given scope.

    A lead is a completed quiz session with both a name and an email answer.
    When several sessions share an email only the most recent one counts.
    """
    affiliate_code = await _resolve_affiliate_code(session, scope)
    filters = _completed_session_filters(scope, affiliate_code, now)

    all_completed_sessions = await session.scalar(
        select(func.count()).select_from(QuizSession).where(*filters)
    ) or 0

    candidates_stmt = (
        select(QuizSession)
        .options(selectinload(QuizSession.answers).joinedload(QuizAnswer.question))
        .where(*filters, _has_email_answer_clause())
        .order_by(QuizSession.created_at.desc())
    )
    candidates = list((await session.execute(candidates_stmt)).scalars().unique().all())

    actual_leads = [candidate for candidate in candidates if has_contact_answers(candidate.answers)]
    leads = dedupe_leads_by_email(actual_leads)

    lead_conversion_rate = (
        (len(leads) / all_completed_sessions) * 100 if all_completed_sessions > 0 else 0.0
    )
    logger.debug(
        "leads_calculated",
        extra={
            "extra": {
                "candidates": len(candidates),
                "qualified": len(actual_leads),
                "total_leads": len(leads),
                "all_completed_sessions": all_completed_sessions,
            }
        },
    )
    return LeadCalculation(
        total_leads=len(leads),
        leads=leads,
        all_completed_sessions=all_completed_sessions,
        lead_conversion_rate=lead_conversion_rate,
    )


async def calculate_affiliate_leads(
    session: AsyncSession, affiliate_id: str, date_range: DateRange = DEFAULT_DATE_RANGE
) -> LeadCalculation:
    return await calculate_leads(session, LeadScope(affiliate_id=affiliate_id, date_range=date_range))


async def calculate_leads_by_code(
    session: AsyncSession, affiliate_code: str, date_range: DateRange = DEFAULT_DATE_RANGE
) -> LeadCalculation:
    return await calculate_leads(
        session, LeadScope(affiliate_code=affiliate_code, date_range=date_range)
    )


async def calculate_total_leads(
    session: AsyncSession,
    date_range: DateRange = DEFAULT_DATE_RANGE,
    quiz_type: str | None = None,
) -> LeadCalculation:
    return await calculate_leads(session, LeadScope(date_range=date_range, quiz_type=quiz_type))


async def calculate_leads_with_date_range(
    session: AsyncSession,
    start_date: datetime,
    end_date: datetime,
    affiliate_id: str | None = None,
    affiliate_code: str | None = None,
) -> LeadCalculation:
    return await calculate_leads(
        session,
        LeadScope(
            affiliate_id=affiliate_id,
            affiliate_code=affiliate_code,
            start_date=start_date,
            end_date=end_date,
        ),
    )


def summarize_lead(lead: QuizSession, status_info: LeadStatusInfo | None = None) -> LeadSummary:
    status_info = status_info or COMPLETED_STATUS
    return LeadSummary(
        session_id=lead.id,
        quiz_type=lead.quiz_type,
        name=lead_name_from_answers(lead.answers),
        email=lead_email_from_answers(lead.answers) or "",
        status=status_info.status,
        appointment_id=status_info.appointment_id,
        affiliate_code=lead.affiliate_code,
        created_at=lead.created_at,
        completed_at=lead.completed_at,
    )


async def get_lead_status(session: AsyncSession, session_id: str) -> LeadStatusInfo:
    """Classify a lead as ``booked`` or ``completed``.

    Appointments linked by session id win; appointments booked before that link
    existed are matched by the lower-cased lead email.
    """
    direct_appointment = await session.scalar(
        select(Appointment)
        .where(Appointment.quiz_session_id == session_id)
        .order_by(Appointment.created_at.desc())
        .limit(1)
    )
    if direct_appointment is not None:
        return _booked_status(direct_appointment)

    quiz_session = await session.scalar(
        select(QuizSession)
        .options(selectinload(QuizSession.answers).joinedload(QuizAnswer.question))
        .where(QuizSession.id == session_id)
    )
    if quiz_session is None:
        raise NotFoundError(detail="Quiz session not found")

    email = resolve_lead_email(quiz_session.answers)
    if email:
        email_appointment = await session.scalar(
            select(Appointment)
            .where(
                Appointment.customer_email == email.lower(),
                Appointment.quiz_session_id.is_(None),
            )
            .order_by(Appointment.created_at.desc())
            .limit(1)
        )
        if email_appointment is not None:
            logger.info(
                "lead_status_email_fallback",
                extra={"extra": {"session_id": session_id, "appointment_id": email_appointment.id}},
            )
            return _booked_status(email_appointment)

    return COMPLETED_STATUS


async def get_lead_statuses(session: AsyncSession, session_ids: list[str]) -> dict[str, LeadStatusInfo]:
    """Batched ``get_lead_status`` for a page of leads.

    One query covers appointments linked by session id; a second covers the
    email fallback for the rest. Unknown session ids resolve to ``completed``.
    """
    if not session_ids:
        return {}

    statuses: dict[str, LeadStatusInfo] = {}
    direct_appointments = await session.scalars(
        select(Appointment)
        .where(Appointment.quiz_session_id.in_(session_ids))
        .order_by(Appointment.created_at.desc())
    )
    for appointment in direct_appointments:
        statuses.setdefault(appointment.quiz_session_id, _booked_status(appointment))

    unresolved = [session_id for session_id in session_ids if session_id not in statuses]
    emails_by_session: dict[str, str] = {}
    if unresolved:
        quiz_sessions = await session.scalars(
            select(QuizSession)
            .options(selectinload(QuizSession.answers).joinedload(QuizAnswer.question))
            .where(QuizSession.id.in_(unresolved))
        )
        for quiz_session in quiz_sessions.unique():
            email = resolve_lead_email(quiz_session.answers)
            if email:
                emails_by_session[quiz_session.id] = email.lower()

    appointments_by_email: dict[str, Appointment] = {}
    if emails_by_session:
        email_appointments = await session.scalars(
            select(Appointment)
            .where(
                Appointment.customer_email.in_(set(emails_by_session.values())),
                Appointment.quiz_session_id.is_(None),
            )
            .order_by(Appointment.created_at.desc())
        )
        for appointment in email_appointments:
            appointments_by_email.setdefault(appointment.customer_email, appointment)

    for session_id in session_ids:
        if session_id in statuses:
            continue
        appointment = appointments_by_email.get(emails_by_session.get(session_id, ""))
        statuses[session_id] = _booked_status(appointment) if appointment else COMPLETED_STATUS

    logger.debug(
        "lead_statuses_resolved",
        extra={
            "extra": {
                "sessions": len(session_ids),
                "booked": sum(1 for info in statuses.values() if info.status == "booked"),
            }
        },
    )
    return statuses


def _booked_status(appointment: Appointment) -> LeadStatusInfo:
    return LeadStatusInfo(
        status="booked",
        label="Booked",
        description="Booked a call",
        affiliate_code=appointment.affiliate_code,
        appointment_id=appointment.id,
    )
