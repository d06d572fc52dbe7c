import csv
import io
import json
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from funnel_crm.domain.leads.answers import lead_email_from_answers, lead_name_from_answers
from funnel_crm.domain.leads.schemas import LeadStatusInfo
from funnel_crm.domain.quiz.db_models import QuizSession

CSV_HEADERS = [
    "Session ID",
    "Quiz Type",
    "Name",
    "Email",
    "Status",
    "Started At",
    "Completed At",
    "Answers Count",
    "Answers JSON",
]


def _iso(value: datetime | None) -> str:
    return value.isoformat() if value else ""


def _answers_object(lead: QuizSession) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for answer in lead.answers:
        question = answer.question
        if question is None:
            continue
        payload[f"Q{question.order}_{question.prompt[:50]}"] = answer.value
    return payload


def lead_csv_row(lead: QuizSession, status: str = "completed") -> list[str]:
    return [
        lead.id,
        lead.quiz_type,
        lead_name_from_answers(lead.answers),
        lead_email_from_answers(lead.answers) or "",
        status,
        _iso(lead.created_at),
        _iso(lead.completed_at),
        str(len(lead.answers)),
        json.dumps(_answers_object(lead), ensure_ascii=False),
    ]


def render_leads_csv(leads: list[QuizSession], statuses: Mapping[str, LeadStatusInfo] | None = None) -> str:
    """Quoted CSV of resolved leads; the Status column comes from ``statuses`` keyed by session id."""
    statuses = statuses or {}
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for lead in leads:
        status_info = statuses.get(lead.id)
        writer.writerow(lead_csv_row(lead, status_info.status if status_info else "completed"))
    return buffer.getvalue()
