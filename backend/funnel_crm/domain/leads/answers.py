"""Classification of quiz answers into lead contact fields."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from funnel_crm.domain.quiz.db_models import QuizAnswer
from funnel_crm.domain.quiz.statuses import QUESTION_TYPE_EMAIL, QUESTION_TYPE_TEXT

DEFAULT_LEAD_NAME = "Lead"


def _prompt(answer: QuizAnswer) -> str:
    question = answer.question
    if question is None or not question.prompt:
        return ""
    return question.prompt.lower()


def _question_type(answer: QuizAnswer) -> str | None:
    question = answer.question
    return question.type if question is not None else None


def is_name_answer(answer: QuizAnswer) -> bool:
    return "name" in _prompt(answer)


def is_email_answer(answer: QuizAnswer) -> bool:
    return _question_type(answer) == QUESTION_TYPE_EMAIL or "email" in _prompt(answer)


def answer_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def lead_name_answer(answers: Iterable[QuizAnswer]) -> QuizAnswer | None:
    """First name-prompted answer that carries a value."""
    return next((answer for answer in answers if is_name_answer(answer) and answer.value), None)


def lead_email_answer(answers: Iterable[QuizAnswer]) -> QuizAnswer | None:
    """First email-typed or email-prompted answer that carries a value."""
    return next((answer for answer in answers if is_email_answer(answer) and answer.value), None)


def has_contact_answers(answers: list[QuizAnswer]) -> bool:
    """A session qualifies as a lead when some name answer and some email answer carry a value."""
    return lead_name_answer(answers) is not None and lead_email_answer(answers) is not None


def lead_email_from_answers(answers: list[QuizAnswer]) -> str | None:
    """Email used to deduplicate leads, exactly as stored."""
    email_answer = lead_email_answer(answers)
    if email_answer is None:
        return None
    return answer_text(email_answer.value)


def lead_name_from_answers(answers: list[QuizAnswer]) -> str:
    name_answer = lead_name_answer(answers)
    return answer_text(name_answer.value) if name_answer is not None else ""


def resolve_lead_email(answers: list[QuizAnswer]) -> str | None:
    """Email used to join a lead to appointments, notes and tasks.

    Prefers an email-typed or email-prompted answer and falls back to any
    answer whose value contains ``@``.
    """
    email = lead_email_from_answers(answers)
    if email:
        return email
    for answer in answers:
        if not answer.value:
            continue
        if "@" in answer_text(answer.value):
            return answer_text(answer.value)
    return None


def resolve_lead_name(answers: list[QuizAnswer]) -> str:
    name_answer = next(
        (
            answer
            for answer in answers
            if _question_type(answer) == QUESTION_TYPE_TEXT or "name" in _prompt(answer)
        ),
        None,
    )
    if name_answer is None or not name_answer.value:
        return DEFAULT_LEAD_NAME
    return answer_text(name_answer.value)
