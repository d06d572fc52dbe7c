from __future__ import annotations

from typing import Final

SESSION_STATUS_IN_PROGRESS: Final[str] = "in_progress"
SESSION_STATUS_COMPLETED: Final[str] = "completed"
SESSION_STATUS_ABANDONED: Final[str] = "abandoned"

SESSION_STATUSES: Final[tuple[str, ...]] = (
    SESSION_STATUS_IN_PROGRESS,
    SESSION_STATUS_COMPLETED,
    SESSION_STATUS_ABANDONED,
)

QUESTION_TYPE_TEXT: Final[str] = "text"
QUESTION_TYPE_EMAIL: Final[str] = "email"
QUESTION_TYPE_SINGLE: Final[str] = "single"


def default_session_status() -> str:
    return SESSION_STATUS_IN_PROGRESS
