from __future__ import annotations

from typing import Final

OUTCOME_CONVERTED: Final[str] = "converted"
OUTCOME_NOT_INTERESTED: Final[str] = "not_interested"
OUTCOME_NEEDS_FOLLOW_UP: Final[str] = "needs_follow_up"
OUTCOME_WRONG_NUMBER: Final[str] = "wrong_number"
OUTCOME_NO_ANSWER: Final[str] = "no_answer"
OUTCOME_CALLBACK_REQUESTED: Final[str] = "callback_requested"
OUTCOME_RESCHEDULED: Final[str] = "rescheduled"

APPOINTMENT_OUTCOMES: Final[tuple[str, ...]] = (
    OUTCOME_CONVERTED,
    OUTCOME_NOT_INTERESTED,
    OUTCOME_NEEDS_FOLLOW_UP,
    OUTCOME_WRONG_NUMBER,
    OUTCOME_NO_ANSWER,
    OUTCOME_CALLBACK_REQUESTED,
    OUTCOME_RESCHEDULED,
)

# Appointment column holding the recording link captured for each outcome.
RECORDING_LINK_FIELDS: Final[dict[str, str]] = {
    OUTCOME_CONVERTED: "recording_link_converted",
    OUTCOME_NOT_INTERESTED: "recording_link_not_interested",
    OUTCOME_NEEDS_FOLLOW_UP: "recording_link_needs_follow_up",
    OUTCOME_WRONG_NUMBER: "recording_link_wrong_number",
    OUTCOME_NO_ANSWER: "recording_link_no_answer",
    OUTCOME_CALLBACK_REQUESTED: "recording_link_callback_requested",
    OUTCOME_RESCHEDULED: "recording_link_rescheduled",
}

TASK_STATUS_PENDING: Final[str] = "pending"
TASK_STATUS_IN_PROGRESS: Final[str] = "in_progress"
TASK_STATUS_COMPLETED: Final[str] = "completed"

TASK_STATUSES: Final[tuple[str, ...]] = (
    TASK_STATUS_PENDING,
    TASK_STATUS_IN_PROGRESS,
    TASK_STATUS_COMPLETED,
)

AUDIT_ACTION_OUTCOME_UPDATED: Final[str] = "appointment_outcome_updated"
