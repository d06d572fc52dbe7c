"""Schemas for the lead activity timeline."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ActivityType = Literal[
    "quiz_completed",
    "call_booked",
    "task_created",
    "task_started",
    "note_added",
    "outcome_marked",
    "outcome_updated",
    "task_completed",
    "deal_closed",
]

# Tie-break order for events sharing an exact timestamp.
ACTIVITY_TYPE_PRIORITY: dict[str, int] = {
    "quiz_completed": 1,
    "call_booked": 2,
    "task_created": 3,
    "task_started": 4,
    "note_added": 5,
    "outcome_marked": 6,
    "outcome_updated": 7,
    "task_completed": 8,
    "deal_closed": 9,
}

ViewerRole = Literal["admin", "closer"]


@dataclass(frozen=True)
class TimelineViewer:
    """Capability of the caller requesting a lead timeline."""

    role: ViewerRole
    closer_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def admin(cls) -> "TimelineViewer":
        return cls(role="admin")

    @classmethod
    def closer(cls, closer_id: str) -> "TimelineViewer":
        return cls(role="closer", closer_id=closer_id)


class ActivityEvent(BaseModel):
    id: str
    type: ActivityType
    timestamp: datetime
    lead_name: str
    actor: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class TimelineResponse(BaseModel):
    session_id: str
    activities: list[ActivityEvent]
    total: int

