from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from funnel_crm.domain.quiz.db_models import QuizSession
from funnel_crm.shared.datetimes import as_utc

DateRange = Literal["24h", "7d", "30d", "90d", "1y", "all"]
LeadStatusValue = Literal["completed", "booked"]


class LeadScope(BaseModel):
    """Filters for resolving leads.

    An explicit ``start_date``/``end_date`` pair takes precedence over
    ``date_range``; a lone bound is ignored.
    """

    model_config = ConfigDict(extra="forbid")

    affiliate_id: Optional[str] = None
    affiliate_code: Optional[str] = None
    date_range: DateRange = "30d"
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    quiz_type: Optional[str] = None

    @model_validator(mode="after")
    def validate_window(self) -> "LeadScope":
        if self.has_explicit_window and as_utc(self.start_date) > as_utc(self.end_date):
            raise ValueError("start_date must not be after end_date")
        return self

    @property
    def has_explicit_window(self) -> bool:
        return self.start_date is not None and self.end_date is not None


@dataclass
class LeadCalculation:
    total_leads: int
    leads: list[QuizSession] = field(default_factory=list)
    all_completed_sessions: int = 0
    lead_conversion_rate: float = 0.0


class LeadSummary(BaseModel):
    session_id: str
    quiz_type: str
    name: str
    email: str
    status: LeadStatusValue = "completed"
    appointment_id: Optional[str] = None
    affiliate_code: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class LeadListResponse(BaseModel):
    total_leads: int
    all_completed_sessions: int
    lead_conversion_rate: float
    leads: List[LeadSummary]


class LeadStatusInfo(BaseModel):
    status: LeadStatusValue
    label: str
    description: str
    affiliate_code: Optional[str] = None
    appointment_id: Optional[str] = None


class LeadStatusResponse(LeadStatusInfo):
    session_id: str = Field(..., min_length=1)
