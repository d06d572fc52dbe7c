from datetime import datetime
from decimal import Decimal
from typing import Annotated, List

from pydantic import BaseModel, Field, PlainSerializer

MoneyAmount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ReleaseResult(BaseModel):
    success: bool = True
    released_count: int = 0
    released_amount: MoneyAmount = Decimal("0")
    released_ids: List[str] = Field(default_factory=list)
    current_date: datetime


class CommissionStatusSummary(BaseModel):
    ready_for_release: int
    total_held: int
    total_available: int
    held_amount: MoneyAmount
    available_amount: MoneyAmount
    current_date: datetime


class ForceReleaseResult(BaseModel):
    success: bool = True
    message: str
    commission_id: str
    released_at: datetime


class ScheduledReleaseResponse(ReleaseResult):
    message: str
    hold_days: int
