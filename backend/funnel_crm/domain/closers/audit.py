"""Typed views over ``CloserAuditLog.details`` payloads, one model per action."""

import logging
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from funnel_crm.domain.closers.statuses import AUDIT_ACTION_OUTCOME_UPDATED

logger = logging.getLogger(__name__)


class OutcomeUpdatedDetails(BaseModel):
    """Snapshot stored with an ``appointment_outcome_updated`` entry.

    Entries written before snapshots were recorded lack ``recordingLink`` and
    ``notes`` entirely, while an explicit ``null`` means the value was cleared.
    :meth:`snapshot` keeps the two apart.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    appointment_id: str | None = None
    outcome: str | None = None
    previous_outcome: str | None = None
    sale_value: Decimal | None = None
    recording_link: str | None = None
    notes: str | None = None

    def snapshot(self, field_name: str) -> tuple[bool, Any]:
        """Return ``(recorded, value)`` for a snapshot field."""
        return field_name in self.model_fields_set, getattr(self, field_name)


AUDIT_DETAIL_MODELS: dict[str, type[BaseModel]] = {
    AUDIT_ACTION_OUTCOME_UPDATED: OutcomeUpdatedDetails,
}


def parse_audit_details(action: str, details: Any) -> BaseModel | None:
    model = AUDIT_DETAIL_MODELS.get(action)
    if model is None or not isinstance(details, dict):
        return None
    try:
        return model.model_validate(details)
    except ValidationError as exc:
        logger.warning(
            "closer_audit_details_invalid",
            extra={"extra": {"action": action, "errors": exc.error_count()}},
        )
        return None
