import json
import logging

from funnel_crm.infra.logging import (
    RedactingJsonFormatter,
    clear_log_context,
    redact_pii,
    update_log_context,
)


def _format(record: logging.LogRecord) -> dict:
    return json.loads(RedactingJsonFormatter().format(record))


def test_redact_pii_masks_emails_and_bearer_tokens():
    redacted = redact_pii("lead jane@x.com sent Bearer abc.def.ghi")

    assert "jane@x.com" not in redacted
    assert "[REDACTED_EMAIL]" in redacted
    assert "Bearer [REDACTED_TOKEN]" in redacted


def test_formatter_merges_context_and_redacts_sensitive_keys():
    update_log_context(request_id="req-1", path="/v1/admin/leads")
    try:
        record = logging.LogRecord("funnel_crm.test", logging.INFO, __file__, 1, "lead_status_email_fallback", (), None)
        record.extra = {"session_id": "s-1", "lead_email": "jane@x.com", "note": "ping jane@x.com"}
        payload = _format(record)
    finally:
        clear_log_context()

    assert payload["message"] == "lead_status_email_fallback"
    assert payload["request_id"] == "req-1"
    assert payload["session_id"] == "s-1"
    assert payload["lead_email"] == "[REDACTED]"
    assert payload["note"] == "ping [REDACTED_EMAIL]"
