# tests/core/test_logging.py
import json
import logging

from betguard.core.logging import JsonFormatter, StructuredLogger


def test_structured_log_is_rendered_as_json(caplog):
    logger = StructuredLogger("test.compliance")

    with caplog.at_level(logging.INFO, logger="test.compliance"):
        logger.info("Alert created", operation="create_alert", user_id="u-1", bank_account="DE89 3704")

    record = caplog.records[-1]
    assert "operation=create_alert" in record.getMessage()
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "Alert created"
    assert payload["context"]["user_id"] == "u-1"
    assert payload["context"]["bank_account"] == "***REDACTED***"


def test_error_includes_exception(caplog):
    logger = StructuredLogger("test.compliance")

    with caplog.at_level(logging.ERROR, logger="test.compliance"):
        try:
            raise ValueError("bad weights")
        except ValueError as e:
            logger.error("Scoring failed", exception=e, operation="calculate_risk_score")

    payload = json.loads(JsonFormatter().format(caplog.records[-1]))
    assert payload["exception"]["type"] == "ValueError"
    assert payload["exception"]["message"] == "bad weights"


def test_plain_records_are_formatted():
    record = logging.LogRecord("betguard.db", logging.WARNING, __file__, 10, "pool exhausted", None, None)

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["message"] == "pool exhausted"
    assert payload["logger"] == "betguard.db"


def test_bound_context_is_included(caplog):
    logger = StructuredLogger("test.compliance", service="compliance_triage").bind(user_id="u-9")

    with caplog.at_level(logging.WARNING, logger="test.compliance"):
        logger.warning("Alert escalated", severity="critical")

    payload = json.loads(JsonFormatter().format(caplog.records[-1]))
    assert payload["context"] == {"service": "compliance_triage", "user_id": "u-9", "severity": "critical"}
    assert payload["function"] == "test_bound_context_is_included"
