"""
Logging Validation Test

Validates the structured logging stack:
1. Correlation context carries review session, route and business date
2. Context variables are isolated and restored
3. JSON and human-readable formatters include correlation and extra fields
4. Settings are read from the environment
"""

import json
import logging
from decimal import Decimal

from core.observability.logging import (
    CorrelationContext,
    HumanReadableFormatter,
    StructuredFormatter,
    get_correlation_context,
    get_logger,
    with_correlation,
)
from core.settings import get_settings


def _record(msg="Gate evaluated", extra_fields=None):
    record = logging.LogRecord(
        name="reconciliation.session",
        level=logging.INFO,
        pathname="session.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    if extra_fields is not None:
        record.extra_fields = extra_fields
    return record


class TestCorrelatedLogging:
    """Test structured logging with correlation IDs."""

    def test_correlation_context_creation(self):
        ctx = CorrelationContext(
            review_session_id="rev-001",
            route_id="route-7",
            business_date="2024-03-05T00:00:00.000Z",
            stage="evaluate",
        )
        assert ctx.to_dict() == {
            "review_session_id": "rev-001",
            "route_id": "route-7",
            "business_date": "2024-03-05T00:00:00.000Z",
            "stage": "evaluate",
        }

    def test_context_var_isolation(self):
        assert get_correlation_context().review_session_id is None

        with with_correlation(review_session_id="rev-001", route_id="route-7"):
            with with_correlation(stage="commit"):
                inner = get_correlation_context()
                assert inner.review_session_id == "rev-001"
                assert inner.stage == "commit"
            assert get_correlation_context().stage is None

        assert get_correlation_context().review_session_id is None

    def test_structured_formatter_json_output(self):
        formatter = StructuredFormatter()

        with with_correlation(review_session_id="rev-001", stage="evaluate"):
            data = json.loads(formatter.format(_record(extra_fields={"blocking": 2})))

        assert data["message"] == "Gate evaluated"
        assert data["level"] == "INFO"
        assert data["review_session_id"] == "rev-001"
        assert data["stage"] == "evaluate"
        assert data["blocking"] == 2

    def test_human_readable_formatter(self):
        formatter = HumanReadableFormatter()

        with with_correlation(review_session_id="rev-001", route_id="route-7"):
            line = formatter.format(_record(extra_fields={"warnings": 1}))

        assert "[rev-001/route-7]" in line
        assert line.endswith("Gate evaluated warnings=1")

    def test_decimal_amounts_are_exact(self):
        data = json.loads(StructuredFormatter().format(_record(extra_fields={"delta": Decimal("-1250.50")})))
        assert data["delta"] == "-1250.50"

    def test_adapter_attaches_extra_fields(self):
        records = []

        class _Capture(logging.Handler):
            def emit(self, record):
                records.append(record)

        base = logging.getLogger("reconciliation.capture")
        handler = _Capture()
        base.addHandler(handler)
        try:
            get_logger("reconciliation.capture").warning("Commit failed", extra_fields={"reason": "timeout"})
        finally:
            base.removeHandler(handler)

        assert records[-1].extra_fields == {"reason": "timeout"}
        assert records[-1].getMessage() == "Commit failed"

    def test_get_logger_is_cached(self):
        assert get_logger("reconciliation.test") is get_logger("reconciliation.test")


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("RECON_LOG_LEVEL", "debug")
    monkeypatch.setenv("RECON_LOG_JSON", "true")
    monkeypatch.setenv("LEDGER_COMMIT_TIMEOUT_SECONDS", "not-a-number")

    settings = get_settings()

    assert settings.log_level == "DEBUG"
    assert settings.log_json is True
    assert settings.commit_timeout_seconds == 30
