"""
Tests for the structured lifecycle log line.
"""
import logging

from app.core.structured_logger import log_event

logger = logging.getLogger("tests.log_event")


class TestLogEvent:
    def test_fields_rendered_in_text_and_extra(self, caplog):
        with caplog.at_level(logging.INFO, logger="tests.log_event"):
            log_event(
                logger,
                component="referrals",
                operation="member_joined",
                outcome="activated",
                correlation_id=42,
                duration_ms=12,
            )

        record = caplog.records[-1]
        assert record.getMessage() == (
            "EVENT referrals.member_joined outcome=activated correlation_id=42 duration_ms=12"
        )
        assert record.correlation_id == "42"
        assert record.outcome == "activated"
        assert not hasattr(record, "reason")

    def test_level_and_message_override(self, caplog):
        with caplog.at_level(logging.INFO, logger="tests.log_event"):
            log_event(
                logger,
                component="broadcast",
                operation="broadcast_run",
                outcome="failed",
                reason="infra_error",
                level="error",
                message="broadcast aborted",
            )

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.getMessage() == "broadcast aborted"
        assert record.reason == "infra_error"
