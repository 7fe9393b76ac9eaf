"""Tests for logging utilities."""

import logging

from utils.logging import (
    AgentLogger,
    RequestIdFilter,
    StructuredFormatter,
    request_id_var,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("agent.test", logging.INFO, __file__, 1, "hello", (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatting:
    """Test request id stamping and structured fields."""

    def test_request_id_from_context(self):
        record = make_record()
        token = request_id_var.set("req-42")
        try:
            RequestIdFilter().filter(record)
        finally:
            request_id_var.reset(token)

        assert record.request_id == "req-42"

    def test_request_id_default(self):
        record = make_record()
        RequestIdFilter().filter(record)
        assert record.request_id == "-"

    def test_extra_fields_rendered(self):
        formatter = StructuredFormatter("%(message)s")
        record = make_record(model="gpt-4o", prompt_tokens=5, latency_ms=None)

        assert formatter.format(record) == "hello | model=gpt-4o prompt_tokens=5"

    def test_plain_record_unchanged(self):
        assert StructuredFormatter("%(message)s").format(make_record()) == "hello"


class TestAgentLogger:
    """Test tracing gates."""

    def test_llm_call_traced_when_enabled(self, caplog, test_settings):
        logger = AgentLogger("test_calls")
        logger.settings = test_settings.model_copy(update={"enable_llm_tracing": True})

        with caplog.at_level(logging.INFO, logger="agent.test_calls"):
            logger.llm_call("m", prompt_tokens=5, completion_tokens=1, latency_ms=12.34)

        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert record.outcome == "success"
        assert record.latency_ms == 12.3

    def test_failed_call_logged_without_tracing(self, caplog, test_settings):
        logger = AgentLogger("test_failures")
        logger.settings = test_settings.model_copy(update={"enable_llm_tracing": False})

        with caplog.at_level(logging.INFO, logger="agent.test_failures"):
            logger.llm_call("m", outcome="success")
            logger.thought("hidden")
            logger.llm_call("m", outcome="error", error_type="ProviderError")

        assert len(caplog.records) == 1
        assert caplog.records[0].levelno == logging.WARNING
        assert caplog.records[0].error_type == "ProviderError"

    def test_response_always_logged_and_truncated(self, caplog, test_settings):
        logger = AgentLogger("test_responses")
        logger.settings = test_settings.model_copy(update={"enable_llm_tracing": False})

        with caplog.at_level(logging.INFO, logger="agent.test_responses"):
            logger.response("x" * 150)

        assert caplog.records[0].getMessage() == "[RESPONSE] " + "x" * 100 + "..."
