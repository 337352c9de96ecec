"""Tests for structured logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from shield.app.core.logging import (
    ContextFilter,
    JSONFormatter,
    get_log_context,
    get_logger,
    get_logging_config,
    setup_logging,
)


def _record(msg="Test message", level=logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_context(self):
        record = _record("Rate limit exceeded")
        record.request_id = "req-1"
        record.client_ip = "203.0.113.9"
        record.event_type = "rate_limit_exceeded"
        record.severity = "MEDIUM"

        data = json.loads(JSONFormatter().format(record))

        assert data["request_id"] == "req-1"
        assert data["client_ip"] == "203.0.113.9"
        assert data["event_type"] == "rate_limit_exceeded"
        assert data["severity"] == "MEDIUM"
        assert "extra" not in data

    def test_json_format_with_extra_fields(self):
        record = _record("Counter repaired")
        record.key = "rate_limit:1.1.1.1:/api/jobs"
        record.anomaly = "missing_ttl"

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"]["key"] == "rate_limit:1.1.1.1:/api/jobs"
        assert data["extra"]["anomaly"] == "missing_ttl"

    def test_unset_context_fields_are_omitted(self):
        record = _record()
        ContextFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert "client_ip" not in data
        assert "extra" not in data

    def test_json_format_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            record = _record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text

    def test_json_format_unicode(self):
        data = json.loads(JSONFormatter().format(_record("Candidate: José Müller")))
        assert data["message"] == "Candidate: José Müller"


class TestContextFilter:
    """Test context filter for adding default fields."""

    def test_adds_default_fields(self):
        record = _record()

        assert ContextFilter().filter(record) is True
        for field in JSONFormatter.CONTEXT_FIELDS:
            assert hasattr(record, field)

    def test_preserves_existing_values(self):
        record = _record()
        record.client_ip = "198.51.100.1"

        ContextFilter().filter(record)

        assert record.client_ip == "198.51.100.1"
        assert record.event_type is None


class TestGetLoggingConfig:
    """Test logging configuration generation."""

    def test_default_text_format(self):
        with patch("shield.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "text"
            mock_settings.log_level = "INFO"

            config = get_logging_config()

        assert "json" not in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "standard"

    def test_structured_format(self):
        with patch("shield.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "structured"
            mock_settings.log_level = "DEBUG"

            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert config["handlers"]["console"]["level"] == "DEBUG"

    def test_json_format(self):
        with patch("shield.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "warning"

            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["handlers"]["console"]["level"] == "WARNING"

    def test_context_filter_added(self):
        config = get_logging_config()

        assert "context" in config["filters"]
        assert "context" in config["handlers"]["console"]["filters"]
        assert config["loggers"]["shield"]["propagate"] is False


class TestGetLogger:

    def test_get_logger_default_name(self):
        assert get_logger().name == "shield"

    def test_get_logger_custom_name(self):
        assert get_logger("shield.app.core.store").name == "shield.app.core.store"


class TestGetLogContext:
    """Test get_log_context helper function."""

    def test_basic_context(self):
        context = get_log_context(client_ip="203.0.113.1", event_type="suspicious_activity")
        assert context == {"client_ip": "203.0.113.1", "event_type": "suspicious_activity"}

    def test_context_filters_none(self):
        context = get_log_context(request_id="req-1", user_id=None, key=None)
        assert context == {"request_id": "req-1"}

    def test_context_with_extra(self):
        context = get_log_context(client_ip="1.1.1.1", key="rate_limit:1.1.1.1:/api", attempts=3)
        assert context["key"] == "rate_limit:1.1.1.1:/api"
        assert context["attempts"] == 3


class TestIntegration:

    def test_json_logging_output(self, capsys):
        with patch("shield.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "INFO"

            setup_logging()
            logger = get_logger("shield.test.integration")
            logger.warning(
                "Rate limit exceeded",
                extra=get_log_context(client_ip="203.0.113.1", event_type="rate_limit_exceeded"),
            )

        data = json.loads(capsys.readouterr().out.strip())

        assert data["level"] == "WARNING"
        assert data["logger"] == "shield.test.integration"
        assert data["client_ip"] == "203.0.113.1"
        assert data["event_type"] == "rate_limit_exceeded"
