"""Tests for the log formatters and context helpers."""

import json
import logging

import pytest

from core.logging_config import (
    ColoredConsoleFormatter, LoggingConfig, RedactingFilter, StructuredFormatter, log_api_call,
    log_error_with_context,
)


def _record(message="hello", extra_data=None, level=logging.INFO):
    record = logging.LogRecord("handshake.poller", level, __file__, 10, message, None, None)
    if extra_data is not None:
        record.extra_data = extra_data
    return record


class TestFormatters:

    def test_structured_formatter_merges_extra_data(self):
        entry = json.loads(StructuredFormatter().format(_record(extra_data={"status_code": 202})))

        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "handshake.poller"
        assert entry["status_code"] == 202
        assert entry["timestamp"].endswith("Z")

    def test_console_formatter_renders_extra_data(self):
        line = ColoredConsoleFormatter().format(_record(extra_data={"attempt": 3}))

        assert "hello" in line
        assert "attempt=3" in line

    def test_console_formatter_leaves_levelname_untouched(self):
        record = _record()
        ColoredConsoleFormatter().format(record)
        assert record.levelname == "INFO"


class TestContextHelpers:

    def test_log_api_call(self, caplog):
        logger = logging.getLogger("test.api")
        with caplog.at_level(logging.DEBUG, logger="test.api"):
            log_api_call(logger, "backend", "handshake/poll", 202, 12.345, method="POST")

        record = caplog.records[-1]
        assert record.extra_data == {
            "service": "backend",
            "endpoint": "handshake/poll",
            "status_code": 202,
            "duration_ms": 12.3,
            "method": "POST",
        }

    def test_log_error_with_context(self, caplog):
        logger = logging.getLogger("test.errors")
        with caplog.at_level(logging.ERROR, logger="test.errors"):
            log_error_with_context(logger, ValueError("bad"), "poll_loop", attempt=4)

        record = caplog.records[-1]
        assert record.getMessage() == "Error in poll_loop: bad"
        assert record.extra_data["error_type"] == "ValueError"
        assert record.extra_data["attempt"] == 4


class TestRedactingFilter:

    def test_scrubs_message_and_extra_data(self):
        record = logging.LogRecord("relay", logging.INFO, __file__, 1, "sent %s", ("Bearer abcdef123",), None)
        record.extra_data = {"deviceToken": "secret", "status": 200}

        assert RedactingFilter().filter(record) is True
        assert record.getMessage() == "sent [REDACTED]"
        assert record.extra_data == {"deviceToken": "[PRESENT]", "status": 200}

    def test_leaves_clean_records_alone(self):
        record = _record("poll attempt %d", None)
        record.args = (3,)

        RedactingFilter().filter(record)

        assert record.getMessage() == "poll attempt 3"


class TestLoggingConfig:

    def test_file_handlers_write_under_log_dir(self, tmp_path):
        config = LoggingConfig(log_level="DEBUG", log_dir=str(tmp_path), enable_console_logging=False)
        handlers = config.build_handlers()
        try:
            assert len(handlers) == 2
            assert (tmp_path / "background_host.log").exists()
            assert handlers[1].level == logging.ERROR
        finally:
            for handler in handlers:
                handler.close()

    def test_unknown_level_is_rejected(self):
        with pytest.raises(ValueError):
            LoggingConfig(log_level="LOUD")
