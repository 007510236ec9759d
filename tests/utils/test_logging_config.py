"""Tests for logging setup."""

import json
import logging
import sys

import pytest

from src.utils.logging_config import JSONFormatter, configure_logging


@pytest.fixture(autouse=True)
def _restore_logging():
    """configure_logging replaces root handlers; put them back afterwards."""
    root = logging.getLogger()
    app_logger = logging.getLogger("src")
    saved_handlers = root.handlers[:]
    saved_levels = (root.level, app_logger.level)
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_levels[0])
    app_logger.setLevel(saved_levels[1])


def _record(msg="hello %s", args=("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord("src.test", logging.WARNING, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_core_fields(self):
        payload = json.loads(JSONFormatter().format(_record()))

        assert payload["level"] == "WARNING"
        assert payload["logger"] == "src.test"
        assert payload["msg"] == "hello world"
        assert "time" in payload

    def test_extra_fields_included(self):
        payload = json.loads(JSONFormatter().format(_record(conversation_id="conv_1")))

        assert payload["conversation_id"] == "conv_1"

    def test_exception_rendered(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord(
                "src.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )

        payload = json.loads(JSONFormatter().format(record))

        assert "ValueError: bad" in payload["exc_info"]


class TestConfigureLogging:
    def test_sets_levels(self):
        configure_logging("debug")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("src").level == logging.DEBUG

    def test_json_format_selected(self):
        configure_logging("info", "json")

        assert isinstance(logging.getLogger().handlers[0].formatter, JSONFormatter)

    def test_log_file_written(self, tmp_path):
        log_file = tmp_path / "logs" / "text2sql.log"
        configure_logging("info", "text", str(log_file))

        logging.getLogger("src.test").info("written to file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "written to file" in log_file.read_text(encoding="utf-8")
