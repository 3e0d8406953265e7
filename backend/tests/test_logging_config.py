"""
test_logging_config.py — Structured logging and timing decorators.

Tests cover:
  - JSONFormatter output fields and quotation / window / timing extras
  - setup_logging / setup_logging_from_config handler installation and noisy-logger suppression
  - timed / timed_async report duration_ms at DEBUG and never swallow errors
"""

import asyncio
import json
import logging
import sys

import pytest

from app.services.logging_config import JSONFormatter, setup_logging, setup_logging_from_config
from app.services.perf_monitor import timed, timed_async


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestJSONFormatter:

    def test_fields_and_extras(self):
        record = logging.LogRecord("fenestra-store", logging.INFO, __file__, 10, "Saved %s", ("Q-1",), None)
        record.quotation_number = "Q-1"
        record.duration_ms = 1.5
        entry = json.loads(JSONFormatter().format(record))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "fenestra-store"
        assert entry["message"] == "Saved Q-1"
        assert entry["quotation_number"] == "Q-1"
        assert entry["duration_ms"] == 1.5
        assert "window_id" not in entry

    def test_timing_extras_lifted(self):
        record = logging.LogRecord("fenestra-perf", logging.DEBUG, __file__, 5, "took", (), None)
        record.timed_function = "QuoteStore.save"
        record.duration_ms = 12.25
        record.window_id = "w-1"
        entry = json.loads(JSONFormatter().format(record))
        assert entry["timed_function"] == "QuoteStore.save"
        assert entry["duration_ms"] == 12.25
        assert entry["window_id"] == "w-1"
        assert "quotation_number" not in entry

    def test_timed_record_formats_with_function_name(self, caplog):
        @timed
        def price():
            return 1

        with caplog.at_level(logging.DEBUG, logger="fenestra-perf"):
            price()
        entry = json.loads(JSONFormatter().format(caplog.records[-1]))
        assert entry["timed_function"].endswith("price")
        assert entry["duration_ms"] >= 0

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]


class TestSetupLogging:

    def test_json_handler(self, restore_root_logger):
        setup_logging("debug", json_output=True)
        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_text_handler(self, restore_root_logger):
        setup_logging("bogus", json_output=False)
        assert restore_root_logger.level == logging.INFO
        assert not isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_from_config_text_format(self, restore_root_logger, monkeypatch):
        monkeypatch.setattr("app.config.LOG_FORMAT", "text")
        monkeypatch.setattr("app.config.LOG_LEVEL", "warning")
        setup_logging_from_config()
        assert restore_root_logger.level == logging.WARNING
        assert not isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("asyncpg").level == logging.WARNING


class TestTimingDecorators:

    def test_timed_logs_duration(self, caplog):
        @timed
        def work(x):
            return x * 2

        with caplog.at_level(logging.DEBUG, logger="fenestra-perf"):
            assert work(21) == 42
        record = caplog.records[-1]
        assert record.timed_function.endswith("work")
        assert record.duration_ms >= 0

    def test_timed_async_propagates_errors(self, caplog):
        @timed_async
        async def fail():
            raise RuntimeError("nope")

        with caplog.at_level(logging.DEBUG, logger="fenestra-perf"):
            with pytest.raises(RuntimeError):
                asyncio.run(fail())
        assert caplog.records[-1].timed_function.endswith("fail")
