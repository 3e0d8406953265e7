"""
logging_config.py — Log output for the window quotation engine.

Every module logs through a ``fenestra-*`` logger (``fenestra-quotation``, ``fenestra-codec``,
``fenestra-store`` ...). Call sites attach context with ``extra=``:

  quotation_number   quotation being created, saved, loaded or exported
  window_id          window whose pricing or configuration changed
  timed_function     qualified name reported by perf_monitor.timed / timed_async
  duration_ms        elapsed time reported alongside timed_function

JSONFormatter lifts those attributes into top-level keys so a log shipper can filter
on them. Text output (LOG_FORMAT=text) is meant for a developer terminal.
"""
import json
import logging
import sys
from datetime import datetime, timezone

# Record attributes copied into the JSON entry when a call site set them
EXTRA_FIELDS = ("quotation_number", "window_id", "timed_function", "duration_ms")

# Driver and HTTP client chatter stays at WARNING regardless of LOG_LEVEL
QUIET_LOGGERS = ("httpcore", "httpx", "sqlalchemy.engine", "asyncpg", "aiosqlite")

TEXT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the engine's context extras as top-level keys."""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True):
    """Install a single stdout handler on the root logger; unknown level names mean INFO."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    root.handlers = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging_from_config():
    from app.config import LOG_FORMAT, LOG_LEVEL
    setup_logging(level=LOG_LEVEL, json_output=LOG_FORMAT != "text")
