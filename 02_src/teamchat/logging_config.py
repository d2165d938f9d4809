"""JSON logging for the chat service."""

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import DEFAULT_LOG_PATH

# Record attributes lifted into every line when passed via ``extra=``
CONTEXT_FIELDS = ("connection_id", "member_id", "message_id", "event")

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = {
    "uvicorn.access": "WARNING",
    "aiosqlite": "WARNING",
    "websockets": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
}


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _handlers(log_file: str | None) -> dict[str, dict[str, Any]]:
    handlers: dict[str, dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        },
    }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "json",
            "encoding": "utf-8",
        }
    return handlers


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
) -> None:
    """
    Configure root logging with the JSON formatter.

    Args:
        log_level: Level name; falls back to LOG_LEVEL, then INFO.
        log_file: Rotating log file; falls back to LOG_FILE, then
                  04_logs/app.log. Pass "-" to log to stdout only.
    """
    level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file or os.getenv("LOG_FILE") or str(DEFAULT_LOG_PATH)
    if log_file == "-":
        log_file = None

    handlers = _handlers(log_file)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": JSONFormatter}},
            "handlers": handlers,
            "loggers": {
                name: {"level": quiet} for name, quiet in QUIET_LOGGERS.items()
            },
            "root": {"level": level, "handlers": list(handlers)},
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger; use ``extra={"member_id": ...}`` to attach chat context."""
    return logging.getLogger(name)
