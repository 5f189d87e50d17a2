"""Structured JSON logging for the BalasinAja API.

Every record is one JSON object per line on stdout. Request-scoped fields
(tenant id, message id, broadcast id) travel in ``record.context`` either via
``extra={"context": {...}}`` or through a :class:`ContextLogger` bound once
per request.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from app.config import settings

LOGGER_NAMESPACE = "balasinaja"
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: Optional[str] = None) -> None:
    """Install the JSON handler on the root logger (idempotent)."""
    level_name = (level or settings.log_level or "INFO").upper()
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


class ContextLogger(logging.LoggerAdapter):
    """Adapter that merges bound fields into each record's context."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra") or {}
        context = {**self.extra, **(extra.get("context") or {})}
        kwargs["extra"] = {**extra, "context": context}
        return msg, kwargs


def bind_logger(name: str, **context: Any) -> ContextLogger:
    return ContextLogger(get_logger(name), {key: value for key, value in context.items() if value is not None})
