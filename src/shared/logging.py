"""Logging setup with optional structured JSON output and invocation ids."""
from __future__ import annotations

import contextvars
import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Any

# Context variable for the id of the running command invocation
invocation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "invocation_id", default=""
)

_TEXT_FORMAT = "%(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Custom JSON log formatter."""

    def __init__(self, service_name: str = "unknown") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service_name": self.service_name,
            "logger": record.name,
            "invocation_id": invocation_id_var.get(""),
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = str(record.exc_info[1])
        return json.dumps(log_entry)


def setup_logging(
    service_name: str,
    level: str = "WARNING",
    json_format: bool = False,
) -> logging.Logger:
    """Configure logging for the command-line client.

    Args:
        service_name: Name of the logger to configure; module loggers
            below it inherit the handler.
        level: Log level string (e.g. "INFO", "DEBUG").
        json_format: Emit one JSON object per line instead of plain text.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(service_name)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    if json_format:
        handler.setFormatter(JSONFormatter(service_name=service_name))
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def start_invocation() -> str:
    """Assign a fresh invocation id to the current context and return it."""
    value = uuid.uuid4().hex[:12]
    invocation_id_var.set(value)
    return value
