"""Logging utilities for codebox.

Core modules log a short fixed message and put the details in ``extra``::

    logger.info("Opened workspace token", extra={"workspace": "app", "token": token})

Both formatters render those fields: the JSON formatter as keys of the JSON
object, the text formatter as ``key=value`` pairs after the message.
Workspace tokens are bearer credentials, so fields named in
``_SECRET_FIELDS`` are masked before they reach any handler output.
"""

import json
import logging
import sys
from typing import Any

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message", "asctime",
))

_SECRET_FIELDS = frozenset(("token",))

_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def mask_secret(value: str, visible: int = 8) -> str:
    """Keep only the first ``visible`` characters, e.g. ``3f2a9c1b...``."""
    if len(value) <= visible:
        return value
    return value[:visible] + "..."


def extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Fields passed through ``extra``, with secrets masked."""
    fields = {}
    for key, value in record.__dict__.items():
        if key in _RESERVED_ATTRS:
            continue
        if key in _SECRET_FIELDS and isinstance(value, str):
            value = mask_secret(value)
        fields[key] = value
    return fields


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(extra_fields(record))
        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """One human-readable line per record, ``extra`` fields appended."""

    def __init__(self) -> None:
        super().__init__(_TEXT_FORMAT, datefmt=_TEXT_DATEFMT)

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        fields = extra_fields(record)
        if fields:
            line += " | " + " ".join(f"{key}={value}" for key, value in fields.items())
        return line


def setup_logging(level: str = "INFO", format_type: str = "text") -> None:
    """Configure logging for codebox.

    Logs always go to stderr: the stdio transport owns stdout.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: "json" for structured logging, "text" for human-readable
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if format_type == "json" else TextFormatter())
    root_logger.addHandler(handler)

    # uvicorn's access log would repeat every tool call.
    for logger_name in ["asyncio", "uvicorn.access", "httpx", "httpcore"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
