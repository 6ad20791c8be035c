"""codebox utilities."""

from codebox.utils.audit import RequestAuditLog
from codebox.utils.helpers import (
    generate_token,
    now_ms,
    now_utc,
    truncate_string,
)
from codebox.utils.logging import get_logger, setup_logging

__all__ = [
    "generate_token",
    "now_ms",
    "now_utc",
    "truncate_string",
    "RequestAuditLog",
    "setup_logging",
    "get_logger",
]
