"""Request audit log.

When ``debug`` is set in the codebox config document every tool call is
recorded under ``<home>/.codespin/logs``:

  logs/
    2026-10-18.log                    ← one line per request / response
    requests/
      <request_id>_request.json       ← tool name + arguments
      <request_id>_response.json      ← result (or error) + duration

Writing the audit trail is best-effort. A failure here is logged and
never surfaces to the caller of the tool.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from codebox.utils.helpers import generate_token, now_utc
from codebox.utils.logging import get_logger

logger = get_logger(__name__)


class RequestAuditLog:
    """Append-only audit trail of tool requests and responses.

    Example::

        audit = RequestAuditLog(Path.home() / ".codespin" / "logs", enabled=True)
        request_id = audit.record_request("open_workspace", {"workspaceName": "w"})
        audit.record_response(request_id, "open_workspace", {"success": True})
    """

    def __init__(self, logs_dir: str | Path, enabled: bool = False) -> None:
        self.logs_dir = Path(logs_dir)
        self.enabled = enabled

    @property
    def requests_dir(self) -> Path:
        return self.logs_dir / "requests"

    def record_request(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Record an incoming tool call and return its request id."""
        request_id = generate_token()
        if not self.enabled:
            return request_id

        self._write_json(
            self.requests_dir / f"{request_id}_request.json",
            {
                "requestId": request_id,
                "tool": tool_name,
                "arguments": arguments,
                "timestamp": now_utc().isoformat(),
            },
        )
        self._append_line(f"REQUEST {request_id} {tool_name}")
        return request_id

    def record_response(
        self,
        request_id: str,
        tool_name: str,
        response: dict[str, Any],
        duration_ms: float | None = None,
    ) -> None:
        """Record the outcome of a tool call."""
        if not self.enabled:
            return

        self._write_json(
            self.requests_dir / f"{request_id}_response.json",
            {
                "requestId": request_id,
                "tool": tool_name,
                "response": response,
                "durationMs": duration_ms,
                "timestamp": now_utc().isoformat(),
            },
        )
        status = "ok" if response.get("success") else "error"
        self._append_line(f"RESPONSE {request_id} {tool_name} {status}")

    # ── private ───────────────────────────────────────────────────────────

    def _append_line(self, line: str) -> None:
        now = now_utc()
        log_file = self.logs_dir / f"{now.strftime('%Y-%m-%d')}.log"
        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(f"{now.isoformat()} {line}\n")
        except OSError as e:
            logger.warning(f"[audit] could not append to {log_file}: {e}")

    def _write_json(self, path: Path, payload: dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        except OSError as e:
            logger.warning(f"[audit] could not write {path}: {e}")
