"""Line-oriented stdio transport.

Each input line is one JSON request:

  {"id": 1, "tool": "open_workspace", "arguments": {"workspaceName": "app"}}

and produces exactly one JSON response line on stdout:

  {"id": 1, "success": true, "output": "<token>", "error": null}

A malformed line gets an error response with ``id`` null; it never stops
the loop. EOF on stdin ends the session and closes every open token.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, TextIO

from codebox.factory import Runtime
from codebox.tools.executor import ToolExecutor
from codebox.utils.logging import get_logger

logger = get_logger(__name__)


def _error(request_id: Any, message: str) -> dict[str, Any]:
    return {"id": request_id, "success": False, "output": None, "error": message}


async def handle_line(tools: ToolExecutor, line: str) -> dict[str, Any] | None:
    """Handle one request line; blank lines yield None."""
    line = line.strip()
    if not line:
        return None

    try:
        request = json.loads(line)
    except json.JSONDecodeError as e:
        return _error(None, f"Invalid JSON: {e}")

    if not isinstance(request, dict):
        return _error(None, "Request must be a JSON object")

    request_id = request.get("id")
    tool_name = request.get("tool")
    arguments = request.get("arguments") or {}
    if not isinstance(tool_name, str) or not tool_name:
        return _error(request_id, "Request is missing 'tool'")
    if not isinstance(arguments, dict):
        return _error(request_id, "'arguments' must be a JSON object")

    result = await tools.execute(tool_name, arguments)
    return {"id": request_id, **result.model_dump()}


async def serve_stdio(
    runtime: Runtime,
    input_stream: TextIO | None = None,
    output_stream: TextIO | None = None,
) -> None:
    """Serve requests from ``input_stream`` until EOF.

    Args:
        runtime: Wired components.
        input_stream: Defaults to stdin.
        output_stream: Defaults to stdout.
    """
    input_stream = input_stream or sys.stdin
    output_stream = output_stream or sys.stdout

    logger.info("Codebox stdio server ready")
    runtime.sweeper.start()
    try:
        while True:
            line = await asyncio.to_thread(input_stream.readline)
            if not line:
                break
            response = await handle_line(runtime.tools, line)
            if response is None:
                continue
            output_stream.write(json.dumps(response, default=str) + "\n")
            output_stream.flush()
    finally:
        await runtime.shutdown()
        logger.info("Codebox stdio server stopped")
