"""Tool executor: routes tool calls to providers and records them."""

from __future__ import annotations

import time
from typing import Any

from codebox.tools.base import BaseTool, ToolDefinition, ToolResult
from codebox.utils.audit import RequestAuditLog
from codebox.utils.logging import get_logger

logger = get_logger(__name__)


class ToolExecutor:
    """Execute tools from registered providers.

    Dispatches tool calls to the provider that declares the tool, and
    writes each request/response pair to the audit log.

    Example:
        >>> executor = ToolExecutor([WorkspaceTools(repo, store)])
        >>> result = await executor.execute("list_workspaces", {})
    """

    def __init__(
        self,
        providers: list[BaseTool],
        audit_log: RequestAuditLog | None = None,
    ):
        self._providers = list(providers)
        self._tool_to_provider: dict[str, BaseTool] = {}
        for provider in self._providers:
            for tool in provider.get_tools():
                if tool.name in self._tool_to_provider:
                    logger.warning(f"Tool {tool.name} registered twice; keeping the first")
                    continue
                self._tool_to_provider[tool.name] = provider
        self.audit_log = audit_log
        self._execution_count = 0

    @property
    def available_tools(self) -> list[str]:
        return list(self._tool_to_provider)

    def get_tool_definitions(self) -> list[ToolDefinition]:
        return [
            tool
            for provider in self._providers
            for tool in provider.get_tools()
            if self._tool_to_provider.get(tool.name) is provider
        ]

    async def execute(self, tool_name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Execute a tool by name.

        Args:
            tool_name: Name of the tool to execute
            arguments: Tool arguments

        Returns:
            ToolResult; unexpected exceptions are converted to failures.
        """
        arguments = arguments or {}
        self._execution_count += 1
        started = time.monotonic()
        request_id = self.audit_log.record_request(tool_name, arguments) if self.audit_log else None

        logger.info(
            "Executing tool",
            extra={"tool": tool_name, "execution_id": self._execution_count},
        )

        provider = self._tool_to_provider.get(tool_name)
        if provider is None:
            result = ToolResult.fail(f"Unknown tool: {tool_name}")
        else:
            try:
                result = await provider.execute(tool_name, arguments)
            except Exception as e:
                logger.error(
                    "Tool execution failed",
                    exc_info=True,
                    extra={"tool": tool_name, "execution_id": self._execution_count},
                )
                result = ToolResult.fail(f"Unexpected error in {tool_name}: {e}")

        logger.info(
            "Tool execution complete",
            extra={
                "tool": tool_name,
                "success": result.success,
                "execution_id": self._execution_count,
            },
        )

        if self.audit_log and request_id is not None:
            self.audit_log.record_response(
                request_id,
                tool_name,
                result.model_dump(),
                duration_ms=(time.monotonic() - started) * 1000,
            )
        return result

    @property
    def execution_count(self) -> int:
        """Total number of tool executions."""
        return self._execution_count
