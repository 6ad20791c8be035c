"""Base tool interface for codebox.

A tool provider groups related tools (workspaces, commands, files). Each
tool call returns a ``ToolResult``; failures are reported through it,
never raised to the transport.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

ArgsT = TypeVar("ArgsT", bound=BaseModel)


class ToolDefinition(BaseModel):
    """Definition of a tool: name, description and JSON Schema parameters."""

    name: str
    description: str
    parameters: dict[str, Any]


class ToolResult(BaseModel):
    """Result from tool execution."""

    success: bool
    output: Any
    error: str | None = None

    @classmethod
    def ok(cls, output: Any) -> "ToolResult":
        """Create a successful result.

        Args:
            output: The result output

        Returns:
            ToolResult with success=True
        """
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        """Create a failed result.

        Args:
            error: Error message

        Returns:
            ToolResult with success=False
        """
        return cls(success=False, output=None, error=error)


class ToolArguments(BaseModel):
    """Base for tool argument models; accepts camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ArgumentError(ValueError):
    """Tool arguments failed validation."""


def parse_arguments(model: type[ArgsT], arguments: dict[str, Any]) -> ArgsT:
    """Validate raw tool arguments against ``model``.

    Raises:
        ArgumentError: with a one-line summary of every problem.
    """
    try:
        return model.model_validate(arguments or {})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        )
        raise ArgumentError(f"Invalid arguments: {problems}") from e


class BaseTool(ABC):
    """Base class for tool providers.

    Example:
        >>> class PingTools(BaseTool):
        ...     name = "ping"
        ...
        ...     def get_tools(self) -> list[ToolDefinition]:
        ...         return [ToolDefinition(
        ...             name="ping",
        ...             description="Answers pong",
        ...             parameters={"type": "object", "properties": {}}
        ...         )]
        ...
        ...     async def execute(self, tool_name: str, arguments: dict) -> ToolResult:
        ...         if tool_name == "ping":
        ...             return ToolResult.ok("pong")
        ...         return ToolResult.fail(f"Unknown tool: {tool_name}")
    """

    name: str = "base"
    description: str = "Base tool provider"

    @abstractmethod
    def get_tools(self) -> list[ToolDefinition]:
        """Return list of tools provided here."""

    @abstractmethod
    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        """Execute a tool with given arguments.

        Args:
            tool_name: Name of the tool to execute
            arguments: Tool arguments

        Returns:
            ToolResult with success status and output
        """

    def provides_tool(self, name: str) -> bool:
        return any(tool.name == name for tool in self.get_tools())
