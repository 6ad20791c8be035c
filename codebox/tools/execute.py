"""Command tools: run one command or a batch of commands in a workspace."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from codebox.docker.execution import DockerExecutor
from codebox.errors import CodeboxError
from codebox.tokens.locks import TokenLocks
from codebox.tokens.store import WorkspaceTokenStore
from codebox.tools.base import (
    ArgumentError,
    BaseTool,
    ToolArguments,
    ToolDefinition,
    ToolResult,
    parse_arguments,
)

SEPARATOR = "----------------------------------------\n"


class ExecuteCommandArgs(ToolArguments):
    workspace_token: str
    command: str


class ExecuteBatchArgs(ToolArguments):
    workspace_token: str
    commands: list[str]
    stop_on_error: bool = True


@dataclass
class CommandOutcome:
    command: str
    output: str
    success: bool


def format_batch_results(results: list[CommandOutcome]) -> str:
    return "\n".join(
        f"Command: {r.command}\n"
        f"Status: {'Success' if r.success else 'Failed'}\n"
        f"Output:\n{r.output}\n"
        f"{SEPARATOR}"
        for r in results
    )


class ExecuteTools(BaseTool):
    """Tools that run commands in a workspace's docker target.

    Example:
        >>> tools = ExecuteTools(store, DockerExecutor(repo))
        >>> result = await tools.execute(
        ...     "execute_command", {"workspaceToken": token, "command": "ls"}
        ... )
    """

    name = "execute"
    description = "Run commands in workspace containers"

    def __init__(
        self,
        store: WorkspaceTokenStore,
        executor: DockerExecutor,
        locks: TokenLocks | None = None,
    ):
        self._store = store
        self._executor = executor
        self._locks = locks or TokenLocks(enabled=False)

    def get_tools(self) -> list[ToolDefinition]:
        token_param = {
            "type": "string",
            "description": "The workspace token from open_workspace",
        }
        return [
            ToolDefinition(
                name="execute_command",
                description="Execute a command in a Docker container using a workspace token",
                parameters={
                    "type": "object",
                    "properties": {
                        "command": {
                            "type": "string",
                            "description": "The command to execute in the container",
                        },
                        "workspaceToken": token_param,
                    },
                    "required": ["command", "workspaceToken"],
                },
            ),
            ToolDefinition(
                name="execute_batch_commands",
                description="Execute multiple commands in sequence using a workspace token",
                parameters={
                    "type": "object",
                    "properties": {
                        "commands": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Array of commands to execute in sequence",
                        },
                        "workspaceToken": token_param,
                        "stopOnError": {
                            "type": "boolean",
                            "default": True,
                            "description": "Whether to stop execution if a command fails",
                        },
                    },
                    "required": ["commands", "workspaceToken"],
                },
            ),
        ]

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        try:
            if tool_name == "execute_command":
                return await self._execute_command(
                    parse_arguments(ExecuteCommandArgs, arguments)
                )
            elif tool_name == "execute_batch_commands":
                return await self._execute_batch(
                    parse_arguments(ExecuteBatchArgs, arguments)
                )
            else:
                return ToolResult.fail(f"Unknown tool: {tool_name}")
        except ArgumentError as e:
            return ToolResult.fail(str(e))

    async def _run(self, token: str, workspace_name: str, working_dir: str, command: str) -> str:
        async with self._locks.hold(token):
            result = await self._executor.execute(workspace_name, command, working_dir)
        return result.combined

    async def _execute_command(self, args: ExecuteCommandArgs) -> ToolResult:
        try:
            session = self._store.require(args.workspace_token)
        except CodeboxError as e:
            return ToolResult.fail(str(e))

        try:
            output = await self._run(
                args.workspace_token, session.workspace_name, session.working_dir, args.command
            )
        except CodeboxError as e:
            return ToolResult.fail(f"Error executing command: {e}")
        return ToolResult.ok(output)

    async def _execute_batch(self, args: ExecuteBatchArgs) -> ToolResult:
        try:
            session = self._store.require(args.workspace_token)
        except CodeboxError as e:
            return ToolResult.fail(str(e))

        results: list[CommandOutcome] = []
        for command in args.commands:
            try:
                output = await self._run(
                    args.workspace_token, session.workspace_name, session.working_dir, command
                )
                results.append(CommandOutcome(command=command, output=output, success=True))
            except CodeboxError as e:
                results.append(CommandOutcome(command=command, output=str(e), success=False))
                if args.stop_on_error:
                    break

        return ToolResult.ok(format_batch_results(results))
