"""Workspace tools: list, open and close workspaces."""

from __future__ import annotations

from typing import Any

from codebox.config import WorkspaceRepository
from codebox.errors import CodeboxError
from codebox.tokens.store import WorkspaceTokenStore
from codebox.tools.base import (
    ArgumentError,
    BaseTool,
    ToolArguments,
    ToolDefinition,
    ToolResult,
    parse_arguments,
)
from codebox.utils.logging import get_logger

logger = get_logger(__name__)

NO_WORKSPACES_HINT = (
    "No workspaces are registered. Use 'codebox workspace add <dirname> "
    "--image <image_name>' to add workspaces."
)


class OpenWorkspaceArgs(ToolArguments):
    workspace_name: str


class CloseWorkspaceArgs(ToolArguments):
    workspace_token: str


class WorkspaceTools(BaseTool):
    """Tools for discovering workspaces and managing tokens.

    Example:
        >>> tools = WorkspaceTools(repo, store)
        >>> result = await tools.execute("open_workspace", {"workspaceName": "app"})
        >>> token = result.output
    """

    name = "workspaces"
    description = "List, open and close workspaces"

    def __init__(self, repository: WorkspaceRepository, store: WorkspaceTokenStore):
        self._repo = repository
        self._store = store

    def get_tools(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name="list_workspaces",
                description="List available workspaces",
                parameters={"type": "object", "properties": {}},
            ),
            ToolDefinition(
                name="open_workspace",
                description=(
                    "Open a workspace, optionally creating a copy of the workspace "
                    "files if the workspace has copy=true. Returns a workspace token."
                ),
                parameters={
                    "type": "object",
                    "properties": {
                        "workspaceName": {
                            "type": "string",
                            "description": "The name of the workspace to open",
                        }
                    },
                    "required": ["workspaceName"],
                },
            ),
            ToolDefinition(
                name="close_workspace",
                description="Close a workspace and clean up resources",
                parameters={
                    "type": "object",
                    "properties": {
                        "workspaceToken": {
                            "type": "string",
                            "description": "The workspace token to close",
                        }
                    },
                    "required": ["workspaceToken"],
                },
            ),
        ]

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        try:
            if tool_name == "list_workspaces":
                return self._list_workspaces()
            elif tool_name == "open_workspace":
                return await self._open_workspace(parse_arguments(OpenWorkspaceArgs, arguments))
            elif tool_name == "close_workspace":
                return await self._close_workspace(parse_arguments(CloseWorkspaceArgs, arguments))
            else:
                return ToolResult.fail(f"Unknown tool: {tool_name}")
        except ArgumentError as e:
            return ToolResult.fail(str(e))

    def _list_workspaces(self) -> ToolResult:
        workspaces = self._repo.list_workspaces()
        if not workspaces:
            return ToolResult.ok(NO_WORKSPACES_HINT)
        return ToolResult.ok("\n".join(w.name for w in workspaces))

    async def _open_workspace(self, args: OpenWorkspaceArgs) -> ToolResult:
        if not self._repo.is_valid(args.workspace_name):
            return ToolResult.fail(
                f"Invalid or unregistered workspace: {args.workspace_name}"
            )

        try:
            token = await self._store.open_async(args.workspace_name)
        except CodeboxError as e:
            logger.warning(f"[tools] could not open workspace {args.workspace_name}: {e}")
            return ToolResult.fail(f"Could not open workspace: {args.workspace_name}")

        return ToolResult.ok(token)

    async def _close_workspace(self, args: CloseWorkspaceArgs) -> ToolResult:
        if await self._store.close_async(args.workspace_token):
            return ToolResult.ok(f"Workspace token closed: {args.workspace_token}")
        return ToolResult.fail(f"Invalid workspace token: {args.workspace_token}")
