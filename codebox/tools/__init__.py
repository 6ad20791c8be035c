"""Tools exposed to transports (HTTP, stdio)."""

from codebox.tools.base import BaseTool, ToolDefinition, ToolResult
from codebox.tools.execute import ExecuteTools
from codebox.tools.executor import ToolExecutor
from codebox.tools.files import FileTools
from codebox.tools.workspaces import WorkspaceTools

__all__ = [
    "BaseTool",
    "ToolDefinition",
    "ToolResult",
    "ToolExecutor",
    "WorkspaceTools",
    "ExecuteTools",
    "FileTools",
]
