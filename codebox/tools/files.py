"""File tools: write, batch-write and read files in a workspace."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from codebox.errors import CodeboxError, PathTraversal
from codebox.fs.file_io import WriteMode, read_workspace_file, write_workspace_file
from codebox.fs.paths import is_safe
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


class WriteFileArgs(ToolArguments):
    workspace_token: str
    file_path: str
    content: str
    mode: WriteMode = WriteMode.OVERWRITE


class FileOperation(ToolArguments):
    file_path: str
    content: str
    mode: WriteMode = WriteMode.OVERWRITE


class WriteBatchArgs(ToolArguments):
    workspace_token: str
    files: list[FileOperation]
    stop_on_error: bool = True


class ReadFileArgs(ToolArguments):
    workspace_token: str
    file_path: str


@dataclass
class FileOutcome:
    file_path: str
    success: bool
    message: str


def format_file_results(results: list[FileOutcome]) -> str:
    return "\n".join(
        f"File: {r.file_path}\n"
        f"Status: {'Success' if r.success else 'Failed'}\n"
        f"Message: {r.message}\n"
        f"{SEPARATOR}"
        for r in results
    )


def _written_message(mode: WriteMode) -> str:
    return f"Successfully {'appended to' if mode is WriteMode.APPEND else 'wrote'} file"


class FileTools(BaseTool):
    """Tools that touch files in a token's working directory.

    Every caller-supplied path is checked with ``is_safe`` against the
    working directory before anything is written or read.
    """

    name = "files"
    description = "Read and write files in an open workspace"

    def __init__(self, store: WorkspaceTokenStore):
        self._store = store

    def get_tools(self) -> list[ToolDefinition]:
        token_param = {
            "type": "string",
            "description": "The workspace token from open_workspace",
        }
        file_path_param = {
            "type": "string",
            "description": "Relative path to the file from workspace root",
        }
        mode_param = {
            "type": "string",
            "enum": ["overwrite", "append"],
            "default": "overwrite",
            "description": "Write mode - whether to overwrite or append",
        }
        return [
            ToolDefinition(
                name="write_file",
                description="Write content to a file in a workspace using a workspace token",
                parameters={
                    "type": "object",
                    "properties": {
                        "workspaceToken": token_param,
                        "filePath": file_path_param,
                        "content": {"type": "string", "description": "Content to write to the file"},
                        "mode": mode_param,
                    },
                    "required": ["workspaceToken", "filePath", "content"],
                },
            ),
            ToolDefinition(
                name="write_batch_files",
                description="Write content to multiple files in a workspace using a workspace token",
                parameters={
                    "type": "object",
                    "properties": {
                        "workspaceToken": token_param,
                        "files": {
                            "type": "array",
                            "description": "Array of file operations to perform",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "filePath": file_path_param,
                                    "content": {"type": "string"},
                                    "mode": mode_param,
                                },
                                "required": ["filePath", "content"],
                            },
                        },
                        "stopOnError": {
                            "type": "boolean",
                            "default": True,
                            "description": "Whether to stop execution if a file write fails",
                        },
                    },
                    "required": ["workspaceToken", "files"],
                },
            ),
            ToolDefinition(
                name="read_file",
                description="Read a text file from a workspace using a workspace token",
                parameters={
                    "type": "object",
                    "properties": {
                        "workspaceToken": token_param,
                        "filePath": file_path_param,
                    },
                    "required": ["workspaceToken", "filePath"],
                },
            ),
        ]

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        try:
            if tool_name == "write_file":
                return self._write_file(parse_arguments(WriteFileArgs, arguments))
            elif tool_name == "write_batch_files":
                return self._write_batch(parse_arguments(WriteBatchArgs, arguments))
            elif tool_name == "read_file":
                return self._read_file(parse_arguments(ReadFileArgs, arguments))
            else:
                return ToolResult.fail(f"Unknown tool: {tool_name}")
        except ArgumentError as e:
            return ToolResult.fail(str(e))

    def _write_file(self, args: WriteFileArgs) -> ToolResult:
        try:
            session = self._store.require(args.workspace_token)
            write_workspace_file(session.working_dir, args.file_path, args.content, args.mode)
        except CodeboxError as e:
            return ToolResult.fail(str(e))
        except OSError as e:
            return ToolResult.fail(f"Error writing file: {e}")

        return ToolResult.ok(f"{_written_message(args.mode)}: {args.file_path}")

    def _write_batch(self, args: WriteBatchArgs) -> ToolResult:
        try:
            session = self._store.require(args.workspace_token)
        except CodeboxError as e:
            return ToolResult.fail(str(e))

        results: list[FileOutcome] = []
        has_error = False

        # Validate every path before writing anything, so a bad path in
        # stop-on-error mode leaves the workspace untouched.
        validated: list[FileOperation] = []
        for op in args.files:
            if is_safe(session.working_dir, op.file_path):
                validated.append(op)
                continue
            has_error = True
            results.append(FileOutcome(op.file_path, False, str(PathTraversal(op.file_path))))
            if args.stop_on_error:
                return ToolResult.fail(format_file_results(results))

        for op in validated:
            try:
                write_workspace_file(session.working_dir, op.file_path, op.content, op.mode)
                results.append(FileOutcome(op.file_path, True, _written_message(op.mode)))
            except (CodeboxError, OSError) as e:
                has_error = True
                results.append(FileOutcome(op.file_path, False, str(e)))
                if args.stop_on_error:
                    break

        report = format_file_results(results)
        if has_error and args.stop_on_error:
            return ToolResult.fail(report)
        return ToolResult.ok(report)

    def _read_file(self, args: ReadFileArgs) -> ToolResult:
        try:
            session = self._store.require(args.workspace_token)
            content = read_workspace_file(session.working_dir, args.file_path)
        except CodeboxError as e:
            return ToolResult.fail(str(e))
        except OSError as e:
            return ToolResult.fail(f"Error reading file: {e}")
        return ToolResult.ok(content)
