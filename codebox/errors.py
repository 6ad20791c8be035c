"""Error types raised by the codebox core.

The tool layer turns every one of these into a failed ``ToolResult``;
none of them should reach the top of a transport loop.
"""

from __future__ import annotations


class CodeboxError(Exception):
    """Base class for all codebox failures."""


class UnregisteredWorkspace(CodeboxError):
    """No workspace with the given name is registered (or its path is gone)."""

    def __init__(self, workspace_name: str):
        self.workspace_name = workspace_name
        super().__init__(f"Invalid or unregistered workspace: {workspace_name}")


class MaterializationFailure(CodeboxError):
    """A copy-mode temporary directory could not be created."""


class InvalidToken(CodeboxError):
    """The workspace token is unknown, closed or expired."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Invalid or expired workspace token: {token}")


class PathTraversal(CodeboxError):
    """A caller-supplied path escapes the working directory."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        super().__init__(
            f"Invalid file path: {file_path} - path traversal attempt detected"
        )


class MisconfiguredExecutionTarget(CodeboxError):
    """A workspace has neither or both of image / containerName."""


class AttachTargetUnavailable(CodeboxError):
    """The container named by a workspace is not running."""

    def __init__(self, container_name: str):
        self.container_name = container_name
        super().__init__(f"Container '{container_name}' not found or not running")


class ExecutionFailure(CodeboxError):
    """The docker invocation exited non-zero or could not be started.

    Captured output is kept on the exception and folded into the message,
    so a caller still sees whatever the command printed before failing.
    """

    def __init__(
        self,
        reason: str,
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
    ):
        self.reason = reason
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code
        message = "Docker execution failed:\n"
        if reason:
            message += reason + "\n"
        message += stdout
        if stderr:
            message += f"\nSTDERR:\n{stderr}"
        super().__init__(message)
