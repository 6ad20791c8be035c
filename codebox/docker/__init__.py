"""Docker command construction and execution."""

from codebox.docker.execution import (
    DEFAULT_MAX_BUFFER,
    DockerExecutor,
    ExecuteResult,
    ProcessOutput,
    run_shell,
)
from codebox.docker.templates import (
    DEFAULT_EXEC_TEMPLATE,
    DEFAULT_RUN_TEMPLATE,
    current_identity,
    quote_command,
    render,
    unresolved_placeholders,
)

__all__ = [
    "DockerExecutor",
    "ExecuteResult",
    "ProcessOutput",
    "run_shell",
    "DEFAULT_MAX_BUFFER",
    "DEFAULT_EXEC_TEMPLATE",
    "DEFAULT_RUN_TEMPLATE",
    "render",
    "unresolved_placeholders",
    "quote_command",
    "current_identity",
]
