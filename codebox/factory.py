"""Factory functions wiring the codebox components together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from codebox.docker.execution import DockerExecutor
from codebox.tokens.locks import TokenLocks
from codebox.tokens.scheduler import IdleSweeper
from codebox.tokens.store import WorkspaceTokenStore
from codebox.tools.execute import ExecuteTools
from codebox.tools.executor import ToolExecutor
from codebox.tools.files import FileTools
from codebox.tools.workspaces import WorkspaceTools
from codebox.utils.audit import RequestAuditLog

if TYPE_CHECKING:
    from codebox.config import ServerSettings, WorkspaceRepository

_log = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Everything a transport needs to serve tool calls."""

    repository: "WorkspaceRepository"
    store: WorkspaceTokenStore
    docker: DockerExecutor
    tools: ToolExecutor
    sweeper: IdleSweeper

    async def shutdown(self) -> None:
        """Stop sweeping and release every open token."""
        await self.sweeper.stop()
        closed = await self.store.close_all_async()
        if closed:
            _log.info(f"Closed {len(closed)} workspace token(s) on shutdown")


def create_tool_executor(
    repository: "WorkspaceRepository",
    store: WorkspaceTokenStore,
    docker: DockerExecutor,
    serialize_commands: bool = False,
    audit_log: RequestAuditLog | None = None,
) -> ToolExecutor:
    """Create the tool executor with every built-in tool provider.

    Args:
        repository: Workspace registry.
        store: Token store shared by all providers.
        docker: Docker command executor.
        serialize_commands: Run commands for one token one at a time.
        audit_log: Optional request audit log.
    """
    return ToolExecutor(
        [
            WorkspaceTools(repository, store),
            ExecuteTools(store, docker, TokenLocks(enabled=serialize_commands)),
            FileTools(store),
        ],
        audit_log=audit_log,
    )


def create_runtime(
    settings: "ServerSettings",
    docker: DockerExecutor | None = None,
) -> Runtime:
    """Create a runtime from server settings.

    Args:
        settings: Server settings (home dir, sweep interval …).
        docker: Override the docker executor (tests inject a fake runner).
    """
    repository = settings.repository()
    store = WorkspaceTokenStore(repository)
    docker = docker or DockerExecutor(repository)
    audit_log = RequestAuditLog(repository.logs_dir, enabled=repository.is_debug())
    if audit_log.enabled:
        _log.info(f"Request audit log enabled at {repository.logs_dir}")

    tools = create_tool_executor(
        repository,
        store,
        docker,
        serialize_commands=settings.serialize_commands,
        audit_log=audit_log,
    )
    sweeper = IdleSweeper(store.sweep_idle_async, interval_seconds=settings.idle_check_interval)
    return Runtime(
        repository=repository,
        store=store,
        docker=docker,
        tools=tools,
        sweeper=sweeper,
    )
