"""DockerExecutor: runs workspace commands through the docker CLI.

A workspace names exactly one execution target:

  attach  (containerName)  docker exec into a container that is already
                           running; checked with ``docker ps`` first
  launch  (image)          docker run --rm a fresh container from the image
                           with the session working directory bind-mounted

The docker invocation is built from the workspace's custom template or the
built-in default (see ``codebox.docker.templates``) and run as one shell
command. There are no retries. Output is captured up to ``max_buffer`` bytes
per stream; a command printing more than that is killed and reported as an
execution failure carrying what was captured.
"""

from __future__ import annotations

import asyncio
import contextlib
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

from codebox.config import AttachTarget, WorkspaceConfig, WorkspaceRepository
from codebox.docker.templates import (
    current_identity,
    default_exec_template,
    default_run_template,
    quote_command,
    render,
    unresolved_placeholders,
)
from codebox.errors import (
    AttachTargetUnavailable,
    ExecutionFailure,
    UnregisteredWorkspace,
)
from codebox.utils.helpers import truncate_string
from codebox.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_BUFFER = 10 * 1024 * 1024  # 10MB per stream
_CHUNK_SIZE = 64 * 1024


@dataclass
class ExecuteResult:
    """Captured output of a successful command."""

    stdout: str
    stderr: str

    @property
    def combined(self) -> str:
        """stdout followed by an ``STDERR:`` section when stderr is non-empty."""
        return self.stdout + (f"\nSTDERR:\n{self.stderr}" if self.stderr else "")


@dataclass
class ProcessOutput:
    """Raw result of one shell invocation."""

    stdout: str
    stderr: str
    exit_code: int | None


CommandRunner = Callable[[str, int], Awaitable[ProcessOutput]]


# ── process runner ────────────────────────────────────────────────────────────

class _BufferExceeded(Exception):
    def __init__(self, stream_name: str):
        self.stream_name = stream_name
        super().__init__(f"{stream_name} maxBuffer length exceeded")


def _decode(data: bytearray) -> str:
    return data.decode("utf-8", errors="replace")


async def _read_capped(
    stream: asyncio.StreamReader,
    sink: bytearray,
    limit: int,
    stream_name: str,
) -> None:
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            return
        if len(sink) + len(chunk) > limit:
            sink.extend(chunk[: limit - len(sink)])
            raise _BufferExceeded(stream_name)
        sink.extend(chunk)


async def run_shell(command_line: str, max_buffer: int = DEFAULT_MAX_BUFFER) -> ProcessOutput:
    """Run ``command_line`` through the shell and capture its output.

    stdin is detached so docker never reads from the server's own stdin.

    Raises:
        ExecutionFailure: The shell could not be started, or an output
            stream exceeded ``max_buffer`` (the process is killed).
    """
    try:
        process = await asyncio.create_subprocess_shell(
            command_line,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ExecutionFailure(f"Could not start command: {e}") from e

    stdout_buf = bytearray()
    stderr_buf = bytearray()
    readers = [
        asyncio.create_task(_read_capped(process.stdout, stdout_buf, max_buffer, "stdout")),
        asyncio.create_task(_read_capped(process.stderr, stderr_buf, max_buffer, "stderr")),
    ]

    try:
        await asyncio.gather(*readers)
    except _BufferExceeded as e:
        for reader in readers:
            reader.cancel()
        await asyncio.gather(*readers, return_exceptions=True)
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        raise ExecutionFailure(
            str(e),
            stdout=_decode(stdout_buf),
            stderr=_decode(stderr_buf),
            exit_code=process.returncode,
        ) from e

    exit_code = await process.wait()
    return ProcessOutput(_decode(stdout_buf), _decode(stderr_buf), exit_code)


# ── executor ──────────────────────────────────────────────────────────────────

class DockerExecutor:
    """Builds and runs the docker invocation for a workspace command.

    Example::

        executor = DockerExecutor(repo)
        result = await executor.execute("my-project", "npm test", "/tmp/copy")
        print(result.stdout)
    """

    def __init__(
        self,
        repository: WorkspaceRepository,
        runner: CommandRunner | None = None,
        max_buffer: int = DEFAULT_MAX_BUFFER,
        identity: tuple[int | None, int | None] | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            repository: Source of workspace descriptors.
            runner: Coroutine running one shell command line; defaults to
                ``run_shell``. Tests inject a fake to avoid docker.
            max_buffer: Per-stream output cap in bytes.
            identity: (uid, gid) substituted into templates; defaults to the
                identity of this process.
        """
        self._repo = repository
        self._runner = runner or run_shell
        self.max_buffer = max_buffer
        self.uid, self.gid = identity if identity is not None else current_identity()

    @property
    def has_identity(self) -> bool:
        return self.uid is not None and self.gid is not None

    async def execute(
        self,
        workspace_name: str,
        command: str,
        working_dir: str | Path,
    ) -> ExecuteResult:
        """Run ``command`` for a workspace.

        Args:
            workspace_name: Registered workspace name.
            command: Shell command to run inside the container.
            working_dir: Session working directory (host path or temp copy);
                mounted into launched containers.

        Returns:
            Captured stdout and stderr.

        Raises:
            UnregisteredWorkspace: Unknown workspace name.
            MisconfiguredExecutionTarget: Neither or both targets configured.
            AttachTargetUnavailable: Attach-mode container is not running.
            ExecutionFailure: Non-zero exit, start failure or output overflow.
        """
        workspace = self._repo.get(workspace_name)
        if workspace is None:
            raise UnregisteredWorkspace(workspace_name)

        target = workspace.target
        if isinstance(target, AttachTarget):
            if not await self.check_container_running(target.container_name):
                raise AttachTargetUnavailable(target.container_name)

        command_line = self.build_command(workspace, command, working_dir)
        logger.info(
            "Executing docker command",
            extra={
                "workspace": workspace_name,
                "mode": "attach" if isinstance(target, AttachTarget) else "launch",
                "command": truncate_string(command, 80),
            },
        )

        output = await self._runner(command_line, self.max_buffer)
        if output.exit_code != 0:
            logger.warning(
                "Docker command returned non-zero exit code",
                extra={"workspace": workspace_name, "exit_code": output.exit_code},
            )
            raise ExecutionFailure(
                f"Command failed with exit code {output.exit_code}: {command_line}",
                stdout=output.stdout,
                stderr=output.stderr,
                exit_code=output.exit_code,
            )
        return ExecuteResult(stdout=output.stdout, stderr=output.stderr)

    def build_command(
        self,
        workspace: WorkspaceConfig,
        command: str,
        working_dir: str | Path,
    ) -> str:
        """Render the docker command line for ``command`` without running it."""
        target = workspace.target
        quoted = quote_command(command)

        if isinstance(target, AttachTarget):
            template = workspace.exec_template or default_exec_template(
                with_user=self.has_identity
            )
            variables = {
                "containerName": target.container_name,
                "containerPath": workspace.effective_container_path,
                "command": quoted,
                "uid": self.uid,
                "gid": self.gid,
            }
        else:
            template = workspace.run_template or default_run_template(
                with_network=bool(workspace.network),
                with_user=self.has_identity,
            )
            variables = {
                "image": target.image,
                "path": str(working_dir),
                "containerPath": workspace.effective_container_path,
                "command": quoted,
                "network": workspace.network,
                "uid": self.uid,
                "gid": self.gid,
            }

        command_line = render(template, variables)
        leftover = unresolved_placeholders(template)
        leftover = [name for name in leftover if variables.get(name) is None]
        if leftover:
            logger.warning(
                f"[docker] template for workspace {workspace.name} has unresolved "
                f"placeholders: {', '.join(leftover)}"
            )
        return command_line

    async def check_container_running(self, container_name: str) -> bool:
        """True if a container with exactly this name is running."""
        probe = f"docker ps -q -f {shlex.quote(f'name=^{container_name}$')}"
        try:
            output = await self._runner(probe, self.max_buffer)
        except ExecutionFailure:
            return False
        return output.exit_code == 0 and bool(output.stdout.strip())

    async def check_network_exists(self, network_name: str) -> bool:
        """True if docker knows a network with this name."""
        probe = (
            f"docker network inspect {shlex.quote(network_name)} "
            + '--format "{{.Name}}"'
        )
        try:
            output = await self._runner(probe, self.max_buffer)
        except ExecutionFailure:
            return False
        return output.exit_code == 0 and bool(output.stdout.strip())
