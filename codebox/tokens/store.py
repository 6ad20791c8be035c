"""WorkspaceTokenStore: issues and tracks workspace tokens.

Owns:
  - The token → session map (one instance per server; no module globals)
  - Copy-mode temporary directories, one per copy-mode session
  - Per-token last-access time and idle eviction

Lifecycle of a session
----------------------
  open(name)       look up the workspace, materialize a private copy when
                   ``copy`` is set, mint a token, record the session
  resolve*(token)  every successful lookup counts as activity and moves the
                   last-access time to "now"
  close(token)     drop the record first, then delete the temp copy
  sweep_idle(now)  close every session idle for at least its idle timeout;
                   sessions with idle timeout 0 are never swept

All mutation of the map happens on the event loop thread. The ``*_async``
variants used by the tools and the sweeper run the copy and the delete in a
worker thread: the record is only added once the copy is complete and
removed before the delete starts.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from codebox.config import DEFAULT_IDLE_TIMEOUT_MS, WorkspaceConfig, WorkspaceRepository
from codebox.errors import InvalidToken, MaterializationFailure, UnregisteredWorkspace
from codebox.fs.copies import IsolatedCopyMaterializer
from codebox.utils.helpers import generate_token, now_ms
from codebox.utils.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], int]


@dataclass
class WorkspaceSession:
    """State for one open workspace token."""

    token: str
    workspace_name: str
    working_dir: str             # host path, or a temp copy owned by this session
    is_temp_dir: bool            # True → delete working_dir on close
    last_access_ms: int
    idle_timeout_ms: int         # 0 → never evicted

    def idle_for(self, now: int) -> int:
        return now - self.last_access_ms

    def is_idle(self, now: int) -> bool:
        return self.idle_timeout_ms > 0 and self.idle_for(now) >= self.idle_timeout_ms


@dataclass(frozen=True)
class SessionInfo:
    """Read-only view of a session handed to tool handlers."""

    workspace_name: str
    working_dir: str
    is_temp_dir: bool


class WorkspaceTokenStore:
    """Token store for open workspaces.

    Example::

        store = WorkspaceTokenStore(WorkspaceRepository())
        token = store.open("my-project")
        workdir = store.resolve_working_dir(token)
        ...
        store.close(token)
    """

    def __init__(
        self,
        repository: WorkspaceRepository,
        materializer: IsolatedCopyMaterializer | None = None,
        clock: Clock | None = None,
        default_idle_timeout: int = DEFAULT_IDLE_TIMEOUT_MS,
    ) -> None:
        """Initialize the store.

        Args:
            repository: Source of workspace descriptors.
            materializer: Creates/removes copy-mode directories.
            clock: Returns "now" in epoch milliseconds.
            default_idle_timeout: Idle timeout (ms) for workspaces that do
                not set one.
        """
        self._repo = repository
        self._materializer = materializer or IsolatedCopyMaterializer()
        self._clock = clock or now_ms
        self.default_idle_timeout = default_idle_timeout
        self._sessions: dict[str, WorkspaceSession] = {}

    # ── opening ───────────────────────────────────────────────────────────

    def open(self, workspace_name: str) -> str | None:
        """Open a workspace and return a new token.

        Returns:
            The token, or None if the workspace is not registered or its
            copy could not be created. Nothing is recorded on failure.
        """
        try:
            return self.open_or_raise(workspace_name)
        except (UnregisteredWorkspace, MaterializationFailure):
            return None

    def open_or_raise(self, workspace_name: str) -> str:
        """Like ``open`` but raises instead of returning None.

        Raises:
            UnregisteredWorkspace: No workspace with that name.
            MaterializationFailure: Copy mode is on and the copy failed.
        """
        workspace = self._lookup(workspace_name)
        temp_dir = self._materialize(workspace) if workspace.copy_mode else None
        return self._register(workspace, temp_dir)

    async def open_async(self, workspace_name: str) -> str:
        """Like ``open_or_raise`` but copies in a worker thread.

        The session is recorded back on the event loop once the copy is
        complete, so other sessions keep being served meanwhile.
        """
        workspace = self._lookup(workspace_name)
        temp_dir = None
        if workspace.copy_mode:
            temp_dir = await asyncio.to_thread(self._materialize, workspace)
        return self._register(workspace, temp_dir)

    def _lookup(self, workspace_name: str) -> WorkspaceConfig:
        workspace = self._repo.get(workspace_name)
        if workspace is None:
            raise UnregisteredWorkspace(workspace_name)
        return workspace

    def _materialize(self, workspace: WorkspaceConfig) -> Path:
        try:
            return self._materializer.create(
                workspace.path,
                f"codebox-{workspace.name}-workspace-token-",
            )
        except MaterializationFailure as e:
            logger.error(
                f"[tokens] failed to create temporary directory for workspace "
                f"{workspace.name}: {e}"
            )
            raise

    def _register(self, workspace: WorkspaceConfig, temp_dir: Path | None) -> str:
        idle_timeout = (
            workspace.idle_timeout
            if workspace.idle_timeout is not None
            else self.default_idle_timeout
        )

        token = generate_token()
        while token in self._sessions:
            token = generate_token()

        self._sessions[token] = WorkspaceSession(
            token=token,
            workspace_name=workspace.name,
            working_dir=str(temp_dir) if temp_dir is not None else workspace.path,
            is_temp_dir=temp_dir is not None,
            last_access_ms=self._clock(),
            idle_timeout_ms=idle_timeout,
        )
        logger.info(
            "Opened workspace token",
            extra={
                "workspace": workspace.name,
                "token": token,
                "copy": temp_dir is not None,
                "idle_timeout_ms": idle_timeout,
            },
        )
        return token

    # ── resolution ────────────────────────────────────────────────────────

    def _touch(self, token: str) -> WorkspaceSession | None:
        session = self._sessions.get(token)
        if session is not None:
            session.last_access_ms = self._clock()
        return session

    def exists(self, token: str) -> bool:
        """True if the token is live. Counts as activity."""
        return self._touch(token) is not None

    def resolve_workspace_name(self, token: str) -> str | None:
        session = self._touch(token)
        return session.workspace_name if session else None

    def resolve_working_dir(self, token: str) -> str | None:
        session = self._touch(token)
        return session.working_dir if session else None

    def get_info(self, token: str) -> SessionInfo | None:
        session = self._touch(token)
        if session is None:
            return None
        return SessionInfo(
            workspace_name=session.workspace_name,
            working_dir=session.working_dir,
            is_temp_dir=session.is_temp_dir,
        )

    def require(self, token: str) -> SessionInfo:
        """Resolve a token or raise ``InvalidToken``."""
        info = self.get_info(token)
        if info is None:
            raise InvalidToken(token)
        return info

    # ── closing ───────────────────────────────────────────────────────────

    def close(self, token: str) -> bool:
        """Close a token and release its temp copy.

        Returns:
            True if the token existed, False otherwise.
        """
        session = self._sessions.pop(token, None)
        if session is None:
            return False
        self._release(session)
        return True

    async def close_async(self, token: str) -> bool:
        """Like ``close`` but deletes the temp copy in a worker thread.

        The record is dropped before the delete starts, so the token stops
        resolving immediately.
        """
        session = self._sessions.pop(token, None)
        if session is None:
            return False
        await asyncio.to_thread(self._release, session)
        return True

    def _release(self, session: WorkspaceSession) -> None:
        if session.is_temp_dir and Path(session.working_dir).exists():
            try:
                self._materializer.remove(session.working_dir)
            except OSError as e:
                logger.error(
                    f"[tokens] error cleaning up temporary directory "
                    f"{session.working_dir}: {e}"
                )

        logger.info(
            "Closed workspace token",
            extra={"workspace": session.workspace_name, "token": session.token},
        )

    def close_all(self) -> list[str]:
        """Close every open token."""
        tokens = list(self._sessions)
        for token in tokens:
            self.close(token)
        return tokens

    async def close_all_async(self) -> list[str]:
        """Close every open token. Call on server shutdown."""
        tokens = list(self._sessions)
        for token in tokens:
            await self.close_async(token)
        return tokens

    def _log_eviction(self, session: WorkspaceSession, now: int) -> None:
        logger.info(
            "Auto-closing idle workspace token",
            extra={
                "workspace": session.workspace_name,
                "token": session.token,
                "idle_ms": session.idle_for(now),
            },
        )

    def sweep_idle(self, now: int | None = None) -> list[str]:
        """Close every session that has been idle for its idle timeout.

        Args:
            now: Current time in epoch ms; defaults to the store clock.

        Returns:
            Tokens that were closed.
        """
        if now is None:
            now = self._clock()

        idle = [token for token, s in self._sessions.items() if s.is_idle(now)]

        closed = []
        for token in idle:
            self._log_eviction(self._sessions[token], now)
            try:
                self.close(token)
            except Exception as e:
                logger.error(
                    f"[tokens] error closing idle workspace token: {e}",
                    extra={"token": token},
                )
            closed.append(token)
        return closed

    async def sweep_idle_async(self, now: int | None = None) -> list[str]:
        """``sweep_idle`` for the event loop: temp copies are deleted off-loop."""
        if now is None:
            now = self._clock()

        idle = [token for token, s in self._sessions.items() if s.is_idle(now)]

        closed = []
        for token in idle:
            session = self._sessions.get(token)
            # Closed or used while an earlier copy was being deleted.
            if session is None or not session.is_idle(now):
                continue
            self._log_eviction(session, now)
            try:
                await self.close_async(token)
            except Exception as e:
                logger.error(
                    f"[tokens] error closing idle workspace token: {e}",
                    extra={"token": token},
                )
            closed.append(token)
        return closed

    # ── inspection ────────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, token: object) -> bool:
        # Plain membership check; unlike exists() it does not count as activity.
        return token in self._sessions

    def tokens(self) -> list[str]:
        return list(self._sessions)

    # ── test instrumentation ──────────────────────────────────────────────

    def set_last_access(self, token: str, time_ms: int) -> bool:
        session = self._sessions.get(token)
        if session is None:
            return False
        session.last_access_ms = time_ms
        return True

    def set_idle_timeout(self, token: str, timeout_ms: int) -> bool:
        session = self._sessions.get(token)
        if session is None:
            return False
        session.idle_timeout_ms = timeout_ms
        return True
