"""Workspace tokens: the session store, idle sweeping, per-token locks."""

from codebox.tokens.locks import TokenLocks
from codebox.tokens.scheduler import IdleSweeper
from codebox.tokens.store import SessionInfo, WorkspaceSession, WorkspaceTokenStore

__all__ = [
    "WorkspaceTokenStore",
    "WorkspaceSession",
    "SessionInfo",
    "IdleSweeper",
    "TokenLocks",
]
