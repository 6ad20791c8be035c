"""Optional per-token command serialization.

By default commands sent with the same token run as they arrive, possibly
overlapping in the same working directory. With ``serialize_commands``
enabled the tool layer wraps each command in ``TokenLocks.hold(token)`` so
commands for one token run one at a time, in arrival order. Different
tokens never wait on each other.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator


class TokenLocks:
    """asyncio locks keyed by workspace token."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, token: str) -> AsyncIterator[None]:
        if not self.enabled:
            yield
            return

        lock = self._locks.setdefault(token, asyncio.Lock())
        self._waiters[token] = self._waiters.get(token, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[token] -= 1
            if self._waiters[token] == 0:
                del self._waiters[token]
                del self._locks[token]

    def __len__(self) -> int:
        return len(self._locks)
