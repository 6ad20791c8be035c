"""IdleSweeper: periodic idle-token eviction.

Runs as an asyncio task on the server's event loop. The task is purely
advisory: it is cancelled when the server shuts down and never keeps the
process alive on its own.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from codebox.utils.helpers import now_ms
from codebox.utils.logging import get_logger

logger = get_logger(__name__)

SweepFn = Callable[[int], Awaitable[list[str]]]


class IdleSweeper:
    """Calls ``sweep(now)`` every ``interval_seconds``.

    Example::

        sweeper = IdleSweeper(store.sweep_idle_async, interval_seconds=60)
        sweeper.start()
        ...
        await sweeper.stop()

    Tests skip the timer entirely and await ``run_once(now=...)``.
    """

    def __init__(
        self,
        sweep: SweepFn,
        interval_seconds: float = 60.0,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._sweep = sweep
        self.interval_seconds = interval_seconds
        self._clock = clock or now_ms
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self, now: int | None = None) -> list[str]:
        """Run one sweep immediately.

        Args:
            now: Epoch ms to sweep at; defaults to the sweeper clock.

        Returns:
            Tokens closed by this sweep.
        """
        closed = await self._sweep(self._clock() if now is None else now)
        if closed:
            logger.info(f"[sweeper] closed {len(closed)} idle workspace token(s)")
        return closed

    def start(self) -> None:
        """Start the periodic task on the running loop (restarts if running)."""
        if self._task is not None:
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.debug(f"[sweeper] started, interval={self.interval_seconds}s")

    async def stop(self) -> None:
        """Cancel the periodic task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("[sweeper] stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"[sweeper] idle sweep failed: {e}", exc_info=True)

    async def __aenter__(self) -> "IdleSweeper":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
