"""Periodic flush scheduler."""

from typing import Awaitable, Callable
import asyncio
import logging

logger = logging.getLogger(__name__)


class FlushScheduler:
    """
    Recurring background task that calls ``flush`` every ``interval`` seconds.

    Stopping sets an event the sleep waits on, so the loop exits promptly and
    never performs a final flush. A flush already running when ``stop()`` is
    called is awaited, not cancelled.
    """

    def __init__(self, flush: Callable[[], Awaitable[object]], interval: float = 30.0):
        if interval <= 0:
            raise ValueError(f"Flush interval must be positive, got {interval}")
        self._flush = flush
        self.interval = interval
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop on the running event loop (no-op if already running)."""
        if self.running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="audit-flush-scheduler"
        )

    async def stop(self) -> None:
        """Signal the loop to exit and wait for it."""
        self._stop.set()
        task, self._task = self._task, None
        if task is not None:
            await task

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            if self._stop.is_set():
                break

            try:
                await self._flush()
            except Exception:
                logger.exception("Periodic audit flush raised unexpectedly")
