"""
Cancellable periodic task on the asyncio event loop.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Run an async callback every ``interval`` seconds between start() and stop().

    The first call happens one interval after start(). A failing callback is
    logged and the schedule continues.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[None]],
        name: str = "periodic-task",
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.callback = callback
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking. No-op if already running. Needs a running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        logger.debug(f"{self.name} started (every {self.interval}s)")

    async def stop(self) -> None:
        """Cancel the schedule and wait for it to wind down."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug(f"{self.name} stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.callback()
            except Exception:
                logger.warning(f"{self.name} callback failed", exc_info=True)
