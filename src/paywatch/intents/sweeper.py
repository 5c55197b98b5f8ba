"""Background task that runs the intent cleanup sweep on a fixed period."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from paywatch.core.logging import get_logger
from paywatch.core.types import SweepReport

if TYPE_CHECKING:
    from paywatch.intents.lifecycle import LifecycleController


class IntentSweeper:
    """
    Periodic cleanup task with its own cancellation handle.

    The task runs on the event loop, apart from request handling. A failed
    sweep is logged and the next one runs on schedule.
    """

    def __init__(self, controller: LifecycleController, interval: float = 60 * 60) -> None:
        self._controller = controller
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self._logger = get_logger("sweeper")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        """Start the periodic sweep. Must be called from a running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="paywatch-sweeper")
            self._logger.debug(f"Sweeper started (every {self._interval}s)")
        return self._task

    async def stop(self) -> None:
        """Cancel the task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._logger.debug("Sweeper stopped")

    async def run_once(self) -> SweepReport:
        return await self._controller.sweep_expired_and_old()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception:
                self._logger.exception("Sweep failed; retrying next period")
