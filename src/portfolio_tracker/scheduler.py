"""Cancelable periodic refresh loop."""

from __future__ import annotations

import asyncio
import contextlib
import time
from enum import Enum
from typing import Awaitable, Callable

from loguru import logger


class SchedulerState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    REFRESHING = "refreshing"


class RefreshScheduler:
    """Run *refresh* once immediately and then every *interval* seconds.

    The loop lives in a single asyncio task owned by this handle. ``stop()``
    cancels it; a refresh that raises is logged and the next tick still runs.
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[None]],
        interval: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._refresh = refresh
        self._interval = interval
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._state = SchedulerState.IDLE
        self._next_run_at: float | None = None
        self.rounds = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Arm the loop; does nothing when already running."""
        if self.running:
            return
        logger.debug("Starting refresh loop every {}s", self._interval)
        self._state = SchedulerState.SCHEDULED
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """Cancel the loop. An in-flight round is abandoned at its next suspension point."""
        if self._task is not None and not self._task.done():
            logger.debug("Stopping refresh loop after {} round(s)", self.rounds)
            self._task.cancel()
        self._task = None
        self._state = SchedulerState.IDLE
        self._next_run_at = None

    async def aclose(self) -> None:
        """Stop the loop and wait until its task has finished."""
        task = self._task
        self.stop()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def seconds_until_next_refresh(self) -> float | None:
        """Countdown to the next tick, or ``None`` while idle or refreshing."""
        if self._next_run_at is None or self._state is not SchedulerState.SCHEDULED:
            return None
        return max(0.0, self._next_run_at - self._clock())

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            while True:
                started = self._clock()
                self._state = SchedulerState.REFRESHING
                try:
                    await self._refresh()
                except Exception:  # noqa: BLE001
                    logger.exception("Scheduled refresh failed")
                self.rounds += 1
                self._next_run_at = started + self._interval
                self._state = SchedulerState.SCHEDULED
                await asyncio.sleep(max(0.0, self._next_run_at - self._clock()))
        finally:
            # A restarted loop owns the state from here on.
            if self._task is asyncio.current_task():
                self._next_run_at = None
                self._state = SchedulerState.IDLE
