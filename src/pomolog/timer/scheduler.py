"""Repeating one-second callback primitive used by the countdown engine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class TickHandle(Protocol):
    """Handle to a repeating callback."""

    def cancel(self) -> None: ...

    @property
    def active(self) -> bool: ...


class Scheduler(Protocol):
    """Invoke a callback every ``interval`` seconds until the handle is cancelled."""

    def call_every(self, interval: float, callback: Callable[[], None]) -> TickHandle: ...


class AsyncioTickHandle:
    """A single asyncio task that sleeps, then fires the callback, repeatedly."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._task: asyncio.Task | None = asyncio.get_running_loop().create_task(self._loop())

    @property
    def active(self) -> bool:
        return not self._cancelled and self._task is not None and not self._task.done()

    def cancel(self) -> None:
        """Stop the loop; a wake-up already queued will not reach the callback."""
        self._cancelled = True
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _loop(self) -> None:
        while not self._cancelled:
            await asyncio.sleep(self._interval)
            if self._cancelled:
                break
            try:
                self._callback()
            except Exception as e:
                logger.error(f"Error in tick callback: {e}")


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def call_every(self, interval: float, callback: Callable[[], None]) -> AsyncioTickHandle:
        if interval <= 0:
            raise ValueError("tick interval must be positive")
        return AsyncioTickHandle(interval, callback)
