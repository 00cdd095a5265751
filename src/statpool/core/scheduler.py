"""Recurring flush timer."""

import asyncio
from collections.abc import Callable


class FlushScheduler:
    """Calls on_tick every interval seconds until cancelled.

    The callback only requests a flush; it must not block.
    """

    def __init__(self, interval: float, on_tick: Callable[[], None]) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._on_tick = on_tick
        self._task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        """Return True while the timer is armed."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Arm the timer. Must be called from a running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._tick_loop())

    def cancel(self) -> None:
        """Disarm the timer."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._on_tick()
