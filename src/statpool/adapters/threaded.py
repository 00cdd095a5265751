"""Run a StatPool on a background thread for synchronous applications.

The pool gets its own event loop on a daemon thread. Emission methods go
straight to the pool (they are thread-safe and never block); flush and stop
are bridged onto the pool's loop.
"""

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Coroutine
from datetime import datetime, timedelta
from typing import Any

from statpool.core.errors import PoolStoppedError
from statpool.core.pool import PoolState, PoolStats, StatPool

logger = logging.getLogger(__name__)


class BackgroundStatPool:
    """Thread-hosted wrapper around StatPool.

    Example:
        ```python
        stats = BackgroundStatPool(create_stat_pool(url, "my-key", 10))
        stats.start()
        stats.count("jobs_done")
        stats.stop_sync()
        ```
    """

    def __init__(self, pool: StatPool, thread_name: str = "statpool") -> None:
        """Wrap an unstarted pool.

        Args:
            pool: The pool to host. It must not have been started.
            thread_name: Name of the background thread.
        """
        self._pool = pool
        self._thread_name = thread_name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def pool(self) -> StatPool:
        return self._pool

    @property
    def stats(self) -> PoolStats:
        return self._pool.stats

    def start(self) -> None:
        """Start the background thread and the pool on it."""
        with self._lock:
            if self._thread is not None:
                return
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(
                target=self._loop.run_forever, name=self._thread_name, daemon=True
            )
            self._thread.start()
        self._call(self._start_pool())

    async def _start_pool(self) -> None:
        self._pool.start()

    def _ensure_started(self) -> None:
        """Start the thread for a pool that was never started."""
        if self._thread is None and self._pool.state is PoolState.IDLE:
            self.start()

    # --- Emission API ---

    def count(self, key: str, amount: float = 1.0) -> None:
        self._pool.count(key, amount)

    def value(
        self,
        key: str,
        amount: float,
        timestamp: float | datetime | None = None,
    ) -> None:
        self._pool.value(key, amount, timestamp)

    def duration(self, key: str, elapsed: float | timedelta) -> None:
        self._pool.duration(key, elapsed)

    def sampled_duration(
        self, key: str, elapsed: float | timedelta, rate: float
    ) -> None:
        self._pool.sampled_duration(key, elapsed, rate)

    # --- Lifecycle ---

    def flush_sync(self) -> None:
        """Block the calling thread until a flush cycle completes.

        Starts the pool first if it was never started.

        Raises:
            FlushError: If any chunk of the cycle failed.
            PoolStoppedError: If the pool has been stopped.
        """
        self._ensure_started()
        self._call(self._pool.flush())

    def stop_sync(self) -> None:
        """Block until the final flush completes, then end the thread.

        A pool that was never started is started first, so stats emitted
        so far are still delivered.

        Raises:
            FlushError: If any chunk of the final flush failed.
        """
        self._ensure_started()
        if self._thread is None:
            return
        try:
            self._call(self._pool.stop())
        finally:
            self._shutdown_thread()

    async def flush(self) -> None:
        """Await a flush cycle from any event loop."""
        await asyncio.to_thread(self._ensure_started)
        await asyncio.wrap_future(self._submit(self._pool.flush()))

    async def stop(self) -> None:
        """Await the final flush from any event loop."""
        await asyncio.to_thread(self._ensure_started)
        if self._thread is None:
            return
        try:
            await asyncio.wrap_future(self._submit(self._pool.stop()))
        finally:
            await asyncio.to_thread(self._shutdown_thread)

    def _submit(
        self, coro: Coroutine[Any, Any, None]
    ) -> "concurrent.futures.Future[None]":
        loop = self._loop
        if loop is None or loop.is_closed():
            coro.close()
            raise PoolStoppedError("background pool is not running")
        return asyncio.run_coroutine_threadsafe(coro, loop)

    def _call(self, coro: Coroutine[Any, Any, None]) -> None:
        self._submit(coro).result()

    def _shutdown_thread(self) -> None:
        with self._lock:
            loop, thread = self._loop, self._thread
            if loop is None or thread is None:
                return
            self._thread = None
        loop.call_soon_threadsafe(loop.stop)
        thread.join()
        loop.close()
        logger.debug("background thread %s exited", self._thread_name)
