"""Aggregating stat pool.

A single asyncio task owns the aggregation state. Producers hand stats over
through two bounded ingress channels and never block; when a channel is
full the stat is dropped and a diagnostic is logged. Flushes are requested
by a recurring timer, by flush() and by stop(), and are sent in concurrent
chunks by BatchSender.
"""

import asyncio
import enum
import functools
import logging
import queue
import random
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import TracebackType
from typing import Any

from statpool.core.aggregator import Aggregator
from statpool.core.errors import FlushError, PoolStoppedError
from statpool.core.models import (
    CounterDelta,
    PointValue,
    duration_value,
    to_epoch_seconds,
)
from statpool.core.ports import TransportPort
from statpool.core.scheduler import FlushScheduler
from statpool.core.sender import DEFAULT_MAX_BATCH_SIZE, BatchSender

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_CAPACITY = 512


class PoolState(enum.Enum):
    """Lifecycle of a StatPool."""

    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


@dataclass(frozen=True)
class PoolStats:
    """Point-in-time counters describing a pool.

    Attributes:
        dropped: Stats dropped because an ingress channel was full.
        flush_cycles: Flush cycles that had at least one stat to send.
        failed_cycles: Flush cycles in which at least one chunk failed.
        pending: Stats aggregated and awaiting the next flush.
    """

    dropped: int
    flush_cycles: int
    failed_cycles: int
    pending: int


@dataclass
class _FlushRequest:
    waiter: "asyncio.Future[None] | None" = None


@dataclass
class _StopRequest:
    waiter: "asyncio.Future[None]"


class StatPool:
    """Buffers counters and values locally and ships them in batches.

    Emission methods are safe to call from any thread. flush(), stop() and
    start() must be called from the event loop the pool runs on.

    Example:
        ```python
        async with StatPool(transport, "my-key", flush_interval=10) as stats:
            stats.count("requests")
            stats.value("queue_depth", 12)
        ```
    """

    def __init__(
        self,
        transport: TransportPort,
        ezkey: str,
        flush_interval: float,
        *,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        prefix: str = "",
        owns_transport: bool = False,
        clock: Callable[[], float] = time.time,
        random_source: Callable[[], float] = random.random,
    ) -> None:
        """Initialize the pool.

        Args:
            transport: Adapter implementing TransportPort.
            ezkey: Account key placed in every envelope.
            flush_interval: Seconds between timer driven flushes.
            queue_capacity: Capacity of each ingress channel.
            max_batch_size: Maximum number of stats per request.
            prefix: String prepended to every stat key.
            owns_transport: Close the transport (``aclose()``) on stop.
            clock: Source of Unix timestamps for counter flush times.
            random_source: Uniform [0, 1) source used for sampling.
        """
        if queue_capacity <= 0:
            raise ValueError("queue_capacity must be positive")
        self._transport = transport
        self._owns_transport = owns_transport
        self._sender = BatchSender(transport, ezkey, max_batch_size)
        self._scheduler = FlushScheduler(flush_interval, self._request_tick)
        self._aggregator = Aggregator()
        self._counts: queue.Queue[CounterDelta] = queue.Queue(maxsize=queue_capacity)
        self._values: queue.Queue[PointValue] = queue.Queue(maxsize=queue_capacity)
        self._requests: deque[_FlushRequest | _StopRequest] = deque()
        self._prefix = prefix
        self._clock = clock
        self._random = random_source
        self._state = PoolState.IDLE
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: int | None = None
        self._wakeup: asyncio.Event | None = None
        self._wake_pending = False
        self._task: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[None]] = set()
        self._stop_waiter: asyncio.Future[None] | None = None
        self._stats_lock = threading.Lock()
        self._dropped = 0
        self._flush_cycles = 0
        self._failed_cycles = 0

    # --- Configuration ---

    @property
    def prefix(self) -> str:
        return self._prefix

    def set_prefix(self, prefix: str) -> None:
        """Set the string prepended to every stat key emitted from now on.

        Args:
            prefix: Key prefix (e.g., "web:"). Empty string disables it.
        """
        self._prefix = prefix

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def stats(self) -> PoolStats:
        """Snapshot of the pool's counters."""
        with self._stats_lock:
            return PoolStats(
                dropped=self._dropped,
                flush_cycles=self._flush_cycles,
                failed_cycles=self._failed_cycles,
                pending=self._aggregator.pending,
            )

    # --- Emission API ---

    def count(self, key: str, amount: float = 1.0) -> None:
        """Add amount to the counter for key."""
        delta = CounterDelta(key=self._prefix + key, amount=amount)
        self._admit(self._counts, delta, amount)

    def value(
        self,
        key: str,
        amount: float,
        timestamp: float | datetime | None = None,
    ) -> None:
        """Record a point-in-time value for key.

        Args:
            key: Stat key.
            amount: The measured value.
            timestamp: Unix seconds or datetime; None leaves it unspecified.
        """
        point = PointValue(
            key=self._prefix + key,
            value=amount,
            timestamp=to_epoch_seconds(timestamp),
        )
        self._admit(self._values, point, amount)

    def duration(self, key: str, elapsed: float | timedelta) -> None:
        """Record an elapsed time for key, in milliseconds.

        Args:
            key: Stat key.
            elapsed: Seconds as a float, or a timedelta.
        """
        point = duration_value(self._prefix + key, elapsed)
        self._admit(self._values, point, point.value)

    def sampled_duration(
        self, key: str, elapsed: float | timedelta, rate: float
    ) -> None:
        """Record an elapsed time for key with probability rate.

        Each call makes an independent draw. Rate 1 always records and
        rate 0 never does.
        """
        if self._random() < rate:
            self.duration(key, elapsed)

    def _admit(
        self,
        channel: "queue.Queue[Any]",
        stat: CounterDelta | PointValue,
        amount: float,
    ) -> None:
        """Hand a stat to the loop without blocking, dropping it when full."""
        if self._state in (PoolState.DRAINING, PoolState.STOPPED):
            logger.debug(
                "pool stopped, refusing stat: %s", stat.key, extra={"stat_key": stat.key}
            )
            return
        try:
            channel.put_nowait(stat)
        except queue.Full:
            with self._stats_lock:
                self._dropped += 1
                dropped = self._dropped
            logger.warning(
                "channels backed up, dropping stat: %s=%s",
                stat.key,
                amount,
                extra={
                    "stat_key": stat.key,
                    "stat_value": amount,
                    "dropped_total": dropped,
                },
            )
            return
        self._signal()

    def _signal(self) -> None:
        """Wake the aggregator loop, coalescing repeated wakeups."""
        loop = self._loop
        if loop is None or self._wake_pending:
            return
        self._wake_pending = True
        assert self._wakeup is not None
        if threading.get_ident() == self._loop_thread:
            self._wakeup.set()
        elif not loop.is_closed():
            try:
                loop.call_soon_threadsafe(self._wakeup.set)
            except RuntimeError:
                # Loop closed after the check above.
                logger.debug("event loop closed, wakeup skipped")

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the aggregator loop and arm the flush timer.

        Must be called from a running event loop. Stats emitted before
        start() are processed once the loop runs.

        Raises:
            PoolStoppedError: If the pool has already been stopped.
        """
        if self._state is not PoolState.IDLE:
            if self._state is PoolState.RUNNING:
                return
            raise PoolStoppedError("a stopped pool cannot be restarted")
        self._loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()
        self._wakeup = asyncio.Event()
        self._state = PoolState.RUNNING
        self._task = self._loop.create_task(self._run(), name="statpool-aggregator")
        self._task.add_done_callback(self._loop_done)
        self._scheduler.start()
        self._wake_pending = True
        self._wakeup.set()
        logger.debug(
            "pool started",
            extra={"flush_interval": self._scheduler.interval},
        )

    async def flush(self) -> None:
        """Send everything emitted so far and wait for the outcome.

        Returns immediately, without any transport call, when nothing is
        pending.

        Raises:
            FlushError: If any chunk of the cycle failed.
            PoolStoppedError: If the pool is draining or stopped.
        """
        if self._state is PoolState.IDLE:
            self.start()
        if self._state is not PoolState.RUNNING:
            raise PoolStoppedError("pool is stopped")
        assert self._loop is not None
        waiter: asyncio.Future[None] = self._loop.create_future()
        self._submit(_FlushRequest(waiter))
        await waiter

    async def stop(self) -> None:
        """Flush a final time and stop the loop.

        The pool is stopped when this returns, even if the final flush
        failed. Calling stop() again is a no-op.

        Raises:
            FlushError: If any chunk of the final flush failed.
        """
        if self._state is PoolState.STOPPED:
            return
        if self._state is PoolState.DRAINING:
            assert self._stop_waiter is not None
            await asyncio.shield(self._stop_waiter)
            return
        if self._state is PoolState.IDLE:
            self.start()
        assert self._loop is not None
        self._state = PoolState.DRAINING
        self._scheduler.cancel()
        self._stop_waiter = self._loop.create_future()
        self._submit(_StopRequest(self._stop_waiter))
        await asyncio.shield(self._stop_waiter)

    async def __aenter__(self) -> "StatPool":
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()

    # --- Aggregator loop (runs only on the pool's event loop) ---

    def _submit(self, request: _FlushRequest | _StopRequest) -> None:
        self._requests.append(request)
        self._signal()

    def _request_tick(self) -> None:
        self._submit(_FlushRequest())

    async def _run(self) -> None:
        assert self._wakeup is not None
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            self._wake_pending = False
            # Ingress first so a flush sees every stat admitted before it.
            self._drain_ingress()
            while self._requests:
                request = self._requests.popleft()
                if isinstance(request, _StopRequest):
                    await self._shutdown(request.waiter)
                    return
                self._begin_flush(request.waiter)

    def _drain_ingress(self) -> None:
        for _ in range(self._counts.qsize()):
            self._aggregator.add_count(self._counts.get_nowait())
        for _ in range(self._values.qsize()):
            self._aggregator.add_value(self._values.get_nowait())

    def _begin_flush(self, waiter: "asyncio.Future[None] | None") -> None:
        stats = self._aggregator.take(now=self._clock())
        if not stats:
            if waiter is not None and not waiter.done():
                waiter.set_result(None)
            return
        with self._stats_lock:
            self._flush_cycles += 1
        task = asyncio.create_task(self._sender.send(stats))
        self._in_flight.add(task)
        task.add_done_callback(functools.partial(self._flush_done, waiter))

    def _flush_done(
        self, waiter: "asyncio.Future[None] | None", task: "asyncio.Task[None]"
    ) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            if waiter is not None:
                waiter.cancel()
            return
        error = task.exception()
        if error is not None:
            self._record_failure(error)
        if waiter is None or waiter.done():
            return
        if error is not None:
            waiter.set_exception(error)
        else:
            waiter.set_result(None)

    def _record_failure(self, error: BaseException) -> None:
        with self._stats_lock:
            self._failed_cycles += 1
        logger.error(
            "flush failed: %s",
            error,
            extra={
                "failed_chunks": getattr(error, "failed_chunks", 0),
                "total_chunks": getattr(error, "total_chunks", 0),
            },
        )

    async def _shutdown(self, waiter: "asyncio.Future[None]") -> None:
        error: Exception | None = None
        try:
            self._drain_ingress()
            stats = self._aggregator.take(now=self._clock())
            if stats:
                with self._stats_lock:
                    self._flush_cycles += 1
                try:
                    await self._sender.send(stats)
                except FlushError as e:
                    self._record_failure(e)
                    error = e
            if self._in_flight:
                await asyncio.gather(*self._in_flight, return_exceptions=True)
            aclose = getattr(self._transport, "aclose", None)
            if self._owns_transport and aclose is not None:
                await aclose()
        except Exception as e:
            error = e
        finally:
            self._state = PoolState.STOPPED
            self._discard_leftovers()
            logger.info("pool stopped")
            if not waiter.done():
                if error is not None:
                    waiter.set_exception(error)
                else:
                    waiter.set_result(None)

    def _discard_leftovers(self) -> None:
        """Drop stats admitted after the final drain, counting each one."""
        channels: tuple[queue.Queue[Any], ...] = (self._counts, self._values)
        for channel in channels:
            while True:
                try:
                    stat = channel.get_nowait()
                except queue.Empty:
                    break
                with self._stats_lock:
                    self._dropped += 1
                    dropped = self._dropped
                logger.warning(
                    "pool stopped, dropping stat: %s",
                    stat.key,
                    extra={"stat_key": stat.key, "dropped_total": dropped},
                )

    def _loop_done(self, task: "asyncio.Task[None]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("aggregator loop crashed", exc_info=error)
