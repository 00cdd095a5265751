"""Timing helper for recording durations."""

import time
from collections.abc import Generator
from contextlib import contextmanager

from statpool.core.ports import StatsPort


@contextmanager
def timed(
    stats: StatsPort,
    key: str,
    rate: float = 1.0,
) -> Generator[None, None, None]:
    """Context manager that records the elapsed time of its block.

    The duration is recorded even if the block raises.

    Args:
        stats: Emitter implementing StatsPort.
        key: Stat key for the duration.
        rate: Sampling rate; below 1 the duration is sampled.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if rate < 1.0:
            stats.sampled_duration(key, elapsed, rate)
        else:
            stats.duration(key, elapsed)
