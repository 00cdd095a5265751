"""statpool: in-process metrics buffering with batched delivery.

Example:
    ```python
    from statpool import create_stat_pool

    async with create_stat_pool(url, "my-key", flush_interval=10) as stats:
        stats.count("requests")
        stats.duration("render", elapsed)
    ```
"""

import logging

from statpool.adapters.logging import DiagnosticsHandler, enable_verbose_logging
from statpool.adapters.null import NullStatPool
from statpool.adapters.threaded import BackgroundStatPool
from statpool.adapters.transport import (
    HttpxTransport,
    InMemoryTransport,
    create_stat_pool,
)
from statpool.core.errors import (
    EncodingError,
    FlushError,
    PoolStoppedError,
    StatPoolError,
    TransportError,
)
from statpool.core.models import AggregatedCounter, CounterDelta, PointValue
from statpool.core.pool import PoolState, PoolStats, StatPool
from statpool.core.ports import StatPoolPort, StatsPort, TransportPort
from statpool.core.timing import timed

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AggregatedCounter",
    "BackgroundStatPool",
    "CounterDelta",
    "DiagnosticsHandler",
    "EncodingError",
    "FlushError",
    "HttpxTransport",
    "InMemoryTransport",
    "NullStatPool",
    "PointValue",
    "PoolState",
    "PoolStats",
    "PoolStoppedError",
    "StatPool",
    "StatPoolError",
    "StatPoolPort",
    "StatsPort",
    "TransportError",
    "TransportPort",
    "create_stat_pool",
    "enable_verbose_logging",
    "timed",
]
