"""Port interfaces for stat emitters and transports.

These protocols define the contracts that engines and adapters must implement.
Application code depends only on these interfaces, so a real pool and the
null pool can be swapped at construction without touching call sites.
"""

from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable


@runtime_checkable
class StatsPort(Protocol):
    """Port for emitting stats.

    Implementations must never block and never raise to the caller.
    Examples: StatPool, BackgroundStatPool, NullStatPool.
    """

    def count(self, key: str, amount: float = 1.0) -> None:
        """Add amount to the counter for key."""
        ...

    def value(
        self,
        key: str,
        amount: float,
        timestamp: float | datetime | None = None,
    ) -> None:
        """Record a point-in-time value for key."""
        ...

    def duration(self, key: str, elapsed: float | timedelta) -> None:
        """Record an elapsed time for key, in milliseconds."""
        ...

    def sampled_duration(
        self, key: str, elapsed: float | timedelta, rate: float
    ) -> None:
        """Record an elapsed time for key with probability rate."""
        ...


@runtime_checkable
class StatPoolPort(StatsPort, Protocol):
    """Port for a stats emitter with an explicit delivery lifecycle."""

    async def flush(self) -> None:
        """Send everything emitted so far and wait for the outcome."""
        ...

    async def stop(self) -> None:
        """Flush a final time and shut down."""
        ...


@runtime_checkable
class TransportPort(Protocol):
    """Port for delivering one encoded chunk to the metrics collector.

    Adapters return normally on success and raise TransportError on any
    failure (network error, non-success status, malformed response).
    Examples: HttpxTransport, InMemoryTransport.
    """

    async def send(self, body: bytes) -> None:
        """Deliver an encoded envelope."""
        ...
