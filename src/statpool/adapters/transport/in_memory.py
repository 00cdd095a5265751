"""In-memory transport adapter."""

import asyncio
import json
from typing import Any


class InMemoryTransport:
    """In-memory implementation of TransportPort.

    Records every request body instead of sending it. Suitable for testing
    and for applications that inspect what would have been delivered.

    Args:
        delay: Seconds to wait inside each send, to simulate network latency.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self._bodies: list[bytes] = []
        self._delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, body: bytes) -> None:
        """Record a request body."""
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            self._bodies.append(body)
        finally:
            self.in_flight -= 1

    @property
    def bodies(self) -> list[bytes]:
        """Raw request bodies in the order they completed."""
        return list(self._bodies)

    def envelopes(self) -> list[dict[str, Any]]:
        """Decoded request bodies."""
        return [json.loads(body) for body in self._bodies]

    def records(self) -> list[dict[str, Any]]:
        """All stat records across every request body."""
        return [record for envelope in self.envelopes() for record in envelope["data"]]

    def clear(self) -> None:
        """Forget all recorded bodies."""
        self._bodies.clear()
