"""Transport adapters implementing TransportPort."""

from statpool.adapters.transport.httpx_transport import (
    HttpxTransport,
    create_stat_pool,
)
from statpool.adapters.transport.in_memory import InMemoryTransport

__all__ = [
    "HttpxTransport",
    "InMemoryTransport",
    "create_stat_pool",
]
