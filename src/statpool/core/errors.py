"""Exception hierarchy for statpool."""


class StatPoolError(Exception):
    """Base class for all statpool errors."""


class PoolStoppedError(StatPoolError):
    """Raised when a flush is requested from a pool that is shutting down."""


class EncodingError(StatPoolError):
    """Raised when a chunk of stats cannot be serialized."""


class TransportError(StatPoolError):
    """Raised when a chunk could not be delivered to the collector.

    Attributes:
        status: HTTP-style status code reported by the collector, or None
            for transport-level failures (connection refused, timeout).
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class FlushError(StatPoolError):
    """Raised when at least one chunk of a flush cycle failed.

    The representative chunk error is chained as ``__cause__``.

    Attributes:
        failed_chunks: Number of chunks that failed.
        total_chunks: Number of chunks attempted in the cycle.
    """

    def __init__(self, message: str, failed_chunks: int, total_chunks: int) -> None:
        super().__init__(message)
        self.failed_chunks = failed_chunks
        self.total_chunks = total_chunks
