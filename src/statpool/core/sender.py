"""Chunked, concurrent delivery of a flush cycle's stats."""

import asyncio
import logging
from collections.abc import Iterator, Sequence

from statpool.core.encoding.envelope import encode_envelope, recovery_payload
from statpool.core.errors import EncodingError, FlushError, TransportError
from statpool.core.models import Stat
from statpool.core.ports import TransportPort

logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCH_SIZE = 1000


def chunked(stats: Sequence[Stat], size: int) -> Iterator[Sequence[Stat]]:
    """Split stats into contiguous chunks of at most size items.

    Args:
        stats: The stats to split, in order.
        size: Maximum number of stats per chunk.

    Yields:
        Consecutive slices of stats. Nothing for an empty sequence.
    """
    if size <= 0:
        raise ValueError("size must be positive")
    for start in range(0, len(stats), size):
        yield stats[start : start + size]


class BatchSender:
    """Sends a flush cycle's stats to a transport in concurrent chunks.

    Every chunk is attempted even when sibling chunks fail. Failed chunks
    are logged verbatim and are not retried.
    """

    def __init__(
        self,
        transport: TransportPort,
        ezkey: str,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    ) -> None:
        """Initialize the sender.

        Args:
            transport: Adapter implementing TransportPort.
            ezkey: Account key placed in every envelope.
            max_batch_size: Maximum number of stats per request.
        """
        if max_batch_size <= 0:
            raise ValueError("max_batch_size must be positive")
        self._transport = transport
        self._ezkey = ezkey
        self._max_batch_size = max_batch_size

    @property
    def max_batch_size(self) -> int:
        return self._max_batch_size

    async def send(self, stats: Sequence[Stat]) -> None:
        """Deliver all stats, one transport call per chunk.

        Args:
            stats: Snapshot of the pending batch.

        Raises:
            FlushError: If any chunk failed. The first failure observed is
                chained as the cause; which one that is when several chunks
                fail is not defined.
        """
        chunks = list(chunked(stats, self._max_batch_size))
        if not chunks:
            return
        tasks = [asyncio.create_task(self._send_chunk(chunk)) for chunk in chunks]
        first_error: Exception | None = None
        failed = 0
        for next_done in asyncio.as_completed(tasks):
            error = await next_done
            if error is None:
                continue
            failed += 1
            if first_error is None:
                first_error = error
        if first_error is not None:
            raise FlushError(
                f"{failed} of {len(chunks)} chunks failed: {first_error}",
                failed_chunks=failed,
                total_chunks=len(chunks),
            ) from first_error

    async def _send_chunk(self, chunk: Sequence[Stat]) -> Exception | None:
        """Encode and send one chunk, returning its error instead of raising."""
        try:
            body = encode_envelope(self._ezkey, chunk)
        except EncodingError as e:
            payload = recovery_payload(self._ezkey, chunk)
            logger.error(
                "Could not encode chunk: %s; unprocessed aggregate: %s",
                e,
                payload,
                extra={"chunk_size": len(chunk), "payload": payload, "status": 0},
            )
            return e
        try:
            await self._transport.send(body)
        except Exception as e:
            payload = body.decode("utf-8", errors="replace")
            status = e.status if isinstance(e, TransportError) else None
            logger.error(
                "unprocessed aggregate: %s",
                payload,
                extra={"payload": payload, "status": status or 0},
            )
            return e
        return None
