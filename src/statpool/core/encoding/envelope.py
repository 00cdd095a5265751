"""JSON envelope encoder for stat chunks."""

import json
from collections.abc import Iterable
from typing import Any

from statpool.core.errors import EncodingError
from statpool.core.models import AggregatedCounter, Stat


def encode_stat(stat: Stat) -> dict[str, Any]:
    """Convert a stat to its wire record.

    Args:
        stat: An aggregated counter or point value.

    Returns:
        Dict with "stat" and either "count" or "value". "t" holds integral
        Unix seconds and is omitted when the stat has no timestamp.
    """
    if isinstance(stat, AggregatedCounter):
        record: dict[str, Any] = {"stat": stat.key, "count": stat.total}
    else:
        record = {"stat": stat.key, "value": stat.value}
    if stat.timestamp is not None:
        record["t"] = int(stat.timestamp)
    return record


def encode_envelope(ezkey: str, stats: Iterable[Stat]) -> bytes:
    """Encode stats into one request body for the collector.

    Args:
        ezkey: Account key identifying the sender.
        stats: The stats of one chunk, in order.

    Returns:
        UTF-8 encoded JSON object {"ezkey": ..., "data": [...]}.

    Raises:
        EncodingError: If the chunk contains values JSON cannot represent
            (NaN or infinity).
    """
    obj = {"ezkey": ezkey, "data": [encode_stat(stat) for stat in stats]}
    try:
        return json.dumps(obj, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Cannot encode stats chunk: {e}") from e


def recovery_payload(ezkey: str, stats: Iterable[Stat]) -> str:
    """Render stats as envelope JSON text for diagnostics.

    Unlike encode_envelope() this never fails on NaN or infinity; those are
    written as the non-standard literals NaN, Infinity and -Infinity.
    """
    obj = {"ezkey": ezkey, "data": [encode_stat(stat) for stat in stats]}
    return json.dumps(obj)
