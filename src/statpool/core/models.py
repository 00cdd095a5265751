"""Core domain models for stat emissions."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

_ONE_MILLISECOND = timedelta(milliseconds=1)


@dataclass(frozen=True)
class CounterDelta:
    """An increment to a counter.

    Attributes:
        key: Stat key (e.g., "darts").
        amount: Amount to add to the counter.
    """

    key: str
    amount: float


@dataclass(frozen=True)
class PointValue:
    """A single point-in-time measurement.

    Point values are never merged, even when they share a key.

    Attributes:
        key: Stat key (e.g., "players").
        value: The measured value.
        timestamp: Unix timestamp in seconds, or None if unspecified.
    """

    key: str
    value: float
    timestamp: float | None = None


@dataclass
class AggregatedCounter:
    """Running total for one counter key within a flush interval.

    Mutated in place by the aggregator as further deltas arrive, so the
    pending batch and the key lookup always share the same object.

    Attributes:
        key: Stat key.
        total: Sum of all deltas received since the last flush.
        timestamp: Unix timestamp in seconds, assigned when the flush begins.
    """

    key: str
    total: float
    timestamp: float | None = field(default=None)


Stat = AggregatedCounter | PointValue


def to_milliseconds(elapsed: float | timedelta) -> float:
    """Convert an elapsed time to milliseconds.

    Args:
        elapsed: Seconds as a float, or a timedelta.

    Returns:
        Elapsed time in milliseconds.
    """
    if isinstance(elapsed, timedelta):
        return elapsed / _ONE_MILLISECOND
    return elapsed * 1000.0


def to_epoch_seconds(timestamp: float | datetime | None) -> float | None:
    """Normalize a caller supplied timestamp to Unix seconds."""
    if isinstance(timestamp, datetime):
        return timestamp.timestamp()
    return timestamp


def duration_value(
    key: str,
    elapsed: float | timedelta,
    timestamp: float | None = None,
) -> PointValue:
    """Create a point value holding a duration in milliseconds.

    Args:
        key: Stat key (e.g., "quickest time").
        elapsed: Seconds as a float, or a timedelta.
        timestamp: Optional Unix timestamp in seconds.

    Returns:
        PointValue whose value is the duration in milliseconds.
    """
    return PointValue(key=key, value=to_milliseconds(elapsed), timestamp=timestamp)


@dataclass(frozen=True)
class Diagnostic:
    """A captured diagnostic log record.

    Attributes:
        timestamp: Unix timestamp in seconds.
        level: Log level name (e.g., WARNING, ERROR).
        message: The formatted log message.
        attributes: Structured fields attached to the record.
    """

    timestamp: float
    level: str
    message: str
    attributes: dict[str, str | int | float | bool] = field(default_factory=dict)
