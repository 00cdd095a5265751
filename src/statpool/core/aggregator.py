"""Aggregation state for pending stats."""

from statpool.core.models import AggregatedCounter, CounterDelta, PointValue, Stat


class Aggregator:
    """Mapping of counter key to running total, plus the ordered pending batch.

    Not thread-safe: the pool's loop is the only writer.
    """

    def __init__(self) -> None:
        self._counters: dict[str, AggregatedCounter] = {}
        self._pending: list[Stat] = []

    def add_count(self, delta: CounterDelta) -> None:
        """Merge a counter delta into the running total for its key."""
        counter = self._counters.get(delta.key)
        if counter is not None:
            counter.total += delta.amount
            return
        counter = AggregatedCounter(key=delta.key, total=delta.amount)
        self._counters[delta.key] = counter
        self._pending.append(counter)

    def add_value(self, point: PointValue) -> None:
        """Append a point value to the pending batch."""
        self._pending.append(point)

    def take(self, now: float) -> list[Stat]:
        """Hand over the pending batch and reset.

        Every aggregated counter in the returned batch is stamped with now.

        Args:
            now: Unix timestamp in seconds for the flush cycle.

        Returns:
            The pending stats in arrival order. Empty if nothing is pending.
        """
        for counter in self._counters.values():
            counter.timestamp = now
        batch = self._pending
        self._pending = []
        self._counters = {}
        return batch

    @property
    def pending(self) -> int:
        """Number of stats awaiting the next flush."""
        return len(self._pending)

    def __len__(self) -> int:
        return len(self._pending)
