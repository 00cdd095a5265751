"""Tests for the Aggregator state."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from statpool.core.aggregator import Aggregator
from statpool.core.models import AggregatedCounter, CounterDelta, PointValue

pytestmark = [pytest.mark.unit, pytest.mark.tier(0)]

finite_floats = st.floats(
    min_value=-1e9, max_value=1e9, allow_nan=False, allow_infinity=False
)


class TestCounterMerging:
    """Tests for Aggregator.add_count()."""

    @pytest.mark.tra("Core.Aggregator.CounterMerge")
    def test_repeated_key_produces_single_pending_counter(self) -> None:
        """Deltas for the same key merge into one pending counter."""
        aggregator = Aggregator()

        for amount in (1, 1, 1, 4):
            aggregator.add_count(CounterDelta(key="darts", amount=amount))

        assert aggregator.pending == 1
        batch = aggregator.take(now=1000.0)
        assert batch == [AggregatedCounter(key="darts", total=7, timestamp=1000.0)]

    @pytest.mark.tra("Core.Aggregator.CounterMergeInPlace")
    def test_pending_counter_is_updated_in_place(self) -> None:
        """The pending entry is the object later deltas mutate."""
        aggregator = Aggregator()
        aggregator.add_count(CounterDelta(key="darts", amount=1))
        aggregator.add_value(PointValue(key="players", value=2))
        aggregator.add_count(CounterDelta(key="darts", amount=2))

        batch = aggregator.take(now=1000.0)

        assert len(batch) == 2
        assert isinstance(batch[0], AggregatedCounter)
        assert batch[0].total == 3

    @pytest.mark.tra("Core.Aggregator.CounterMergeSum")
    @given(amounts=st.lists(finite_floats, min_size=1, max_size=50))
    def test_total_equals_sum_of_deltas(self, amounts: list[float]) -> None:
        """For any delta sequence the flushed total is their sum."""
        aggregator = Aggregator()
        for amount in amounts:
            aggregator.add_count(CounterDelta(key="k", amount=amount))

        batch = aggregator.take(now=1.0)

        assert len(batch) == 1
        assert batch[0].total == sum(amounts)  # type: ignore[union-attr]

    @pytest.mark.tra("Core.Aggregator.CounterKeysFirstSeenOrder")
    @given(keys=st.lists(st.sampled_from(["a", "b", "c", "d"]), min_size=1))
    def test_one_counter_per_key_in_first_seen_order(self, keys: list[str]) -> None:
        """Each distinct key appears once, ordered by first appearance."""
        aggregator = Aggregator()
        for key in keys:
            aggregator.add_count(CounterDelta(key=key, amount=1))

        batch = aggregator.take(now=1.0)

        assert [stat.key for stat in batch] == list(dict.fromkeys(keys))
        for stat in batch:
            assert isinstance(stat, AggregatedCounter)
            assert stat.total == keys.count(stat.key)


class TestPointValues:
    """Tests for Aggregator.add_value()."""

    @pytest.mark.tra("Core.Aggregator.PointValuesNeverMerge")
    def test_point_values_with_same_key_stay_distinct(self) -> None:
        """N values with one key give N pending entries."""
        aggregator = Aggregator()
        for value in (1.0, 2.0, 3.0):
            aggregator.add_value(PointValue(key="players", value=value))

        batch = aggregator.take(now=1.0)

        assert [stat.value for stat in batch] == [1.0, 2.0, 3.0]  # type: ignore[union-attr]

    @pytest.mark.tra("Core.Aggregator.PointValuesIgnoreCounters")
    def test_point_value_does_not_merge_with_counter_of_same_key(self) -> None:
        """A counter and a value sharing a key are separate entries."""
        aggregator = Aggregator()
        aggregator.add_count(CounterDelta(key="shared", amount=1))
        aggregator.add_value(PointValue(key="shared", value=5))
        aggregator.add_count(CounterDelta(key="shared", amount=1))

        batch = aggregator.take(now=1.0)

        assert len(batch) == 2
        assert batch[0] == AggregatedCounter(key="shared", total=2, timestamp=1.0)
        assert batch[1] == PointValue(key="shared", value=5)


class TestTake:
    """Tests for Aggregator.take()."""

    @pytest.mark.tra("Core.Aggregator.TakeStampsCounters")
    def test_all_counters_share_the_flush_timestamp(self) -> None:
        """Counters get the flush time; point values keep their own."""
        aggregator = Aggregator()
        aggregator.add_count(CounterDelta(key="a", amount=1))
        aggregator.add_count(CounterDelta(key="b", amount=1))
        aggregator.add_value(PointValue(key="v", value=1, timestamp=10.0))
        aggregator.add_value(PointValue(key="w", value=1))

        batch = aggregator.take(now=2000.0)

        assert [stat.timestamp for stat in batch] == [2000.0, 2000.0, 10.0, None]

    @pytest.mark.tra("Core.Aggregator.TakeResets")
    def test_take_resets_state(self) -> None:
        """After take() a repeated key starts a fresh counter."""
        aggregator = Aggregator()
        aggregator.add_count(CounterDelta(key="darts", amount=2))
        first = aggregator.take(now=1.0)

        aggregator.add_count(CounterDelta(key="darts", amount=3))
        second = aggregator.take(now=2.0)

        assert first == [AggregatedCounter(key="darts", total=2, timestamp=1.0)]
        assert second == [AggregatedCounter(key="darts", total=3, timestamp=2.0)]
        assert len(aggregator) == 0

    @pytest.mark.tra("Core.Aggregator.TakeEmpty")
    def test_take_on_empty_state_returns_empty_list(self) -> None:
        """Nothing pending yields an empty batch."""
        assert Aggregator().take(now=1.0) == []
