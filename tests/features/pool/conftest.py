"""BDD step definitions for stat pool lifecycle features.

Steps drive a BackgroundStatPool from the test thread, so no step needs
an event loop of its own.
"""

from collections.abc import Generator
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when

from statpool.adapters.threaded import BackgroundStatPool
from statpool.adapters.transport.in_memory import InMemoryTransport
from statpool.core.pool import PoolState, StatPool


@dataclass
class PoolScenarioContext:
    """Shared state between steps in a pool scenario."""

    transport: InMemoryTransport = field(default_factory=InMemoryTransport)
    stats: BackgroundStatPool | None = None

    @property
    def running(self) -> BackgroundStatPool:
        assert self.stats is not None, "no pool was started"
        return self.stats

    def record(self, key: str) -> dict[str, Any]:
        matches = [r for r in self.transport.records() if r["stat"] == key]
        assert len(matches) == 1, f"expected one record for {key}: {matches}"
        return matches[0]


@pytest.fixture
def ctx() -> Generator[PoolScenarioContext, None, None]:
    """Fresh scenario context; the pool is stopped afterwards."""
    context = PoolScenarioContext()
    yield context
    if context.stats is not None and context.stats.pool.state is not PoolState.STOPPED:
        context.stats.stop_sync()


# === Background Steps ===
@given("an in-memory collector")
def step_collector(ctx: PoolScenarioContext) -> None:
    ctx.transport = InMemoryTransport()


@given(parsers.parse('a running stat pool with key "{ezkey}"'))
def step_running_pool(ctx: PoolScenarioContext, ezkey: str) -> None:
    ctx.stats = BackgroundStatPool(StatPool(ctx.transport, ezkey, 60.0))
    ctx.stats.start()


@given(parsers.parse('the key prefix "{prefix}"'))
def step_prefix(ctx: PoolScenarioContext, prefix: str) -> None:
    ctx.running.pool.set_prefix(prefix)


# === Emission Steps ===
@when(parsers.parse('"{key}" is counted by {amount:g}'))
def step_count(ctx: PoolScenarioContext, key: str, amount: float) -> None:
    ctx.running.count(key, amount)


@when(parsers.parse('the value {amount:g} is recorded for "{key}"'))
def step_value(ctx: PoolScenarioContext, amount: float, key: str) -> None:
    ctx.running.value(key, amount)


@when(parsers.parse('a duration of {ms:d} ms is recorded for "{key}"'))
def step_duration(ctx: PoolScenarioContext, ms: int, key: str) -> None:
    ctx.running.duration(key, timedelta(milliseconds=ms))


@when(
    parsers.parse(
        '{calls:d} durations of {ms:d} ms are sampled for "{key}" at rate {rate:g}'
    )
)
def step_sampled(
    ctx: PoolScenarioContext, calls: int, ms: int, key: str, rate: float
) -> None:
    for _ in range(calls):
        ctx.running.sampled_duration(key, timedelta(milliseconds=ms), rate)


# === Lifecycle Steps ===
@when("the pool is flushed")
def step_flush(ctx: PoolScenarioContext) -> None:
    ctx.running.flush_sync()


@when("the pool is stopped")
def step_stop(ctx: PoolScenarioContext) -> None:
    ctx.running.stop_sync()


# === Assertions ===
@then(parsers.parse('the collector received exactly one envelope for "{ezkey}"'))
def step_one_envelope(ctx: PoolScenarioContext, ezkey: str) -> None:
    [envelope] = ctx.transport.envelopes()
    assert envelope["ezkey"] == ezkey


@then(parsers.parse("{n:d} records were delivered"))
def step_record_total(ctx: PoolScenarioContext, n: int) -> None:
    assert len(ctx.transport.records()) == n


@then(parsers.parse('"{key}" was delivered with count {count:g}'))
def step_count_delivered(ctx: PoolScenarioContext, key: str, count: float) -> None:
    assert ctx.record(key)["count"] == count


@then(parsers.parse('"{key}" was delivered with value {value:g}'))
def step_value_delivered(ctx: PoolScenarioContext, key: str, value: float) -> None:
    assert ctx.record(key)["value"] == value


@then(parsers.parse('the pool state is "{state}"'))
def step_state(ctx: PoolScenarioContext, state: str) -> None:
    assert ctx.running.pool.state is PoolState[state]
