"""Shared test fixtures for all test modules."""

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncGenerator, Callable, Generator
from typing import Any

import httpx
import pytest

from statpool.adapters.logging import LOGGER_NAME, DiagnosticsHandler
from statpool.adapters.transport.in_memory import InMemoryTransport
from statpool.core.errors import FlushError, TransportError
from statpool.core.pool import PoolState, StatPool

EZKEY = "finchbasket"


class ScriptedTransport:
    """Transport that rejects any chunk containing one of fail_keys.

    Accepted and rejected envelopes are kept separately so tests can check
    which chunks made it.
    """

    def __init__(
        self,
        fail_keys: tuple[str, ...] = (),
        status: int = 500,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.fail_keys = set(fail_keys)
        self.status = status
        self.delay = delay
        self.error = error
        self.calls = 0
        self.sent: list[dict[str, Any]] = []
        self.rejected: list[dict[str, Any]] = []
        self.closed = False

    async def send(self, body: bytes) -> None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        envelope = json.loads(body)
        keys = {record["stat"] for record in envelope["data"]}
        if keys & self.fail_keys:
            self.rejected.append(envelope)
            if self.error is not None:
                raise self.error
            raise TransportError(
                f"Received http status code: {self.status}", status=self.status
            )
        self.sent.append(envelope)

    def records(self) -> list[dict[str, Any]]:
        return [record for envelope in self.sent for record in envelope["data"]]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def transport() -> InMemoryTransport:
    """Provide an empty in-memory transport."""
    return InMemoryTransport()


@pytest.fixture
def scripted_transport() -> Callable[..., ScriptedTransport]:
    """Factory fixture for transports that reject chosen chunks."""

    def _make(*fail_keys: str, **kwargs: Any) -> ScriptedTransport:
        return ScriptedTransport(fail_keys=fail_keys, **kwargs)

    return _make


@pytest.fixture
async def make_pool(
    transport: InMemoryTransport,
) -> AsyncGenerator[Callable[..., StatPool], None]:
    """Factory fixture creating StatPools that are stopped after the test.

    Defaults to the in-memory transport and a flush interval long enough
    that the timer never fires during a test.

    Usage:
        async def test_something(make_pool):
            pool = make_pool(max_batch_size=10)
            pool.start()
    """
    pools: list[StatPool] = []

    def _make(**kwargs: Any) -> StatPool:
        kwargs.setdefault("flush_interval", 60.0)
        pool_transport = kwargs.pop("transport", transport)
        pool = StatPool(pool_transport, kwargs.pop("ezkey", EZKEY), **kwargs)
        pools.append(pool)
        return pool

    yield _make

    for pool in pools:
        if pool.state is PoolState.RUNNING:
            with contextlib.suppress(FlushError):
                await pool.stop()


@pytest.fixture
def diagnostics() -> Generator[DiagnosticsHandler, None, None]:
    """Capture statpool log records for the duration of a test."""
    handler = DiagnosticsHandler()
    logger = logging.getLogger(LOGGER_NAME)
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield handler
    logger.removeHandler(handler)
    logger.setLevel(previous_level)


# === HTTP Collector Fixtures ===


@pytest.fixture
def collector() -> Callable[..., tuple[httpx.AsyncClient, list[httpx.Request]]]:
    """Factory fixture for an httpx.AsyncClient backed by a fake collector.

    Returns a callable accepting a response factory and returning
    (client, requests) where requests records every httpx.Request seen.

    Usage:
        async def test_something(collector):
            client, requests = collector()
            transport = HttpxTransport("http://collector/ez", client=client)
    """

    def _collector(
        respond: Callable[[httpx.Request], httpx.Response] | None = None,
    ) -> tuple[httpx.AsyncClient, list[httpx.Request]]:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if respond is not None:
                return respond(request)
            return httpx.Response(200, json={"status": 200, "msg": "ok"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return client, requests

    return _collector
