"""Shared test fixtures for the market dashboard backend."""

import random
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from marketdash.cache.backends import MemoryCacheBackend
from marketdash.cache.store import CacheStore
from marketdash.exceptions import UpstreamError
from marketdash.market_data.gate import RequestGate
from marketdash.market_data.service import MarketDataService
from marketdash.transport.client import UpstreamTransport


class FakeClock:
    """Controllable epoch clock for cache expiry tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_transport(routes: dict[str, Any]) -> AsyncMock:
    """Mock UpstreamTransport answering by path.

    A route value may be a payload, an exception instance to raise, or a
    callable taking the params dict. Unknown paths raise UpstreamError(404).
    The dict is read at call time, so tests may change routes mid-test.
    """

    async def get_json(path: str, params: dict[str, Any] | None = None) -> Any:
        response = routes.get(path)
        if response is None:
            raise UpstreamError(404, f"no route for {path}")
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(params or {})
        return response

    transport = AsyncMock(spec=UpstreamTransport)
    transport.get_json.side_effect = get_json
    return transport


def calls_to(transport: AsyncMock, path: str) -> list[dict[str, Any]]:
    """Params of every transport call made for a path, in call order."""
    return [
        call.args[1] if len(call.args) > 1 else {}
        for call in transport.get_json.await_args_list
        if call.args[0] == path
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> CacheStore:
    """Memory-backed cache store driven by the fake clock (no seeded profiles)."""
    return CacheStore(MemoryCacheBackend(), clock=clock)


@pytest_asyncio.fixture
async def gate():
    """Gate without spacing so service tests run fast; closed after the test."""
    request_gate = RequestGate(min_spacing=0.0, request_timeout=1.0)
    yield request_gate
    await request_gate.close()


@pytest.fixture
def routes() -> dict[str, Any]:
    return {}


@pytest.fixture
def transport(routes: dict[str, Any]) -> AsyncMock:
    return make_transport(routes)


@pytest.fixture
def service(
    transport: AsyncMock, gate: RequestGate, cache: CacheStore, clock: FakeClock
) -> MarketDataService:
    return MarketDataService(
        transport, gate, cache, rng=random.Random(7), clock=clock
    )
