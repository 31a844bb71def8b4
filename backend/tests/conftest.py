import os
from collections.abc import AsyncGenerator, Callable, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from predsync.main import app
from predsync.services.cache_store import CacheStore
from predsync.services.datasets import DATASETS
from predsync.services.fetcher import DirectEndpointFetch, RemoteFetcher
from predsync.services.ops_alerts import FailureAlerter
from predsync.services.retry import RetryCoordinator
from predsync.services.sync_engine import SyncEngine
from predsync.services.upstream_health import UpstreamHealth

os.environ["APP_ENV"] = "testing"

BASE_URL = "https://data.test"
DIRECT_PATHS = {
    "predictions_daily": "/predictions/daily",
    "opportunities_daily": "/opportunities/daily",
    "predictions_15min": "/predictions/15min",
    "tradebook_daily": "/tradebook/daily",
}

Route = dict[str, Any] | int | Callable[[httpx.Request], httpx.Response]


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingDefer:
    def __init__(self) -> None:
        self.calls: list[tuple[float, Any, str]] = []

    def __call__(self, delay_seconds: float, job, name: str) -> None:  # type: ignore[no-untyped-def]
        self.calls.append((delay_seconds, job, name))


def route_transport(routes: dict[str, Route]) -> httpx.MockTransport:
    """Map URL paths to a JSON body, a bare status code, or a handler."""

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"detail": "not found"})
        if callable(route):
            return route(request)
        if isinstance(route, int):
            return httpx.Response(route, text="upstream error")
        return httpx.Response(200, json=route)

    return httpx.MockTransport(handler)


def make_direct_engine(
    routes: dict[str, Route],
    *,
    clock: FakeClock | None = None,
    defer: RecordingDefer | None = None,
    alerter: FailureAlerter | None = None,
    datasets: list[str] | None = None,
) -> SyncEngine:
    clock = clock or FakeClock()
    fetcher = RemoteFetcher(
        DirectEndpointFetch(BASE_URL, DIRECT_PATHS),
        clock=clock,
        transport=route_transport(routes),
    )
    return SyncEngine(
        fetcher=fetcher,
        cache=CacheStore(DATASETS, clock=clock),
        retry=RetryCoordinator(defer=defer or RecordingDefer(), max_attempts=3, delay_seconds=60),
        alerter=alerter or FailureAlerter(webhook_url="", threshold=3),
        clock=clock,
        datasets=datasets if datasets is not None else list(DATASETS),
        enabled=False,
    )


@pytest.fixture(autouse=True)
def reset_upstream_health() -> Iterator[None]:
    UpstreamHealth.reset()
    yield
    UpstreamHealth.reset()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_defer() -> RecordingDefer:
    return RecordingDefer()


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTPX client hooked to the FastAPI app.

    ASGITransport does not run the lifespan, so tests install their own
    engine on ``app.state.sync_engine`` before issuing requests.
    """
    previous_engine = getattr(app.state, "sync_engine", None)
    previous_scheduler = getattr(app.state, "sync_scheduler", None)
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.state.sync_engine = previous_engine
        app.state.sync_scheduler = previous_scheduler
