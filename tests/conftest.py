"""
Pytest configuration and shared fixtures.

Provides:
- AnyIO backend selection (asyncio)
- A fake monotonic clock for TTL and throttle tests
- A fake dashboard server plugged into httpx.MockTransport
- A DashboardApiClient wired to that server, with a recorded login hook
- A DashboardClient running against the reference FastAPI app (ASGITransport)
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import pytest

from dashsync.client import DashboardClient
from dashsync.core.config import Settings
from dashsync.core.http import DashboardApiClient
from dashsync.main import create_app
from dashsync.repos.snapshot_repo import SnapshotRepository
from dashsync.sync.coordinator import LoadingCoordinator

BASE_URL = "http://dashboard.test"

# Debounce window used by store tests; keeps timer tests fast
SHORT_DEBOUNCE = 0.05


# =============================================================================
# AnyIO Backend Configuration
# =============================================================================
@pytest.fixture
def anyio_backend():
    return "asyncio"


# =============================================================================
# Fakes
# =============================================================================


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDashboardServer:
    """
    httpx.MockTransport handler standing in for the dashboard API.

    GET returns `payloads[path]` (empty object by default); POST answers
    `{"success": true}`. `fail(method, path, status, body)` forces a response,
    and `gate` (an asyncio.Event) holds every request until it is set.
    """

    def __init__(self) -> None:
        self.payloads: dict[str, dict[str, Any]] = {}
        self.forced: dict[tuple[str, str], tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.gate: asyncio.Event | None = None

    def fail(self, method: str, path: str, status_code: int, body: Any = None) -> None:
        self.forced[(method, path)] = (status_code, body if body is not None else {})

    def gets(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET" and r.url.path == path]

    def posts(self, path: str) -> list[dict[str, Any]]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == "POST" and r.url.path == path
        ]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        forced = self.forced.get((request.method, request.url.path))
        if forced is not None:
            status_code, body = forced
            return httpx.Response(status_code, json=body)
        if request.method == "GET":
            return httpx.Response(200, json=self.payloads.get(request.url.path, {}))
        return httpx.Response(200, json={"success": True})


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def server() -> FakeDashboardServer:
    return FakeDashboardServer()


@pytest.fixture
def login_redirects() -> list[str]:
    """Login routes the 401 hook was called with."""
    return []


@pytest.fixture
async def api(
    server: FakeDashboardServer, login_redirects: list[str]
) -> AsyncGenerator[DashboardApiClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    yield DashboardApiClient(BASE_URL, client=http_client, on_unauthorized=login_redirects.append)
    await http_client.aclose()


@pytest.fixture
def coordinator(clock: FakeClock) -> LoadingCoordinator:
    return LoadingCoordinator(30.0, clock=clock)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        app_env="test",
        api_base_url=BASE_URL,
        save_debounce_seconds=SHORT_DEBOUNCE,
        observability_structured_logs=False,
    )


@pytest.fixture
def repository() -> SnapshotRepository:
    return SnapshotRepository()


@pytest.fixture
def sent_requests() -> list[httpx.Request]:
    """Requests the dashboard_client sent, in order."""
    return []


@pytest.fixture
async def dashboard_client(
    test_settings: Settings,
    repository: SnapshotRepository,
    clock: FakeClock,
    login_redirects: list[str],
    sent_requests: list[httpx.Request],
) -> AsyncGenerator[DashboardClient]:
    """DashboardClient talking to the reference API in-process."""

    async def record(request: httpx.Request) -> None:
        sent_requests.append(request)

    app = create_app(test_settings, repository)
    http_client = httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), event_hooks={"request": [record]}
    )
    client = DashboardClient(
        test_settings,
        http_client=http_client,
        clock=clock,
        on_unauthorized=login_redirects.append,
    )
    yield client
    await client.aclose()
    await http_client.aclose()
