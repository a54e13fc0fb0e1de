"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any

import pytest

from nexora_client.core.config import ExportConfig
from nexora_client.core.export import ExportJobClient, ExportOrchestrator
from nexora_client.core.transport import (
    HttpStatusError,
    RequestActivity,
    RequestSpec,
    Transport,
    TransportError,
    TransportResponse,
)

API_URL = "http://api.test/api/v1"
EXPORT_URL = f"{API_URL}/inventory/export"


def json_response(url: str, payload: Any, status: int = 200) -> TransportResponse:
    content = b"" if payload is None else json.dumps(payload).encode()
    return TransportResponse(url=url, status_code=status, content=content)


def http_error(url: str, status: int, body: Any = None) -> HttpStatusError:
    return HttpStatusError(f"GET {url} returned {status}", url=url, status_code=status, body=body)


def network_error(url: str) -> TransportError:
    return TransportError(f"No response from {url}", url=url)


class FakeTransport(Transport):
    """Transport answering from scripted routes.

    Each route holds a queue of results consumed one per call; the last
    result repeats. A result may be a payload (sent as JSON), a
    TransportResponse, an exception to raise, or an async callable taking
    the RequestSpec.
    """

    def __init__(self, activity: RequestActivity | None = None):
        super().__init__(activity or RequestActivity())
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.calls: list[RequestSpec] = []

    @property
    def name(self) -> str:
        return "fake"

    def add(self, method: str, url: str, *results: Any) -> None:
        self.routes[(method.upper(), url)] = list(results)

    def calls_to(self, method: str, url: str) -> list[RequestSpec]:
        return [c for c in self.calls if c.method.upper() == method.upper() and c.url == url]

    async def send(self, request: RequestSpec) -> TransportResponse:
        self.calls.append(request)
        # Let concurrent callers interleave like real network calls
        await asyncio.sleep(0)

        queue = self.routes.get((request.method.upper(), request.url))
        if not queue:
            raise http_error(request.url, 404)
        result = queue.pop(0) if len(queue) > 1 else queue[0]

        if callable(result) and not isinstance(result, BaseException):
            result = await result(request)
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, TransportResponse):
            return result
        return json_response(request.url, result)


class FakeClock:
    """Monotonic clock in seconds, advanced by hand."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def activity():
    return RequestActivity()


@pytest.fixture
def transport(activity):
    return FakeTransport(activity)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def export_config():
    """Fast polling so state machine tests finish quickly."""
    return ExportConfig(poll_interval_ms=10, watchdog_timeout_ms=2000)


@pytest.fixture
def export_date():
    return datetime(2024, 5, 1, 12, 30)


@pytest.fixture
def orchestrator(transport, export_config, export_date):
    client = ExportJobClient(transport, API_URL, export_config)
    return ExportOrchestrator(client, export_config, clock=lambda: export_date)
