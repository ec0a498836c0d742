"""
Pytest configuration and fixtures for aaexplorer tests.

HTTP is served by an in-process httpx.MockTransport; responses are registered
per API operation and, optionally, per network.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from aaexplorer.backend import API_PREFIX, QueryClient
from aaexplorer.cache import CacheManager

BASE_URL = "https://api.test"


@dataclass
class _MockEntry:
    status_code: int = 200
    json: Any = None
    content: Optional[bytes] = None
    exception: Optional[Exception] = None


@dataclass
class FakeQueryApi:
    """Route table keyed by (operation, network); network None matches any."""

    entries: Dict[Tuple[str, Optional[str]], _MockEntry] = field(default_factory=dict)
    requests: List[httpx.Request] = field(default_factory=list)
    gates: Dict[str, asyncio.Event] = field(default_factory=dict)

    def add_response(self, operation: str, json: Any = None, *, network: Optional[str] = None,
                     status_code: int = 200, content: Optional[bytes] = None) -> None:
        self.entries[(operation, network)] = _MockEntry(status_code, json, content)

    def add_exception(self, operation: str, exception: Exception, *,
                      network: Optional[str] = None) -> None:
        self.entries[(operation, network)] = _MockEntry(exception=exception)

    def hold(self, operation: str) -> asyncio.Event:
        """Block requests for ``operation`` until the returned event is set."""
        gate = asyncio.Event()
        self.gates[operation] = gate
        return gate

    def calls(self, operation: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == f"{API_PREFIX}/{operation}"]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        operation = request.url.path[len(API_PREFIX) + 1:]
        gate = self.gates.get(operation)
        if gate is not None:
            await gate.wait()
        network = request.url.params.get("network")
        entry = self.entries.get((operation, network)) or self.entries.get((operation, None))
        if entry is None:
            return httpx.Response(404, json={"message": "not mocked"}, request=request)
        if entry.exception is not None:
            raise entry.exception
        if entry.content is not None:
            return httpx.Response(entry.status_code, content=entry.content, request=request)
        return httpx.Response(entry.status_code, json=entry.json, request=request)


@pytest.fixture
def api():
    return FakeQueryApi()


@pytest.fixture
def client(api):
    return QueryClient(BASE_URL, transport=httpx.MockTransport(api.handler), cache=CacheManager())


@pytest.fixture
def uncached_client(api):
    return QueryClient(BASE_URL, transport=httpx.MockTransport(api.handler),
                       cache=CacheManager(enabled=False))
