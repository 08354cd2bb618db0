"""Shared pytest fixtures for test modules."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_none

from notion_workspace_manager.cache.memory_store import MemoryCacheStore
from notion_workspace_manager.notion._retry import is_transient_error
from notion_workspace_manager.notion.client import NotionClient

NO_WAIT_RETRY = retry(
    stop=stop_after_attempt(3),
    wait=wait_none(),
    retry=retry_if_exception(is_transient_error),
    reraise=True,
)


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeNotionApi:
    """Records requests and answers from a route table keyed by ``(method, path)``.

    Unrouted requests get a 404 with a Notion-style error body.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, payload: dict[str, Any], status_code: int = 200) -> None:
        self.routes[(method, path)] = lambda _request: httpx.Response(status_code, json=payload)

    def calls(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)

    def last_body(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"object": "error", "code": "object_not_found"})
        return responder(request)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryCacheStore:
    return MemoryCacheStore("test-ns", default_ttl=300, clock=clock)


@pytest.fixture
def notion_api() -> FakeNotionApi:
    return FakeNotionApi()


@pytest.fixture
def make_client(notion_api: FakeNotionApi, store: MemoryCacheStore) -> Callable[..., NotionClient]:
    """Build NotionClients that talk to ``notion_api`` and share ``store``."""

    def _make(**kwargs: Any) -> NotionClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(notion_api.handler))
        kwargs.setdefault("cache", store)
        kwargs.setdefault("retry", NO_WAIT_RETRY)
        return NotionClient("secret-token", http_client=http_client, **kwargs)

    return _make
