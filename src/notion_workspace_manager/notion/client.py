"""Async client for the Notion REST API v1 with a read-through cache.

Every read goes through a ``CachedFetcher`` keyed by operation name and
parameters. Every write invalidates the cached reads it could have made
stale, after the write succeeds:

- ``create_page``: all searches, plus queries of the parent database
- ``update_page`` / ``archive_page``: the page, all searches, all queries
- ``append_blocks``: every cached child listing of the parent block
- ``delete_block``: the block itself and its own child listings. The
  listing of the block's parent is not touched and stays cached until its
  TTL runs out, since the parent id is not known here.
- ``create_comment``: comment listings for the page
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from notion_workspace_manager.cache.fetcher import CachedFetcher
from notion_workspace_manager.cache.keys import TTL, create_cache_key, encode_key_value
from notion_workspace_manager.cache.memory_store import MemoryCacheStore
from notion_workspace_manager.exceptions import NotionAPIError
from notion_workspace_manager.notion._retry import default_http_retry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType

    from notion_workspace_manager.cache.memory_store import CacheStats
    from notion_workspace_manager.cache.protocol import CacheStore

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.notion.com/v1"
DEFAULT_NOTION_VERSION = "2022-06-28"
DEFAULT_NAMESPACE = "notion-workspace-manager"
_DEFAULT_RETRY = default_http_retry("notion_api")
_DATABASE_FILTER = {"property": "object", "value": "database"}


@dataclass(frozen=True)
class CacheTTLs:
    """TTL policy per kind of read, in seconds."""

    short: float = TTL.FIVE_MINUTES
    medium: float = TTL.FIFTEEN_MINUTES
    long: float = TTL.HOUR


class NotionClient:
    def __init__(
        self,
        api_token: str,
        *,
        cache: CacheStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        retry: Callable[..., Callable[..., Any]] = _DEFAULT_RETRY,
        ttls: CacheTTLs | None = None,
        single_flight: bool = False,
        base_url: str = DEFAULT_BASE_URL,
        notion_version: str = DEFAULT_NOTION_VERSION,
        timeout: float = 60.0,
    ) -> None:
        self._api_token = api_token
        self._base_url = base_url.rstrip("/")
        self._notion_version = notion_version
        self._cache = cache if cache is not None else MemoryCacheStore(DEFAULT_NAMESPACE)
        self._fetcher = CachedFetcher(self._cache, single_flight=single_flight)
        self._ttls = ttls or CacheTTLs()
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))
        self._send_with_retry = retry(self._send)

    @property
    def cache(self) -> CacheStore:
        return self._cache

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> NotionClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # -- Cache control -------------------------------------------------------

    def disable_cache(self) -> None:
        """Disables caching for all subsequent requests. Cached entries are kept."""
        self._cache.disable()

    def enable_cache(self) -> None:
        self._cache.enable()

    def get_cache_stats(self) -> CacheStats:
        return self._cache.get_stats()

    def clear_cache(self) -> int:
        return self._cache.clear()

    def invalidate_cache_key(self, key: str) -> bool:
        return self._cache.invalidate(key)

    # -- Search --------------------------------------------------------------

    async def search(
        self,
        query: str = "",
        *,
        filter: dict[str, Any] | None = None,
        page_size: int | None = None,
        start_cursor: str | None = None,
    ) -> dict[str, Any]:
        """Search pages and databases shared with the integration.

        Example:
            await client.search("SOP")
            await client.search("", filter={"property": "object", "value": "database"})
        """
        key = create_cache_key(
            "search",
            {"query": query, "filter": filter, "page_size": page_size, "start_cursor": start_cursor},
        )
        body = _compact({"query": query, "filter": filter, "page_size": page_size, "start_cursor": start_cursor})
        return await self._cached(key, self._ttls.short, lambda: self._request("POST", "/search", body=body))

    # -- Pages ---------------------------------------------------------------

    async def get_page(self, page_id: str) -> dict[str, Any]:
        key = create_cache_key("page", {"id": page_id})
        return await self._cached(key, self._ttls.medium, lambda: self._request("GET", f"/pages/{page_id}"))

    async def get_blocks(
        self,
        block_id: str,
        *,
        start_cursor: str | None = None,
        page_size: int | None = None,
    ) -> dict[str, Any]:
        """Get the child blocks of a page or block."""
        key = create_cache_key("blocks", {"id": block_id, "start_cursor": start_cursor, "page_size": page_size})
        params = _compact({"start_cursor": start_cursor, "page_size": page_size})
        return await self._cached(
            key,
            self._ttls.medium,
            lambda: self._request("GET", f"/blocks/{block_id}/children", params=params),
        )

    async def create_page(
        self,
        parent: dict[str, str],
        properties: dict[str, Any],
        children: list[Any] | None = None,
    ) -> dict[str, Any]:
        """Create a page under a page (``{"page_id": ...}``) or database (``{"database_id": ...}``)."""
        body = _compact({"parent": parent, "properties": properties, "children": children})
        result = await self._request("POST", "/pages", body=body, retryable=False)
        self._cache.invalidate_pattern(self._operation_pattern("search"))
        database_id = parent.get("database_id")
        if database_id:
            self._cache.invalidate_pattern(self._operation_pattern("database_query", database_id))
        return result

    async def update_page(
        self,
        page_id: str,
        properties: dict[str, Any],
        archived: bool | None = None,
    ) -> dict[str, Any]:
        body = _compact({"properties": properties, "archived": archived})
        result = await self._request("PATCH", f"/pages/{page_id}", body=body)
        self._invalidate_page(page_id)
        return result

    async def archive_page(self, page_id: str) -> dict[str, Any]:
        result = await self._request("PATCH", f"/pages/{page_id}", body={"archived": True})
        self._invalidate_page(page_id)
        return result

    # -- Databases -----------------------------------------------------------

    async def get_database(self, database_id: str) -> dict[str, Any]:
        key = create_cache_key("database", {"id": database_id})
        return await self._cached(
            key, self._ttls.medium, lambda: self._request("GET", f"/databases/{database_id}")
        )

    async def query_database(
        self,
        database_id: str,
        *,
        filter: dict[str, Any] | None = None,
        sorts: list[dict[str, Any]] | None = None,
        page_size: int | None = None,
        start_cursor: str | None = None,
    ) -> dict[str, Any]:
        """Query database rows.

        Example:
            await client.query_database(
                db_id,
                filter={"property": "Status", "status": {"equals": "Done"}},
                sorts=[{"property": "Created", "direction": "descending"}],
            )
        """
        params = {"filter": filter, "sorts": sorts, "page_size": page_size, "start_cursor": start_cursor}
        key = create_cache_key("database_query", {"id": database_id, **params})
        body = _compact(params)
        return await self._cached(
            key,
            self._ttls.short,
            lambda: self._request("POST", f"/databases/{database_id}/query", body=body),
        )

    async def create_database_row(self, database_id: str, properties: dict[str, Any]) -> dict[str, Any]:
        return await self.create_page({"database_id": database_id}, properties)

    async def list_databases(self) -> dict[str, Any]:
        return await self._cached(
            "databases_list", self._ttls.short, lambda: self.search("", filter=dict(_DATABASE_FILTER))
        )

    # -- Blocks --------------------------------------------------------------

    async def get_block(self, block_id: str) -> dict[str, Any]:
        key = create_cache_key("block", {"id": block_id})
        return await self._cached(key, self._ttls.medium, lambda: self._request("GET", f"/blocks/{block_id}"))

    async def append_blocks(self, block_id: str, children: list[Any]) -> dict[str, Any]:
        result = await self._request(
            "PATCH", f"/blocks/{block_id}/children", body={"children": children}, retryable=False
        )
        # Every page of the parent's child listing, whatever cursor or size it was fetched with.
        listing = re.escape(self._cache.full_key(create_cache_key("blocks", {"id": block_id})))
        self._cache.invalidate_pattern(re.compile(rf"^{listing}(?:&|$)"))
        return result

    async def delete_block(self, block_id: str) -> dict[str, Any]:
        result = await self._request("DELETE", f"/blocks/{block_id}")
        self._cache.invalidate(create_cache_key("block", {"id": block_id}))
        self._cache.invalidate_pattern(self._operation_pattern("blocks", block_id))
        return result

    # -- Users ---------------------------------------------------------------

    async def list_users(self, *, start_cursor: str | None = None, page_size: int | None = None) -> dict[str, Any]:
        params = _compact({"start_cursor": start_cursor, "page_size": page_size})
        key = create_cache_key("users", params)
        return await self._cached(key, self._ttls.long, lambda: self._request("GET", "/users", params=params))

    async def get_user(self, user_id: str) -> dict[str, Any]:
        key = create_cache_key("user", {"id": user_id})
        return await self._cached(key, self._ttls.long, lambda: self._request("GET", f"/users/{user_id}"))

    async def get_self(self) -> dict[str, Any]:
        """Get the bot user behind the integration token."""
        return await self._cached("self", self._ttls.long, lambda: self._request("GET", "/users/me"))

    # -- Comments ------------------------------------------------------------

    async def get_comments(
        self,
        *,
        block_id: str | None = None,
        start_cursor: str | None = None,
        page_size: int | None = None,
    ) -> dict[str, Any]:
        params = _compact({"block_id": block_id, "start_cursor": start_cursor, "page_size": page_size})
        key = create_cache_key("comments", params)
        return await self._cached(key, self._ttls.short, lambda: self._request("GET", "/comments", params=params))

    async def create_comment(
        self,
        *,
        rich_text: list[dict[str, Any]],
        parent_page_id: str | None = None,
        discussion_id: str | None = None,
    ) -> dict[str, Any]:
        """Comment on a page, or reply in an existing discussion thread."""
        body: dict[str, Any] = {"rich_text": rich_text}
        if parent_page_id is not None:
            body["parent"] = {"page_id": parent_page_id}
        if discussion_id is not None:
            body["discussion_id"] = discussion_id
        result = await self._request("POST", "/comments", body=body, retryable=False)
        if parent_page_id:
            self._cache.invalidate_pattern(self._operation_pattern("comments", parent_page_id))
        return result

    # -- Internal ------------------------------------------------------------

    async def _cached(
        self, key: str, ttl: float, producer: Callable[[], Awaitable[dict[str, Any]]]
    ) -> dict[str, Any]:
        return await self._fetcher.get_or_fetch(key, producer, ttl=ttl)

    def _operation_pattern(self, operation: str, param_value: str | None = None) -> re.Pattern[str]:
        """Match keys of *operation*, optionally only those with a parameter equal to *param_value*."""
        prefix = re.escape(self._cache.full_key(operation))
        if param_value is None:
            return re.compile(rf"^{prefix}(?::|$)")
        return re.compile(rf"^{prefix}:.*={re.escape(encode_key_value(param_value))}(?:&|$)")

    def _invalidate_page(self, page_id: str) -> None:
        self._cache.invalidate(create_cache_key("page", {"id": page_id}))
        self._cache.invalidate_pattern(self._operation_pattern("search"))
        self._cache.invalidate_pattern(self._operation_pattern("database_query"))

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        retryable: bool = True,
    ) -> dict[str, Any]:
        send = self._send_with_retry if retryable else self._send
        return await send(method, endpoint, body, params)

    async def _send(
        self,
        method: str,
        endpoint: str,
        body: dict[str, Any] | None,
        params: dict[str, Any] | None,
    ) -> dict[str, Any]:
        logger.debug("%s %s", method, endpoint)
        response = await self._http.request(
            method,
            f"{self._base_url}{endpoint}",
            json=body,
            params=params,
            headers={
                "Authorization": f"Bearer {self._api_token}",
                "Content-Type": "application/json",
                "Notion-Version": self._notion_version,
            },
        )
        if response.is_error:
            raise NotionAPIError(response.status_code, response.text)
        return response.json()


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {name: value for name, value in values.items() if value is not None}
