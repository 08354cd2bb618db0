from notion_workspace_manager.cache.fetcher import CachedFetcher
from notion_workspace_manager.cache.keys import TTL, create_cache_key, encode_key_value
from notion_workspace_manager.cache.memory_store import CacheEntry, CacheStats, MemoryCacheStore
from notion_workspace_manager.cache.protocol import CacheStore

__all__ = [
    "TTL",
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "CachedFetcher",
    "MemoryCacheStore",
    "create_cache_key",
    "encode_key_value",
]
