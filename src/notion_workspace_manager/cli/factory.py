from dataclasses import dataclass

from config import ConfigurationSet

from notion_workspace_manager.cache.memory_store import MemoryCacheStore
from notion_workspace_manager.config import load_cache_settings, resolve_api_token
from notion_workspace_manager.notion.client import CacheTTLs, NotionClient


@dataclass(frozen=True)
class CliState:
    config: ConfigurationSet
    no_cache: bool = False


def build_client(state: CliState) -> NotionClient:
    """Composition root: wires the cache store and HTTP settings into a NotionClient."""
    cfg = state.config
    settings = load_cache_settings(cfg)
    store = MemoryCacheStore(settings.namespace, default_ttl=settings.default_ttl)
    if state.no_cache or not settings.enabled:
        store.disable()
    return NotionClient(
        resolve_api_token(cfg),
        cache=store,
        ttls=CacheTTLs(short=settings.short_ttl, medium=settings.medium_ttl, long=settings.long_ttl),
        single_flight=settings.single_flight,
        base_url=str(cfg["notion.base_url"]),
        notion_version=str(cfg["notion.version"]),
        timeout=float(str(cfg["notion.timeout"])),
    )
