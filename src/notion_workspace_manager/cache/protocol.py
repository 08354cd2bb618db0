from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    import re
    from collections.abc import Callable

    from notion_workspace_manager.cache.memory_store import CacheStats


class CacheStore(Protocol):
    @property
    def namespace(self) -> str: ...

    @property
    def enabled(self) -> bool: ...

    def full_key(self, key: str) -> str: ...

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any, ttl: float | None = None) -> None: ...

    def invalidate(self, key: str) -> bool: ...

    def invalidate_pattern(self, pattern: str | re.Pattern[str] | Callable[[str], bool]) -> int: ...

    def clear(self) -> int: ...

    def get_stats(self) -> CacheStats: ...

    def enable(self) -> None: ...

    def disable(self) -> None: ...
