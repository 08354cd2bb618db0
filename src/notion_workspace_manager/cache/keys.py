from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


class TTL:
    """Standard time-to-live tiers, in seconds."""

    FIVE_MINUTES = 300
    FIFTEEN_MINUTES = 900
    HOUR = 3600


def encode_key_value(value: object) -> str:
    """Encode one parameter value the way it appears inside a cache key."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def create_cache_key(operation: str, params: Mapping[str, object] | None = None) -> str:
    """Build a deterministic cache key from an operation name and its parameters.

    ``None`` parameters are dropped and the rest are sorted by name, so two
    calls describing the same logical request always yield the same string::

        create_cache_key("database_query", {"id": "abc", "page_size": 10})
        # -> 'database_query:id="abc"&page_size=10'

    Every value, strings included, is encoded as compact JSON with sorted
    object keys. Strings are therefore quoted, so ``&`` or ``=`` inside a value
    cannot be mistaken for a separator and ``1`` never collides with ``"1"``.
    Raises ``TypeError`` for values that cannot be JSON encoded.
    """
    if not params:
        return operation
    parts = [f"{name}={encode_key_value(value)}" for name, value in sorted(params.items()) if value is not None]
    if not parts:
        return operation
    return f"{operation}:{'&'.join(parts)}"
