from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from config import ConfigurationSet, config_from_dict, config_from_env, config_from_json, config_from_yaml

from notion_workspace_manager.cache.keys import TTL
from notion_workspace_manager.exceptions import ConfigError


class AppConfig(Protocol):
    def __getitem__(self, key: str) -> object: ...

    def get(self, key: str, default: object = None) -> object: ...


_DEFAULTS: dict[str, object] = {
    "notion": {
        "api_token": "",
        "base_url": "https://api.notion.com/v1",
        "version": "2022-06-28",
        "timeout": 60.0,
    },
    "cache": {
        "namespace": "notion-workspace-manager",
        "enabled": True,
        "single_flight": False,
        "default_ttl": TTL.FIVE_MINUTES,
        "short_ttl": TTL.FIVE_MINUTES,
        "medium_ttl": TTL.FIFTEEN_MINUTES,
        "long_ttl": TTL.HOUR,
    },
}

# Older installs kept the token inside an MCP server block in config.json.
_LEGACY_TOKEN_KEYS = ("mcpServer.env.NOTION_API_TOKEN", "mcpserver.env.notion_api_token")


@dataclass(frozen=True)
class CacheSettings:
    namespace: str
    enabled: bool
    single_flight: bool
    default_ttl: float
    short_ttl: float
    medium_ttl: float
    long_ttl: float


def create_config(
    yaml_path: str = "config.yaml",
    json_path: str = "config.json",
    env_prefix: str = "NOTION_WM",
    defaults: dict[str, object] | None = None,
    *,
    overrides: dict[str, object] | None = None,
) -> ConfigurationSet:
    """Create a layered configuration.

    Priority (highest to lowest): explicit overrides > env vars > YAML file > JSON file > defaults dict.

    Args:
        yaml_path: Path to the YAML config file.
        json_path: Path to the JSON config file (new or legacy layout).
        env_prefix: Prefix for environment variables, e.g. ``NOTION_WM__NOTION__API_TOKEN``.
        defaults: Default configuration values.
        overrides: Values that win over every other layer, typically from CLI flags.
    """
    if defaults is None:
        defaults = _DEFAULTS

    layers = [
        config_from_env(env_prefix, separator="__", lowercase_keys=True),
        config_from_yaml(yaml_path, read_from_file=True, ignore_missing_paths=True),
        config_from_json(json_path, read_from_file=True, ignore_missing_paths=True),
        config_from_dict(defaults),
    ]
    if overrides:
        layers.insert(0, config_from_dict(overrides))

    return ConfigurationSet(*layers)


def resolve_api_token(cfg: AppConfig) -> str:
    """Return the Notion integration token from ``notion.api_token`` or the legacy MCP layout."""
    token = cfg.get("notion.api_token")
    if token:
        return str(token)
    for key in _LEGACY_TOKEN_KEYS:
        token = cfg.get(key)
        if token:
            return str(token)
    raise ConfigError(
        "Missing Notion API token (expected notion.api_token or mcpServer.env.NOTION_API_TOKEN)"
    )


def load_cache_settings(cfg: AppConfig) -> CacheSettings:
    return CacheSettings(
        namespace=str(cfg["cache.namespace"]),
        enabled=_as_bool(cfg["cache.enabled"]),
        single_flight=_as_bool(cfg["cache.single_flight"]),
        default_ttl=float(str(cfg["cache.default_ttl"])),
        short_ttl=float(str(cfg["cache.short_ttl"])),
        medium_ttl=float(str(cfg["cache.medium_ttl"])),
        long_ttl=float(str(cfg["cache.long_ttl"])),
    )


def _as_bool(value: object) -> bool:
    # Env vars arrive as strings.
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)
