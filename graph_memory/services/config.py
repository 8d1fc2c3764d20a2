"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_REFRESH_INTERVAL_MS = 5 * 60 * 1000
INTERVAL_PATTERN = re.compile(r"^(\d+)(ms|s|m|h)$")
INTERVAL_UNITS_MS = {"ms": 1, "s": 1000, "m": 60 * 1000, "h": 60 * 60 * 1000}


def parse_interval(value: Optional[str]) -> int:
    """Parse ``500ms`` / ``30s`` / ``5m`` / ``1h`` into milliseconds (default 5m)."""
    if not value:
        return DEFAULT_REFRESH_INTERVAL_MS
    match = INTERVAL_PATTERN.match(value.strip())
    if not match:
        return DEFAULT_REFRESH_INTERVAL_MS
    return int(match.group(1)) * INTERVAL_UNITS_MS[match.group(2)]


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    obsidian_host: str = Field(
        default="http://localhost:27123",
        description="Base URL of the Obsidian Local REST API",
    )
    obsidian_api_key: Optional[str] = Field(
        default=None, description="Bearer token for the Obsidian Local REST API"
    )
    vault_path: Optional[Path] = Field(
        default=None,
        description="Read notes from this directory instead of the REST API",
    )
    refresh_interval_ms: int = Field(
        default=DEFAULT_REFRESH_INTERVAL_MS,
        gt=0,
        description="Periodic rebuild interval (accepts '30s', '5m', ...)",
    )
    fetch_batch_size: int = Field(
        default=20, ge=1, le=100, description="Notes fetched concurrently per batch"
    )
    rebuild_timeout_seconds: float = Field(
        default=120.0, gt=0, description="Abandon a rebuild that runs longer than this"
    )
    request_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Timeout for a single REST API request"
    )
    mcp_transport: Literal["stdio", "http"] = "stdio"
    mcp_host: str = "127.0.0.1"
    mcp_port: int = Field(default=8001, ge=1, le=65535)

    @field_validator("refresh_interval_ms", mode="before")
    @classmethod
    def _parse_interval(cls, value: str | int | None) -> int:
        if value is None or isinstance(value, str):
            return parse_interval(value)
        return value

    @field_validator("vault_path", mode="before")
    @classmethod
    def _normalize_vault_path(cls, value: str | Path | None) -> Optional[Path]:
        if value is None or value == "":
            return None
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @field_validator("obsidian_api_key", mode="before")
    @classmethod
    def _blank_key_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @field_validator("mcp_transport", mode="before")
    @classmethod
    def _normalize_transport(cls, value: Optional[str]) -> str:
        return (value or "stdio").strip().lower() or "stdio"


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    return AppConfig(
        obsidian_host=_read_env("OBSIDIAN_HOST", "http://localhost:27123"),
        obsidian_api_key=_read_env("OBSIDIAN_API_KEY"),
        vault_path=_read_env("VAULT_PATH"),
        refresh_interval_ms=_read_env("GRAPH_REFRESH_INTERVAL"),
        fetch_batch_size=_read_env("GRAPH_FETCH_BATCH_SIZE", "20"),
        rebuild_timeout_seconds=_read_env("GRAPH_REBUILD_TIMEOUT", "120"),
        request_timeout_seconds=_read_env("OBSIDIAN_REQUEST_TIMEOUT", "10"),
        mcp_transport=_read_env("MCP_TRANSPORT", "stdio"),
        mcp_host=_read_env("MCP_HOST", "127.0.0.1"),
        mcp_port=_read_env("MCP_PORT", "8001"),
    )


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "parse_interval",
    "DEFAULT_REFRESH_INTERVAL_MS",
]
