from pathlib import Path

import pytest

from graph_memory.services import config as config_module

ENV_KEYS = [
    "OBSIDIAN_HOST",
    "OBSIDIAN_API_KEY",
    "VAULT_PATH",
    "GRAPH_REFRESH_INTERVAL",
    "GRAPH_FETCH_BATCH_SIZE",
    "GRAPH_REBUILD_TIMEOUT",
    "OBSIDIAN_REQUEST_TIMEOUT",
    "MCP_TRANSPORT",
    "MCP_HOST",
    "MCP_PORT",
]


@pytest.fixture(autouse=True)
def restore_config_cache(monkeypatch):
    """
    Start every test from a clean environment and cache.
    """
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    config_module.reload_config()
    yield
    config_module.get_config.cache_clear()


@pytest.mark.parametrize(
    "value,expected",
    [
        ("500ms", 500),
        ("30s", 30_000),
        ("5m", 300_000),
        ("2h", 7_200_000),
        (" 10s ", 10_000),
        (None, 300_000),
        ("", 300_000),
        ("soon", 300_000),
        ("10", 300_000),
        ("1.5m", 300_000),
        ("5M", 300_000),
    ],
)
def test_parse_interval(value, expected) -> None:
    assert config_module.parse_interval(value) == expected


def test_defaults() -> None:
    cfg = config_module.get_config()

    assert cfg.obsidian_host == "http://localhost:27123"
    assert cfg.obsidian_api_key is None
    assert cfg.vault_path is None
    assert cfg.refresh_interval_ms == 300_000
    assert cfg.fetch_batch_size == 20
    assert cfg.rebuild_timeout_seconds == 120.0
    assert cfg.request_timeout_seconds == 10.0
    assert cfg.mcp_transport == "stdio"
    assert cfg.mcp_host == "127.0.0.1"
    assert cfg.mcp_port == 8001


def test_environment_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("OBSIDIAN_HOST", "https://vault.internal:27124")
    monkeypatch.setenv("OBSIDIAN_API_KEY", "secret-key")
    monkeypatch.setenv("VAULT_PATH", str(tmp_path))
    monkeypatch.setenv("GRAPH_REFRESH_INTERVAL", "30s")
    monkeypatch.setenv("GRAPH_FETCH_BATCH_SIZE", "5")
    monkeypatch.setenv("MCP_TRANSPORT", "HTTP")
    monkeypatch.setenv("MCP_PORT", "9000")

    cfg = config_module.reload_config()

    assert cfg.obsidian_host == "https://vault.internal:27124"
    assert cfg.obsidian_api_key == "secret-key"
    assert cfg.vault_path == tmp_path.resolve()
    assert cfg.refresh_interval_ms == 30_000
    assert cfg.fetch_batch_size == 5
    assert cfg.mcp_transport == "http"
    assert cfg.mcp_port == 9000


def test_blank_values_fall_back(monkeypatch) -> None:
    monkeypatch.setenv("OBSIDIAN_API_KEY", "   ")
    monkeypatch.setenv("VAULT_PATH", "")

    cfg = config_module.reload_config()

    assert cfg.obsidian_api_key is None
    assert cfg.vault_path is None


def test_config_is_cached(monkeypatch) -> None:
    first = config_module.get_config()
    monkeypatch.setenv("MCP_PORT", "9100")

    assert config_module.get_config() is first
    assert config_module.reload_config().mcp_port == 9100


@pytest.mark.parametrize("value", ["0", "101", "many"])
def test_rejects_invalid_batch_size(monkeypatch, value) -> None:
    monkeypatch.setenv("GRAPH_FETCH_BATCH_SIZE", value)

    with pytest.raises(ValueError):
        config_module.reload_config()


def test_rejects_unknown_transport(monkeypatch) -> None:
    monkeypatch.setenv("MCP_TRANSPORT", "carrier-pigeon")

    with pytest.raises(ValueError):
        config_module.reload_config()
