"""Settings layering and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from CatalogBrowser.errors import ConfigurationError
from CatalogBrowser.settings import DEFAULT_CATALOG_KIND, LogFormat, LogLevel, load_settings


def test_defaults(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    settings = load_settings()

    assert settings.cache_root == (tmp_path / "cache").resolve()
    assert settings.catalog_kind == DEFAULT_CATALOG_KIND
    assert settings.cache_capacity == 100
    assert settings.cache_ttl_s == 24 * 60 * 60
    assert settings.log_level is LogLevel.INFO
    assert settings.log_format is LogFormat.CONSOLE
    assert settings.log_dir is None


def test_environment_overrides_defaults(monkeypatch) -> None:
    monkeypatch.setenv("CATALOG_BROWSER_CACHE_CAPACITY", "5")
    monkeypatch.setenv("CATALOG_BROWSER_LOG_LEVEL", "debug")
    monkeypatch.setenv("CATALOG_BROWSER_VERIFY_TLS", "false")

    settings = load_settings()

    assert settings.cache_capacity == 5
    assert settings.log_level is LogLevel.DEBUG
    assert settings.verify_tls is False


def test_explicit_overrides_beat_environment(monkeypatch) -> None:
    monkeypatch.setenv("CATALOG_BROWSER_BASE_URL", "https://env.example")

    assert load_settings(base_url="http://cli.example/").base_url == "http://cli.example"
    assert load_settings(base_url=None).base_url == "https://env.example"


def test_user_paths_are_expanded(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    settings = load_settings(cache_root="~/catalogs", log_dir="~/logs")

    assert settings.cache_root == (tmp_path / "catalogs").resolve()
    assert settings.log_dir == (tmp_path / "logs").resolve()


@pytest.mark.parametrize(
    "overrides",
    [
        {"base_url": "catalogd.local:8443"},
        {"cache_capacity": 0},
        {"cache_ttl_s": 0},
        {"log_level": "chatty"},
    ],
)
def test_invalid_values_raise_configuration_error(overrides) -> None:
    with pytest.raises(ConfigurationError):
        load_settings(**overrides)


def test_http_config_follows_settings() -> None:
    settings = load_settings(connect_timeout_s=2.5, read_timeout_s=7, verify_tls=False)
    config = settings.http_config()

    assert config.timeout_connect_s == 2.5
    assert config.timeout_read_s == 7
    assert config.verify_tls is False
    assert config.user_agent == settings.user_agent
