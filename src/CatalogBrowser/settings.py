# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.settings",
#   "purpose": "Pydantic v2 settings for the catalog cache, HTTP client, and logging.",
#   "sections": [
#     {
#       "id": "loglevel",
#       "name": "LogLevel",
#       "anchor": "class-loglevel",
#       "kind": "class"
#     },
#     {
#       "id": "logformat",
#       "name": "LogFormat",
#       "anchor": "class-logformat",
#       "kind": "class"
#     },
#     {
#       "id": "catalogsettings",
#       "name": "CatalogSettings",
#       "anchor": "class-catalogsettings",
#       "kind": "class"
#     },
#     {
#       "id": "load-settings",
#       "name": "load_settings",
#       "anchor": "function-load-settings",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pydantic v2 settings for the catalog browser.

Values layer as CLI overrides > ``CATALOG_BROWSER_*`` environment variables >
defaults.  Field validators normalise paths and the base URL so the rest of
the package can treat them as canonical.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .http import HttpConfig

DEFAULT_CATALOG_KIND = "clustercatalogs"


class LogLevel(str, Enum):
    """Supported logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Supported log output formats."""

    CONSOLE = "console"
    JSON = "json"


class CatalogSettings(BaseSettings):
    """Process-wide configuration for the catalog cache service."""

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_BROWSER_",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    cache_root: Path = Field(Path("cache"), description="Root directory for cached catalog data")
    base_url: str = Field(
        "https://localhost:8443",
        description="Base URL of the catalog server (usually a local port-forward)",
    )
    catalog_kind: str = Field(
        DEFAULT_CATALOG_KIND, description="Resource kind used when a catalog ref omits one"
    )
    cache_capacity: int = Field(100, ge=1, description="Maximum number of catalogs kept on disk")
    cache_ttl_s: float = Field(
        24 * 60 * 60, gt=0, description="Sliding expiry for catalogs that are not accessed"
    )
    connect_timeout_s: float = Field(10.0, gt=0, description="HTTP connect timeout")
    read_timeout_s: float = Field(60.0, gt=0, description="HTTP read timeout")
    verify_tls: bool = Field(True, description="Verify the catalog server's TLS certificate")
    user_agent: str = Field("CatalogBrowser/0.1", description="User-Agent header")
    lock_timeout_s: float = Field(
        30.0, ge=0, description="Seconds to wait for another refresh of the same catalog"
    )
    log_level: LogLevel = Field(LogLevel.INFO, description="Root logging level")
    log_format: LogFormat = Field(LogFormat.CONSOLE, description="Pretty console or structured JSON")
    log_dir: Path | None = Field(None, description="Directory for structured logs (JSONL)")

    @field_validator("cache_root", "log_dir", mode="before")
    @classmethod
    def expand_paths(cls, v: Any) -> Any:
        """Expand user home and make absolute."""
        if v is None:
            return None
        if isinstance(v, (str, Path)):
            return Path(v).expanduser().resolve()
        return v

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str) -> str:
        """Require an http(s) URL and strip trailing slashes."""
        value = v.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {v!r}")
        return value.rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v

    def http_config(self) -> HttpConfig:
        """Return the frozen HTTP configuration derived from these settings."""
        return HttpConfig(
            user_agent=self.user_agent,
            timeout_connect_s=self.connect_timeout_s,
            timeout_read_s=self.read_timeout_s,
            verify_tls=self.verify_tls,
        )


def load_settings(**overrides: Any) -> CatalogSettings:
    """Build settings from the environment with explicit overrides on top.

    ``None`` overrides are ignored so CLI options that were not given fall
    through to the environment and defaults.

    Raises:
        ConfigurationError: If any value fails validation.
    """
    cleaned = {key: value for key, value in overrides.items() if value is not None}
    try:
        return CatalogSettings(**cleaned)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


__all__ = [
    "DEFAULT_CATALOG_KIND",
    "LogLevel",
    "LogFormat",
    "CatalogSettings",
    "load_settings",
]
