"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (SITEMIRROR__FETCHER__MODE=direct)
  2. sitemirror.yaml        (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional. Without a proxy URL the fetcher talks to source
sites directly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from sitemirror.models.site import SiteDescriptor

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("sitemirror")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "mirror.db")


def _find_config_file() -> str | None:
    """Return the path of the first sitemirror.yaml found, or None."""
    candidates = [
        Path("sitemirror.yaml"),
        Path(platformdirs.user_config_dir("sitemirror")) / "sitemirror.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = 8080


class FetcherSettings(BaseModel):
    # "proxy" POSTs {url, action} to proxy_url; "direct" GETs the URL itself
    mode: Literal["proxy", "direct"] = "direct"
    proxy_url: str | None = None
    timeout_seconds: float = 30.0
    user_agent: str = "sitemirror/1.0"
    max_connections: int = 10


class StoreSettings(BaseModel):
    db_path: str = _DEFAULT_DB_PATH


class SitesSettings(BaseModel):
    # JSON file in the default-sites format: a list or {"defaultSites": [...]}
    descriptors_path: str | None = None
    defaults: list[SiteDescriptor] = []


class SitemapSettings(BaseModel):
    # site type -> {category: endpoint suffix}; replaces the built-in set
    endpoints: dict[str, dict[str, str]] = {}


class NetworkSettings(BaseModel):
    probe_url: str | None = None
    probe_timeout_seconds: float = 3.0
    force_offline: bool = False


class SyncSettings(BaseModel):
    resync_interval_hours: int = 24
    recheck_on_startup: bool = True


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: SITEMIRROR__SERVER__PORT=9090
        env_prefix="SITEMIRROR__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    fetcher: FetcherSettings = FetcherSettings()
    store: StoreSettings = StoreSettings()
    sites: SitesSettings = SitesSettings()
    sitemap: SitemapSettings = SitemapSettings()
    network: NetworkSettings = NetworkSettings()
    sync: SyncSettings = SyncSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls),
            # dotenv and file secrets intentionally excluded
        )
