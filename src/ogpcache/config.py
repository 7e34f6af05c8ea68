"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (OGPCACHE__SERVER__PORT=9090)
  2. ogpcache.yaml          (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from ogpcache import DEFAULT_USER_AGENT

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("ogpcache")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "ogp.db")


def _find_config_file() -> str | None:
    """Return the path of the first ogpcache.yaml found, or None."""
    candidates = [
        Path("ogpcache.yaml"),
        Path(platformdirs.user_config_dir("ogpcache")) / "ogpcache.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class CacheSettings(BaseModel):
    db_path: str = _DEFAULT_DB_PATH
    # Lower bound on every entry's lifetime, whatever max-age the origin sends
    min_freshness_seconds: int = Field(default=3600, ge=0)


class FetcherSettings(BaseModel):
    timeout_seconds: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    max_redirects: int = Field(default=5, ge=0)
    max_connections: int = 20
    ssrf_private_ip_check: bool = True


class RendererSettings(BaseModel):
    card_selector: str = ".ogp-card"
    timeout_ms: float = 30_000
    max_scale: int = Field(default=4, ge=1)
    browser_args: list[str] = [
        "--disable-gpu",
        "--no-sandbox",
        "--disable-dev-shm-usage",
    ]


class ImageSettings(BaseModel):
    quality: int = Field(default=100, ge=0, le=100)
    lossless: bool = True


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: OGPCACHE__CACHE__DB_PATH=/tmp/ogp.db
        env_prefix="OGPCACHE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    cache: CacheSettings = CacheSettings()
    fetcher: FetcherSettings = FetcherSettings()
    renderer: RendererSettings = RendererSettings()
    image: ImageSettings = ImageSettings()
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
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
