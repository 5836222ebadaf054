"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads the
server's startup options from environment variables or a .env file, and
turns them into the ordered list of assembly options consumed by
tileserver.core.options.assemble.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from tileserver.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.port)

    Environment variables can override defaults:
        >>> CONFIG_FILE=/etc/tileserver/layers.yml
        >>> CACHE_SERVER=redis:6379
        >>> CACHE_TTL=5m
        >>> ZOOM_RANGES='{"buildings": "12-18"}'
"""

from __future__ import annotations

import functools
import pathlib

import pydantic_settings

from tileserver.core import options


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    Attributes:
        port: Port used for serving tiles.
        internal_port: Port used for administrative endpoints.
        enable_cors: Serve CORS headers.
        simplify_shapes: Simplify geometries by zoom level.
        cache_control: Fixed Cache-Control header value ("" to omit).
        cache_server: Redis ``host:port`` ("" keeps the config file's cache).
        cache_ttl: Cache time-to-live, e.g. ``"30s"`` ("" leaves it unset).
        es_host: Elasticsearch ``host:port`` ("" disables search).
        es_mappings: Index name -> geometry field name.
        zoom_ranges: Feature type -> ``"<min>"`` or ``"<min>-<max>"``.
        config_file: YAML layer configuration document.
        log_level: Root log level name.
        log_json: Emit JSON log records.
    """

    port: int = 3000
    internal_port: int = 3001
    enable_cors: bool = False
    simplify_shapes: bool = False
    cache_control: str = ""
    cache_server: str = ""
    cache_ttl: str = ""
    es_host: str = ""
    es_mappings: dict[str, str] = {}
    zoom_ranges: dict[str, str] = {}
    config_file: pathlib.Path | None = None
    log_level: str = "INFO"
    log_json: bool = False

    model_config = pydantic_settings.SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@functools.lru_cache
def get_settings() -> Settings:
    """Get the cached settings instance.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the application.
    """
    return Settings()


def build_options(settings: Settings) -> list[options.ConfigOption]:
    """Translate settings into assembly options, in application order.

    The configuration document comes first so that an explicit cache server
    setting overrides the document's cache section.
    """
    opts: list[options.ConfigOption] = []
    if settings.config_file is not None:
        opts.append(options.ConfigFile(settings.config_file))
    opts.append(options.Port(settings.port))
    opts.append(options.InternalPort(settings.internal_port))
    if settings.enable_cors:
        opts.append(options.EnableCORS())
    if settings.simplify_shapes:
        opts.append(options.SimplifyShapes())
    if settings.cache_control:
        opts.append(options.CacheControl(settings.cache_control))
    opts.append(options.CacheServer(settings.cache_server))
    opts.append(options.CacheTTL(settings.cache_ttl))
    if settings.es_host:
        opts.append(options.SearchHost(settings.es_host))
    if settings.es_mappings:
        opts.append(options.SearchMappings(settings.es_mappings))
    if settings.zoom_ranges:
        opts.append(options.ZoomRanges(settings.zoom_ranges))
    return opts
