"""Configuration package for shapetrack."""

from shapetrack.config.app_config import (
    AppConfig,
    DashboardConfig,
    DatabaseConfig,
    ServerConfig,
    clear_config_cache,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "DashboardConfig",
    "DatabaseConfig",
    "ServerConfig",
    "clear_config_cache",
    "load_app_config",
]
