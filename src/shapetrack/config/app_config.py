"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml,
falling back to built-in defaults. A few database settings can be
overridden through environment variables so deployments do not need
to ship a config file.

Usage:
    from shapetrack.config.app_config import load_app_config

    config = load_app_config()
    pool_size = config.database.pool_size
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")

DEFAULT_SHAPES = ["circle", "square", "triangle", "rectangle"]

# Environment variable -> (section, key, type)
ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "SHAPETRACK_DB_PATH": ("database", "path", str),
    "SHAPETRACK_DB_POOL_SIZE": ("database", "pool_size", int),
    "SHAPETRACK_DB_POOL_TIMEOUT": ("database", "pool_timeout", float),
}


@dataclass
class DatabaseConfig:
    """Connection settings for the SQLite store."""

    path: str = "data/db/shapetrack.db"
    pool_size: int = 10
    pool_timeout: float = 60.0  # seconds to wait for a free connection
    busy_timeout: float = 5.0  # seconds sqlite waits on a locked database


@dataclass
class DashboardConfig:
    """Aggregation and listing defaults."""

    shapes: list[str] = field(default_factory=lambda: list(DEFAULT_SHAPES))
    excellent_threshold: int = 90
    active_threshold: int = 70
    recent_sessions_limit: int = 10
    default_sessions_limit: int = 50


@dataclass
class ServerConfig:
    """Settings for `shapetrack serve`."""

    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class AppConfig:
    """Application-wide configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "database": {
            "path": "data/db/shapetrack.db",
            "pool_size": 10,
            "pool_timeout": 60.0,
            "busy_timeout": 5.0,
        },
        "dashboard": {
            "shapes": list(DEFAULT_SHAPES),
            "excellent_threshold": 90,
            "active_threshold": 70,
            "recent_sessions_limit": 10,
            "default_sessions_limit": 50,
        },
        "server": {
            "host": "127.0.0.1",
            "port": 8000,
        },
    }


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay SHAPETRACK_* environment variables onto parsed config data."""
    for env_name, (section, key, cast) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            value = cast(raw)
        except ValueError:
            logger.warning("invalid_env_override", env=env_name, value=raw)
            continue
        data.setdefault(section, {})[key] = value
        logger.debug("env_override_applied", env=env_name)
    return data


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    db_data = data.get("database") or {}
    database = DatabaseConfig(
        path=str(db_data.get("path", "data/db/shapetrack.db")),
        pool_size=max(1, int(db_data.get("pool_size", 10))),
        pool_timeout=float(db_data.get("pool_timeout", 60.0)),
        busy_timeout=float(db_data.get("busy_timeout", 5.0)),
    )

    dash_data = data.get("dashboard") or {}
    shapes = [str(s).strip().lower() for s in dash_data.get("shapes") or DEFAULT_SHAPES]
    dashboard = DashboardConfig(
        shapes=[s for s in shapes if s],
        excellent_threshold=int(dash_data.get("excellent_threshold", 90)),
        active_threshold=int(dash_data.get("active_threshold", 70)),
        recent_sessions_limit=int(dash_data.get("recent_sessions_limit", 10)),
        default_sessions_limit=int(dash_data.get("default_sessions_limit", 50)),
    )

    server_data = data.get("server") or {}
    server = ServerConfig(
        host=server_data.get("host", "127.0.0.1"),
        port=int(server_data.get("port", 8000)),
    )

    return AppConfig(database=database, dashboard=dashboard, server=server)


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = _parse_config(_apply_env_overrides(data))
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
