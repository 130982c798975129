from __future__ import annotations

"""Runtime configuration helpers for CouchPlan.

This module centralizes environment-driven settings so that the database, the
catalog provider and the dashboard window can be controlled without code
changes. Defaults favor a local SQLite file so the service runs out of the box.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache


logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Application settings derived from environment variables."""

    database_url: str
    tmdb_api_key: str | None
    tmdb_base_url: str
    catalog_timeout_seconds: float
    schedule_window_days: int
    debug_enabled: bool


def _env_flag(name: str, default: bool = False) -> bool:
    """Return a boolean flag controlled by an environment variable."""

    raw_value = os.getenv(name)
    if raw_value is None:
        return default

    return raw_value.strip().lower() in {"1", "true", "yes", "on", "y"}


def _env_number(name: str, default: float) -> float:
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        return float(raw_value)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %s", name, raw_value, default)
        return default


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment with sensible defaults."""

    settings = Settings(
        database_url=os.getenv("COUCHPLAN_DATABASE_URL", "sqlite:///couchplan.db"),
        tmdb_api_key=os.getenv("TMDB_API_KEY"),
        tmdb_base_url=os.getenv("TMDB_BASE_URL", "https://api.themoviedb.org/3"),
        catalog_timeout_seconds=_env_number("COUCHPLAN_CATALOG_TIMEOUT", 10.0),
        schedule_window_days=int(_env_number("COUCHPLAN_SCHEDULE_DAYS", 14)),
        debug_enabled=_env_flag("COUCHPLAN_DEBUG", False),
    )
    logger.info(
        "Loaded settings: database=%s catalog=%s timeout=%ss window=%s debug=%s",
        settings.database_url,
        settings.tmdb_base_url,
        settings.catalog_timeout_seconds,
        settings.schedule_window_days,
        settings.debug_enabled,
    )
    return settings
