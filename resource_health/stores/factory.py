"""Build the health store once at startup from settings."""

from __future__ import annotations

import logging

from resource_health.config import Settings
from resource_health.stores.base import HealthStore, StoreError
from resource_health.stores.cache import CachedStore
from resource_health.stores.memory import MemoryStore
from resource_health.stores.sqlite import SQLiteStore

logger = logging.getLogger(__name__)


def create_store(cfg: Settings) -> HealthStore:
    """Cached SQLite when ``database_url`` is set and opens cleanly, memory otherwise."""
    if cfg.database_url:
        try:
            backend = SQLiteStore(cfg.database_url)
        except (StoreError, OSError) as e:
            logger.error("Failed to open SQLite store (%s), falling back to MemoryStore", e)
        else:
            logger.info("Using SQLiteStore (cache=%s)", cfg.database_cache_enabled)
            return CachedStore(backend, enabled=cfg.database_cache_enabled)

    logger.info("Using MemoryStore (max_checks=%d)", cfg.memory_max_checks)
    return MemoryStore(max_checks=cfg.memory_max_checks)
