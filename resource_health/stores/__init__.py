"""Health store: one contract, memory and SQLite backends, optional cache layer."""

from .base import CheckPage, HealthStore, StatusFilters, StoreError
from .cache import CachedStore
from .factory import create_store
from .memory import MemoryStore
from .sqlite import SQLiteStore
