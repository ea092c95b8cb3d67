"""Read-through caching in front of a persistent health store.

``CachedStore`` wraps any ``HealthStore``: resource and status reads go
through a cache keyed by record id, each write invalidates the key it
touches, and a backend failure clears every cached record before the
``StoreError`` reaches the caller.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar

from resource_health.domain.models import (
    ResourceDescriptor,
    ResourceHealthCheck,
    ResourceHealthStatus,
)
from resource_health.stores.base import CheckPage, HealthStore, StatusFilters, StoreError

logger = logging.getLogger(__name__)

V = TypeVar("V")


class ReadThroughCache(Generic[V]):
    """Thread-safe id → record map. A disabled cache never holds anything."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._items: dict[str, V] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> V | None:
        if not self.enabled:
            return None
        with self._lock:
            return self._items.get(key)

    def put(self, key: str, value: V) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._items[key] = value

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class CachedStore(HealthStore):
    """Cache layer over ``inner``. Check history and listings are not cached."""

    def __init__(self, inner: HealthStore, enabled: bool = True) -> None:
        self.inner = inner
        self.resource_cache: ReadThroughCache[ResourceDescriptor] = ReadThroughCache(enabled)
        self.status_cache: ReadThroughCache[ResourceHealthStatus] = ReadThroughCache(enabled)
        # Held across load-then-put and invalidate-then-write.
        self._lock = threading.RLock()

    def invalidate_cache(self) -> None:
        self.resource_cache.clear()
        self.status_cache.clear()

    @contextmanager
    def _backend(self) -> Iterator[HealthStore]:
        with self._lock:
            try:
                yield self.inner
            except StoreError:
                logger.warning("Store failure, dropping cached records")
                self.invalidate_cache()
                raise

    def _read(self, cache: ReadThroughCache[V], key: str, load: Callable[[str], V | None]) -> V | None:
        with self._backend():
            value = cache.get(key)
            if value is None:
                value = load(key)
                if value is not None:
                    cache.put(key, value)
        return value.model_copy(deep=True) if value is not None else None

    # ── Resources ─────────────────────────────────────────────────────────

    def set_resources(self, resources: list[ResourceDescriptor]) -> None:
        with self._backend() as inner:
            self.resource_cache.clear()
            inner.set_resources(resources)

    def list_resources(self) -> list[ResourceDescriptor]:
        with self._backend() as inner:
            return inner.list_resources()

    def upsert_resource(self, resource: ResourceDescriptor) -> None:
        with self._backend() as inner:
            self.resource_cache.invalidate(resource.id)
            inner.upsert_resource(resource)

    def get_resource(self, resource_id: str) -> ResourceDescriptor | None:
        return self._read(self.resource_cache, resource_id, self.inner.get_resource)

    def remove_resource(self, resource_id: str) -> None:
        with self._backend() as inner:
            self.resource_cache.invalidate(resource_id)
            self.status_cache.invalidate(resource_id)
            inner.remove_resource(resource_id)

    # ── Status ────────────────────────────────────────────────────────────

    def upsert_status(self, status: ResourceHealthStatus) -> None:
        with self._backend() as inner:
            self.status_cache.invalidate(status.resource_id)
            inner.upsert_status(status)

    def get_status(self, resource_id: str) -> ResourceHealthStatus | None:
        return self._read(self.status_cache, resource_id, self.inner.get_status)

    def list_status(self, filters: StatusFilters | None = None) -> list[ResourceHealthStatus]:
        with self._backend() as inner:
            return inner.list_status(filters)

    def increment_failures(self, resource_id: str) -> None:
        with self._backend() as inner:
            self.status_cache.invalidate(resource_id)
            inner.increment_failures(resource_id)

    def reset_failures(self, resource_id: str) -> None:
        with self._backend() as inner:
            self.status_cache.invalidate(resource_id)
            inner.reset_failures(resource_id)

    # ── Checks ────────────────────────────────────────────────────────────

    def add_check(self, check: ResourceHealthCheck) -> None:
        with self._backend() as inner:
            inner.add_check(check)

    def list_checks(self, resource_id: str, limit: int = 20, offset: int = 0) -> CheckPage:
        with self._backend() as inner:
            return inner.list_checks(resource_id, limit, offset)

    def get_check(self, check_id: str) -> ResourceHealthCheck | None:
        with self._backend() as inner:
            return inner.get_check(check_id)

    def close(self) -> None:
        self.inner.close()
        self.invalidate_cache()
