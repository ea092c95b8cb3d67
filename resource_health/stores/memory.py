"""Volatile in-process store. Check history is capped, oldest evicted first."""

from __future__ import annotations

import threading
from collections import deque

from resource_health.domain.models import (
    ResourceDescriptor,
    ResourceHealthCheck,
    ResourceHealthStatus,
    utc_now_iso,
)
from resource_health.stores.base import CheckPage, HealthStore, StatusFilters, page_bounds

DEFAULT_MAX_CHECKS = 5000


class MemoryStore(HealthStore):
    def __init__(self, max_checks: int = DEFAULT_MAX_CHECKS) -> None:
        self.max_checks = max_checks
        self._resources: dict[str, ResourceDescriptor] = {}
        self._status: dict[str, ResourceHealthStatus] = {}
        self._checks: deque[ResourceHealthCheck] = deque()  # newest first
        self._lock = threading.Lock()

    # ── Resources ─────────────────────────────────────────────────────────

    def set_resources(self, resources: list[ResourceDescriptor]) -> None:
        with self._lock:
            self._resources = {r.id: r.model_copy(deep=True) for r in resources}

    def list_resources(self) -> list[ResourceDescriptor]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._resources.values()]

    def upsert_resource(self, resource: ResourceDescriptor) -> None:
        with self._lock:
            self._resources[resource.id] = resource.model_copy(deep=True)

    def get_resource(self, resource_id: str) -> ResourceDescriptor | None:
        with self._lock:
            res = self._resources.get(resource_id)
            return res.model_copy(deep=True) if res else None

    def remove_resource(self, resource_id: str) -> None:
        with self._lock:
            self._resources.pop(resource_id, None)
            self._status.pop(resource_id, None)
            self._checks = deque(c for c in self._checks if c.resource_id != resource_id)

    # ── Status ────────────────────────────────────────────────────────────

    def upsert_status(self, status: ResourceHealthStatus) -> None:
        with self._lock:
            self._status[status.resource_id] = status.model_copy(
                deep=True, update={"updated_at": utc_now_iso()},
            )

    def get_status(self, resource_id: str) -> ResourceHealthStatus | None:
        with self._lock:
            st = self._status.get(resource_id)
            return st.model_copy(deep=True) if st else None

    def list_status(self, filters: StatusFilters | None = None) -> list[ResourceHealthStatus]:
        f = filters or StatusFilters()
        wanted_status = f.status_value()
        with self._lock:
            items = list(self._status.values())
            if f.type:
                items = [s for s in items if s.resource_type.value == f.type]
            if f.subtype:
                items = [s for s in items if s.resource_subtype == f.subtype]
            if wanted_status:
                items = [s for s in items if s.current_status.value == wanted_status]
            if f.tag:
                items = [s for s in items if f.tag in self._resource_attr(s.resource_id, "tags", [])]
            if f.owner:
                items = [s for s in items if self._resource_attr(s.resource_id, "owner") == f.owner]
            if f.env:
                items = [s for s in items if self._resource_attr(s.resource_id, "env") == f.env]
            items.sort(key=lambda s: s.resource_id)
            # Most recently checked first; never-checked last
            items.sort(key=lambda s: s.last_check_at or "", reverse=True)
            return [s.model_copy(deep=True) for s in items]

    def _resource_attr(self, resource_id: str, attr: str, default=None):
        res = self._resources.get(resource_id)
        return getattr(res, attr) if res else default

    def increment_failures(self, resource_id: str) -> None:
        with self._lock:
            st = self._status.get(resource_id)
            if st:
                self._status[resource_id] = st.model_copy(
                    update={"consecutive_failures": st.consecutive_failures + 1},
                )

    def reset_failures(self, resource_id: str) -> None:
        with self._lock:
            st = self._status.get(resource_id)
            if st:
                self._status[resource_id] = st.model_copy(update={"consecutive_failures": 0})

    # ── Checks ────────────────────────────────────────────────────────────

    def add_check(self, check: ResourceHealthCheck) -> None:
        with self._lock:
            self._checks.appendleft(check.model_copy(deep=True))
            while len(self._checks) > self.max_checks:
                self._checks.pop()

    def list_checks(self, resource_id: str, limit: int = 20, offset: int = 0) -> CheckPage:
        limit, offset = page_bounds(limit, offset)
        with self._lock:
            items = [c for c in self._checks if c.resource_id == resource_id]
        return CheckPage(
            items=[c.model_copy(deep=True) for c in items[offset:offset + limit]],
            total=len(items),
        )

    def get_check(self, check_id: str) -> ResourceHealthCheck | None:
        with self._lock:
            found = next((c for c in self._checks if c.id == check_id), None)
            return found.model_copy(deep=True) if found else None
