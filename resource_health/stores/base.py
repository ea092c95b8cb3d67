"""Storage contract shared by the memory and SQLite backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from resource_health.domain.models import (
    HealthStatus,
    ResourceDescriptor,
    ResourceHealthCheck,
    ResourceHealthStatus,
)


class StoreError(Exception):
    """Raised when the persistent backend fails."""


@dataclass
class StatusFilters:
    """Conjunction of optional predicates for ``list_status``."""

    type: str | None = None
    subtype: str | None = None
    status: HealthStatus | str | None = None
    tag: str | None = None
    owner: str | None = None
    env: str | None = None

    def status_value(self) -> str | None:
        if self.status is None:
            return None
        return self.status.value if isinstance(self.status, HealthStatus) else str(self.status)


@dataclass
class CheckPage:
    items: list[ResourceHealthCheck] = field(default_factory=list)
    total: int = 0


def page_bounds(limit: int, offset: int) -> tuple[int, int]:
    """Clamp paging so every backend reads the same window: negatives become 0."""
    return max(limit, 0), max(offset, 0)


class HealthStore(ABC):
    """Resources, current status per resource, and check history."""

    # Resources

    @abstractmethod
    def set_resources(self, resources: list[ResourceDescriptor]) -> None:
        """Replace the working resource snapshot."""

    @abstractmethod
    def list_resources(self) -> list[ResourceDescriptor]: ...

    @abstractmethod
    def upsert_resource(self, resource: ResourceDescriptor) -> None: ...

    @abstractmethod
    def get_resource(self, resource_id: str) -> ResourceDescriptor | None: ...

    @abstractmethod
    def remove_resource(self, resource_id: str) -> None:
        """Drop a resource together with its status and check history."""

    # Status

    @abstractmethod
    def upsert_status(self, status: ResourceHealthStatus) -> None: ...

    @abstractmethod
    def get_status(self, resource_id: str) -> ResourceHealthStatus | None: ...

    @abstractmethod
    def list_status(self, filters: StatusFilters | None = None) -> list[ResourceHealthStatus]:
        """Matching statuses, most recently checked first, then by resource id."""

    @abstractmethod
    def increment_failures(self, resource_id: str) -> None: ...

    @abstractmethod
    def reset_failures(self, resource_id: str) -> None: ...

    # Check history

    @abstractmethod
    def add_check(self, check: ResourceHealthCheck) -> None: ...

    @abstractmethod
    def list_checks(self, resource_id: str, limit: int = 20, offset: int = 0) -> CheckPage:
        """Checks for one resource, most recent first.

        Negative ``limit`` or ``offset`` is treated as 0.
        """

    @abstractmethod
    def get_check(self, check_id: str) -> ResourceHealthCheck | None: ...

    def close(self) -> None:
        pass
