from __future__ import annotations

from typing import Protocol

from resource_health.domain.models import ResourceDescriptor


class ResourceProvider(Protocol):
    """Source of truth for which resources exist (registry or local catalog).

    Implementations cache their listing and never raise on upstream failure:
    they serve the last known good list instead.
    """

    def list_resources(self, force_refresh: bool = False) -> list[ResourceDescriptor]: ...

    def get_resource(self, resource_id: str) -> ResourceDescriptor | None: ...
