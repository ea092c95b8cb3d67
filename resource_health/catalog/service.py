"""Local resource catalog: loads the YAML catalog file and keeps it in sync.

Entries are either written by hand (``manual``) or imported from the
registry (``registry_snapshot``). Implements the same provider contract as
the registry client so the scheduler and the check service can use either.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from resource_health.catalog.registry_client import ResourceRegistryClient
from resource_health.domain.models import CatalogSource, ResourceDescriptor, utc_now_iso

logger = logging.getLogger(__name__)


class CatalogService:
    """YAML-file catalog of monitored resources."""

    def __init__(self, path: Path | str, registry_client: ResourceRegistryClient | None = None) -> None:
        self._path = Path(path)
        self._registry = registry_client
        self._entries: list[ResourceDescriptor] = []
        self._loaded = False
        self._lock = threading.RLock()

    def load(self, force: bool = False) -> list[ResourceDescriptor]:
        """Parse the catalog file. A missing or broken file means an empty catalog."""
        with self._lock:
            if self._loaded and not force:
                return list(self._entries)

            self._entries = []
            self._loaded = True
            if not self._path.exists():
                logger.warning("Catalog file not found: %s", self._path)
                return []

            try:
                raw = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.error("Failed to parse %s: %s", self._path, e)
                return []

            for entry in raw.get("resources") or []:
                try:
                    self._entries.append(ResourceDescriptor.model_validate(entry))
                except ValidationError as e:
                    logger.warning("Skipping malformed catalog entry: %s", e)

            logger.info("Loaded %d resources from catalog", len(self._entries))
            return list(self._entries)

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"resources": [r.model_dump(mode="json", exclude_none=True) for r in self._entries]}
        self._path.write_text(
            yaml.safe_dump(payload, allow_unicode=True, sort_keys=False, default_flow_style=False),
            encoding="utf-8",
        )

    # ── Queries ───────────────────────────────────────────────────────────

    def list(self) -> list[ResourceDescriptor]:
        return [r.model_copy(deep=True) for r in self.load()]

    def get(self, resource_id: str) -> ResourceDescriptor | None:
        found = next((r for r in self.load() if r.id == resource_id), None)
        return found.model_copy(deep=True) if found else None

    # Provider contract

    def list_resources(self, force_refresh: bool = False) -> list[ResourceDescriptor]:
        if force_refresh:
            self.load(force=True)
        return self.list()

    def get_resource(self, resource_id: str) -> ResourceDescriptor | None:
        return self.get(resource_id)

    # ── Mutations ─────────────────────────────────────────────────────────

    def upsert(self, entry: dict[str, Any], source: CatalogSource = CatalogSource.MANUAL) -> ResourceDescriptor:
        """Merge ``entry`` over the existing resource with the same id.

        Raises ``ValueError`` when the id is missing, ``ValidationError`` when
        the merged entry is not a valid resource.
        """
        resource_id = str(entry.get("id") or "").strip()
        if not resource_id:
            raise ValueError("Resource 'id' is required")

        with self._lock:
            self.load()
            idx = next((i for i, r in enumerate(self._entries) if r.id == resource_id), None)
            base: dict[str, Any] = (
                self._entries[idx].model_dump(mode="json")
                if idx is not None
                else {"name": "unknown", "type": "http_service", "enabled": True}
            )
            base.update({k: v for k, v in entry.items() if v is not None})

            now = utc_now_iso()
            base["id"] = resource_id
            base["source"] = source.value
            base["updated_at"] = now
            if source == CatalogSource.REGISTRY_SNAPSHOT:
                base["synced_at"] = now

            merged = ResourceDescriptor.model_validate(base)
            if idx is None:
                self._entries.append(merged)
            else:
                self._entries[idx] = merged
            self._persist()

        logger.info("Upserted catalog resource '%s' (%s)", resource_id, source.value)
        return merged.model_copy(deep=True)

    def delete(self, resource_id: str) -> bool:
        with self._lock:
            self.load()
            before = len(self._entries)
            self._entries = [r for r in self._entries if r.id != resource_id]
            if len(self._entries) == before:
                return False
            self._persist()
        logger.info("Deleted catalog resource '%s'", resource_id)
        return True

    def import_from_registry(self) -> int:
        """Snapshot every registry resource into the catalog."""
        if self._registry is None:
            raise RuntimeError("No registry client configured")
        resources = self._registry.list_resources(force_refresh=True)
        for res in resources:
            self.upsert(res.model_dump(mode="json", exclude_none=True), CatalogSource.REGISTRY_SNAPSHOT)
        logger.info("Catalog imported %d resources from registry", len(resources))
        return len(resources)

    def ensure_seeded(self) -> int:
        """Import from the registry when the catalog is empty."""
        if self.load() or self._registry is None:
            return 0
        return self.import_from_registry()
