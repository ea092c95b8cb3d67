"""httpx-based client for the external resource registry.

Listing is cached for ``cache_seconds``. Upstream failures are logged and
answered with the last known good list, so callers never stall on an
unavailable registry.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
from pydantic import ValidationError

from resource_health.domain.models import CatalogSource, HealthPolicy, ResourceDescriptor

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Raised internally when the registry returns an error."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Registry error {status_code}: {detail}")


class ResourceRegistryClient:
    """Synchronous httpx client for the resource registry API."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        cache_seconds: int = 30,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._cache_seconds = cache_seconds
        self._timeout = timeout
        self._transport = transport
        self._cache: list[ResourceDescriptor] | None = None
        self._fetched_at = 0.0

    @property
    def _headers(self) -> dict[str, str]:
        h = {"Accept": "application/json"}
        if self._api_key:
            h["X-Internal-Api-Key"] = self._api_key
        return h

    def _get(self, path: str, params: dict[str, str] | None = None) -> Any:
        """GET a registry path and return the decoded JSON body."""
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            resp = client.get(f"{self._base_url}{path}", headers=self._headers, params=params)
        if resp.status_code >= 400:
            raise RegistryError(resp.status_code, resp.text[:200])
        return resp.json()

    # ── Public API ────────────────────────────────────────────────────────

    def list_resources(self, force_refresh: bool = False) -> list[ResourceDescriptor]:
        fresh = time.monotonic() - self._fetched_at < self._cache_seconds
        if self._cache is not None and fresh and not force_refresh:
            return list(self._cache)

        try:
            raw = self._get("/resource-registry/resources", params={"enabled": "true"})
        except (httpx.HTTPError, RegistryError, ValueError) as e:
            logger.warning("Registry unavailable, serving last known resources: %s", e)
            return list(self._cache or [])

        items: list[ResourceDescriptor] = []
        for entry in raw if isinstance(raw, list) else []:
            res = _parse_resource(entry)
            if res is None:
                continue
            if res.policy is None:
                res.policy = self.get_health_policy(res.id)
            items.append(res)

        self._cache = items
        self._fetched_at = time.monotonic()
        logger.info("Loaded %d resources from registry", len(items))
        return list(items)

    def get_health_policy(self, resource_id: str) -> HealthPolicy | None:
        try:
            raw = self._get(f"/resource-registry/resources/{resource_id}/health-policy")
            return HealthPolicy.model_validate(raw)
        except RegistryError as e:
            logger.warning("Policy fetch for %s returned %d", resource_id, e.status_code)
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error("Failed to fetch health policy for %s: %s", resource_id, e)
        return None

    def get_resource(self, resource_id: str) -> ResourceDescriptor | None:
        found = next((r for r in self.list_resources() if r.id == resource_id), None)
        if found:
            return found

        try:
            raw = self._get(f"/resource-registry/resources/{resource_id}")
        except (httpx.HTTPError, RegistryError, ValueError) as e:
            logger.error("Failed to fetch resource %s directly: %s", resource_id, e)
            return None

        res = _parse_resource(raw)
        if res is not None and res.policy is None:
            res.policy = self.get_health_policy(resource_id)
        return res


def _parse_resource(entry: Any) -> ResourceDescriptor | None:
    try:
        res = ResourceDescriptor.model_validate(entry)
    except ValidationError as e:
        logger.warning("Skipping malformed registry entry: %s", e)
        return None
    res.source = CatalogSource.REGISTRY_SNAPSHOT
    return res
