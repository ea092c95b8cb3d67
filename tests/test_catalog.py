"""Tests for the YAML catalog and the resource registry client."""

from __future__ import annotations

import httpx
import pytest
import yaml

from resource_health.catalog.registry_client import ResourceRegistryClient
from resource_health.catalog.service import CatalogService
from resource_health.domain.models import CatalogSource, ResourceType
from tests.conftest import json_transport

BASE = "http://registry/api/v1/orchestrator"
LIST_PATH = "/api/v1/orchestrator/resource-registry/resources"

POLICY = {
    "policy_id": "p-1",
    "enabled": True,
    "schedule": {"type": "INTERVAL", "value": "PT5M"},
    "rules": [{"rule_id": "r1", "metric": "status_code", "operator": "==", "threshold": 200}],
}


def registry(transport, cache_seconds=30) -> ResourceRegistryClient:
    return ResourceRegistryClient(BASE, api_key="secret", cache_seconds=cache_seconds, transport=transport)


def write_catalog(path, resources) -> None:
    path.write_text(yaml.safe_dump({"resources": resources}), encoding="utf-8")


class TestCatalogService:
    def test_missing_file_is_empty(self, tmp_path) -> None:
        assert CatalogService(tmp_path / "none.yaml").list() == []

    def test_load_skips_malformed(self, tmp_path) -> None:
        path = tmp_path / "catalog.yaml"
        write_catalog(path, [
            {"id": "api-1", "name": "API", "type": "http_service", "policy": POLICY},
            {"id": "bad", "type": "mainframe"},
        ])
        catalog = CatalogService(path)
        items = catalog.list()
        assert [r.id for r in items] == ["api-1"]
        assert catalog.get_resource("api-1").policy.schedule.value == "PT5M"
        assert catalog.get("bad") is None

    def test_broken_yaml(self, tmp_path) -> None:
        path = tmp_path / "catalog.yaml"
        path.write_text("resources: [unclosed", encoding="utf-8")
        assert CatalogService(path).list() == []

    def test_upsert_merges_and_persists(self, tmp_path) -> None:
        path = tmp_path / "catalog.yaml"
        catalog = CatalogService(path)
        created = catalog.upsert({"id": "db-1", "name": "Main DB", "type": "database", "tags": ["core"]})
        assert created.source == CatalogSource.MANUAL
        assert created.updated_at is not None
        assert created.synced_at is None

        updated = catalog.upsert({"id": "db-1", "owner": "team-data"})
        assert updated.name == "Main DB"
        assert updated.owner == "team-data"
        assert updated.tags == ["core"]

        reloaded = CatalogService(path).get("db-1")
        assert reloaded.type == ResourceType.DATABASE
        assert reloaded.owner == "team-data"

    def test_upsert_requires_id(self, tmp_path) -> None:
        with pytest.raises(ValueError):
            CatalogService(tmp_path / "c.yaml").upsert({"name": "x"})

    def test_delete(self, tmp_path) -> None:
        catalog = CatalogService(tmp_path / "c.yaml")
        catalog.upsert({"id": "a", "name": "A", "type": "http_service"})
        assert catalog.delete("a") is True
        assert catalog.delete("a") is False
        assert catalog.list() == []

    def test_import_from_registry(self, tmp_path) -> None:
        transport = json_transport({
            LIST_PATH: (200, [{"id": "svc-1", "name": "Svc", "type": "http_service", "policy": POLICY}]),
        })
        catalog = CatalogService(tmp_path / "c.yaml", registry(transport))
        assert catalog.ensure_seeded() == 1
        res = catalog.get("svc-1")
        assert res.source == CatalogSource.REGISTRY_SNAPSHOT
        assert res.synced_at is not None
        assert catalog.ensure_seeded() == 0

    def test_import_without_registry(self, tmp_path) -> None:
        with pytest.raises(RuntimeError):
            CatalogService(tmp_path / "c.yaml").import_from_registry()


class TestRegistryClient:
    def test_lists_and_fetches_missing_policy(self) -> None:
        seen = []

        def handler(request):
            seen.append((request.url.path, request.headers.get("x-internal-api-key")))
            if request.url.path == LIST_PATH:
                assert request.url.params["enabled"] == "true"
                return httpx.Response(200, json=[
                    {"id": "a", "name": "A", "type": "http_service"},
                    {"id": "broken"},
                ])
            if request.url.path == f"{LIST_PATH}/a/health-policy":
                return httpx.Response(200, json=POLICY)
            return httpx.Response(404)

        items = registry(httpx.MockTransport(handler)).list_resources()
        assert [r.id for r in items] == ["a"]
        assert items[0].policy.policy_id == "p-1"
        assert items[0].source == CatalogSource.REGISTRY_SNAPSHOT
        assert all(key == "secret" for _, key in seen)

    def test_cache_within_window(self) -> None:
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(200, json=[{"id": "a", "type": "http_service", "policy": POLICY}])

        client = registry(httpx.MockTransport(handler))
        client.list_resources()
        client.list_resources()
        assert calls == [LIST_PATH]
        client.list_resources(force_refresh=True)
        assert calls == [LIST_PATH, LIST_PATH]

    def test_failure_serves_last_known_good(self) -> None:
        state = {"fail": False}

        def handler(request):
            if state["fail"]:
                return httpx.Response(502, text="bad gateway")
            return httpx.Response(200, json=[{"id": "a", "type": "http_service", "policy": POLICY}])

        client = registry(httpx.MockTransport(handler), cache_seconds=0)
        assert [r.id for r in client.list_resources()] == ["a"]
        state["fail"] = True
        assert [r.id for r in client.list_resources()] == ["a"]

    def test_failure_without_cache_is_empty(self) -> None:
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert registry(httpx.MockTransport(handler)).list_resources() == []

    def test_get_resource_direct_fallback(self) -> None:
        transport = json_transport({
            LIST_PATH: (200, []),
            f"{LIST_PATH}/x": (200, {"id": "x", "type": "vector_db"}),
            f"{LIST_PATH}/x/health-policy": (200, POLICY),
        })
        res = registry(transport).get_resource("x")
        assert res.type == ResourceType.VECTOR_DB
        assert res.policy is not None

    def test_get_resource_not_found(self) -> None:
        transport = json_transport({LIST_PATH: (200, [])})
        assert registry(transport).get_resource("ghost") is None
