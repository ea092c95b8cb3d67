"""Tests for the FastAPI routes."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from resource_health.api.server import API_PREFIX, create_app
from resource_health.catalog.service import CatalogService
from resource_health.config import Settings
from resource_health.health.service import HealthService
from resource_health.stores.memory import MemoryStore
from tests.conftest import FakeCollector, rule

RESOURCES = [
    {
        "id": "api-1",
        "name": "Public API",
        "type": "http_service",
        "owner": "team-a",
        "tags": ["core"],
        "connection": {"endpoint": "https://api.internal/health"},
        "policy": {
            "policy_id": "p-1",
            "rules": [
                rule("status_ok", "status_code", "==", 200),
                rule("fast", "response_time_ms", "<", 500, on_fail="DEGRADED"),
            ],
        },
    },
    {"id": "db-1", "name": "Main DB", "type": "database", "policy": {"enabled": False}},
]


def build_app(tmp_path, metrics=None, api_key=""):
    app = create_app(Settings(internal_api_key=api_key, default_locale="pt-BR"))
    catalog = CatalogService(tmp_path / "catalog.yaml")
    for entry in RESOURCES:
        catalog.upsert(entry)
    store = MemoryStore()
    app.state.catalog = catalog
    app.state.health_store = store
    app.state.health_service = HealthService(
        store=store,
        catalog=catalog,
        collector=FakeCollector(metrics or {"status_code": 200, "response_time_ms": 900}),
    )
    return app


@pytest.fixture
def client(tmp_path):
    return TestClient(build_app(tmp_path))


def url(path: str) -> str:
    return f"{API_PREFIX}{path}"


class TestChecks:
    def test_trigger_check(self, client) -> None:
        resp = client.post(url("/check/api-1"))
        assert resp.status_code == 202
        data = resp.json()
        assert data["resource_id"] == "api-1"
        assert data["final_status"] == "DEGRADED"
        assert data["check_id"]

        check = client.get(url(f"/checks/{data['check_id']}")).json()
        assert check["rule_evaluations"]["fast"]["passed"] is False
        assert check["execution_type"] == "MANUAL"

    def test_trigger_unknown_resource(self, client) -> None:
        resp = client.post(url("/check/nope"))
        assert resp.status_code == 404
        assert resp.json() == {"code": "RESOURCE_NOT_FOUND"}

    def test_trigger_disabled_policy(self, client) -> None:
        resp = client.post(url("/check/db-1"))
        assert resp.status_code == 409
        assert resp.json() == {"code": "POLICY_DISABLED"}

    def test_disabling_policy_keeps_last_status(self, client) -> None:
        client.post(url("/check/api-1"))
        before = client.get(url("/status/api-1")).json()

        client.patch(url("/catalog/api-1"), json={"policy": {"enabled": False}})
        resp = client.post(url("/check/api-1"))
        assert resp.status_code == 409

        assert client.get(url("/status/api-1")).json() == before
        assert client.get(url("/history/api-1")).json()["paging"]["total"] == 1

    def test_unexpected_error_is_500(self, client) -> None:
        service = client.app.state.health_service
        with patch.object(service, "run_check", side_effect=RuntimeError("disk full")):
            resp = client.post(url("/check/api-1"))
        assert resp.status_code == 500
        assert resp.json() == {"code": "INTERNAL_ERROR"}

    def test_unknown_check(self, client) -> None:
        resp = client.get(url("/checks/missing"))
        assert resp.status_code == 404
        assert resp.json() == {"code": "CHECK_NOT_FOUND"}

    def test_history_paging(self, client) -> None:
        for _ in range(3):
            client.post(url("/check/api-1"))
        data = client.get(url("/history/api-1?limit=2&offset=0")).json()
        assert len(data["items"]) == 2
        assert data["paging"] == {"limit": 2, "offset": 0, "total": 3}

    @pytest.mark.parametrize("query", ["limit=-1", "limit=0", "offset=-1", "limit=abc"])
    def test_history_rejects_bad_paging(self, client, query) -> None:
        client.post(url("/check/api-1"))
        assert client.get(url(f"/history/api-1?{query}")).status_code == 422

    @pytest.mark.parametrize("query", ["limit=-1", "offset=-3"])
    def test_status_list_rejects_bad_paging(self, client, query) -> None:
        assert client.get(url(f"/status?{query}")).status_code == 422


class TestStatus:
    def test_status_localized(self, client) -> None:
        client.post(url("/check/api-1"))
        pt = client.get(url("/status/api-1")).json()
        assert pt["current_status"] == "DEGRADED"
        assert pt["summary"]["message"] == "Recurso degradado"
        assert pt["summary"]["primary_cause"] == "fast"

        en = client.get(url("/status/api-1"), headers={"Accept-Language": "en-US,en;q=0.8"}).json()
        assert en["summary"]["message"] == "Resource degraded"

        unknown = client.get(url("/status/api-1"), headers={"Accept-Language": "fr-FR"}).json()
        assert unknown["summary"]["message"] == "Recurso degradado"

    def test_status_not_found(self, client) -> None:
        assert client.get(url("/status/api-1")).status_code == 404

    def test_status_list_filters(self, client) -> None:
        client.post(url("/check/api-1"))
        assert client.get(url("/status")).json()["paging"]["total"] == 1
        assert client.get(url("/status?status=DEGRADED&tag=core")).json()["paging"]["total"] == 1
        assert client.get(url("/status?owner=team-b")).json()["items"] == []
        assert client.get(url("/status?type=database")).json()["items"] == []

    def test_metric_schema(self, client) -> None:
        data = client.get(url("/schema/metrics")).json()
        types = {entry["resourceType"] for entry in data["catalogByResourceType"]}
        assert types == {"database", "cache_queue", "http_service", "llm_provider", "vector_db"}


class TestCatalogRoutes:
    def test_list(self, client) -> None:
        ids = [r["id"] for r in client.get(url("/catalog")).json()["items"]]
        assert ids == ["api-1", "db-1"]
        assert client.get(url("/resources")).json()["source"] == "catalog"

    def test_create_and_get(self, client) -> None:
        resp = client.post(url("/catalog"), json={"id": "q-1", "name": "Queue", "type": "cache_queue"})
        assert resp.status_code == 201
        assert resp.json()["source"] == "manual"
        assert client.get(url("/catalog/q-1")).json()["name"] == "Queue"

    def test_create_requires_fields(self, client) -> None:
        resp = client.post(url("/catalog"), json={"id": "q-1"})
        assert resp.status_code == 400
        assert resp.json() == {"code": "INVALID_BODY"}

    def test_patch(self, client) -> None:
        resp = client.patch(url("/catalog/api-1"), json={"owner": "team-z"})
        assert resp.status_code == 200
        assert resp.json()["owner"] == "team-z"
        assert client.patch(url("/catalog/ghost"), json={}).status_code == 404

    def test_delete(self, client) -> None:
        client.post(url("/check/api-1"))
        assert client.delete(url("/catalog/api-1")).status_code == 204
        assert client.get(url("/catalog/api-1")).status_code == 404
        assert client.get(url("/status/api-1")).status_code == 404
        assert client.delete(url("/catalog/api-1")).status_code == 404

    def test_import_without_registry(self, client) -> None:
        resp = client.post(url("/catalog/import"))
        assert resp.status_code == 500
        assert resp.json() == {"code": "IMPORT_FAILED"}


class TestServer:
    def test_healthz(self, client) -> None:
        assert client.get("/healthz").json() == {"status": "ok", "service": "resource-health-checker"}

    def test_api_key_required(self, tmp_path) -> None:
        client = TestClient(build_app(tmp_path, api_key="k3y"))
        assert client.get(url("/catalog")).status_code == 401
        assert client.get(url("/catalog"), headers={"X-Internal-Api-Key": "k3y"}).status_code == 200
        assert client.get("/healthz").status_code == 200
