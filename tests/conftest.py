"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

from resource_health.domain.models import (
    HealthPolicy,
    MetricCollectorResult,
    ResourceDescriptor,
)
from resource_health.stores.cache import CachedStore
from resource_health.stores.memory import MemoryStore
from resource_health.stores.sqlite import SQLiteStore


def make_policy(rules: list[dict[str, Any]] | None = None, **overrides: Any) -> HealthPolicy:
    data: dict[str, Any] = {
        "policy_id": "pol-1",
        "enabled": True,
        "schedule": {"type": "INTERVAL", "value": "PT10M"},
        "rules": rules or [],
    }
    data.update(overrides)
    return HealthPolicy.model_validate(data)


def make_resource(
    resource_id: str = "api-1",
    type: str = "http_service",
    rules: list[dict[str, Any]] | None = None,
    policy: HealthPolicy | None | bool = True,
    **overrides: Any,
) -> ResourceDescriptor:
    """Resource with an enabled policy unless ``policy`` says otherwise."""
    data: dict[str, Any] = {
        "id": resource_id,
        "name": f"Resource {resource_id}",
        "type": type,
        "connection": {"endpoint": f"https://{resource_id}.internal/health"},
    }
    data.update(overrides)
    res = ResourceDescriptor.model_validate(data)
    if policy is True:
        res.policy = make_policy(rules)
    elif policy is not False:
        res.policy = policy
    return res


def rule(rule_id: str, metric: str, operator: str, threshold: Any = None, on_fail: str = "DOWN") -> dict[str, Any]:
    return {
        "rule_id": rule_id,
        "metric": metric,
        "operator": operator,
        "threshold": threshold,
        "onFailStatus": on_fail,
        "severity": "HIGH",
    }


class StaticProvider:
    """In-memory resource provider."""

    def __init__(self, resources: list[ResourceDescriptor] | None = None) -> None:
        self.resources = {r.id: r for r in resources or []}

    def list_resources(self, force_refresh: bool = False) -> list[ResourceDescriptor]:
        return list(self.resources.values())

    def get_resource(self, resource_id: str) -> ResourceDescriptor | None:
        return self.resources.get(resource_id)


class FakeCollector:
    """Returns queued metric dicts in order; an Exception in the queue is raised."""

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[str] = []

    def run(self, resource: ResourceDescriptor) -> MetricCollectorResult:
        self.calls.append(resource.id)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return MetricCollectorResult(metrics=dict(outcome))


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sqlite_store(tmp_path):
    store = SQLiteStore(tmp_path / "health.db")
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite", "cached_sqlite"])
def store(request, tmp_path):
    """Each contract test runs against every backend."""
    if request.param == "memory":
        yield MemoryStore()
        return
    s = SQLiteStore(tmp_path / "health.db")
    if request.param == "cached_sqlite":
        s = CachedStore(s)
    yield s
    s.close()


def json_transport(handler_map: dict[str, Any]) -> httpx.MockTransport:
    """MockTransport answering by URL path; values are (status, json) or callables."""

    def handler(request: httpx.Request) -> httpx.Response:
        answer = handler_map.get(request.url.path)
        if answer is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(answer):
            return answer(request)
        status, body = answer
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)
