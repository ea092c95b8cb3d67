"""Collector dispatch: one minimal live probe per resource type.

Supports: HTTP GET (http_service), synthetic POST (llm_provider), and a
passive probe for database / cache_queue / vector_db that falls through to
HTTP when the resource exposes an http(s) endpoint.

Probe failures (timeouts, refused connections, bad bodies) never raise:
they come back as degraded metric values so the rule engine can classify
them like any other observation.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from resource_health.domain.catalog import metrics_for
from resource_health.domain.models import (
    MetricCollectorResult,
    MetricValue,
    ResourceDescriptor,
    ResourceType,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0
UNAVAILABLE_STATUS_CODE = 503

LLM_PROBE_PROMPT = "ping"
LLM_PROBE_MAX_TOKENS = 1

# Nested dependency block in a health body → flattened metric names
DEPENDENCY_BLOCK = "prisma"
DEPENDENCY_FIELDS = {
    "connection_ok": "prisma_connection_ok",
    "pool_exhausted": "prisma_pool_exhausted",
    "query_latency_ms_p95": "prisma_query_latency_ms_p95",
    "latency_p95_ms": "prisma_query_latency_ms_p95",
    "query_latency_ms_avg": "prisma_query_latency_ms_avg",
    "latency_avg_ms": "prisma_query_latency_ms_avg",
    "error_rate_pct_5m": "prisma_error_rate_pct_5m",
    "last_error_code": "prisma_last_error_code",
}

# When a passive-type resource is probed over HTTP, its own metric names
# are filled from the generic HTTP ones.
PASSIVE_ALIASES: dict[ResourceType, dict[str, str]] = {
    ResourceType.DATABASE: {"connection_ok": "availability", "latency_ms": "response_time_ms"},
    ResourceType.CACHE_QUEUE: {"ping_ok": "availability", "latency_ms": "response_time_ms"},
    ResourceType.VECTOR_DB: {"index_available": "availability", "query_latency_ms": "response_time_ms"},
}


# ── Helpers ──────────────────────────────────────────────────────────────────


def resource_endpoint(resource: ResourceDescriptor) -> str:
    conn = resource.connection or {}
    return str(conn.get("endpoint") or conn.get("url") or "")


def is_http_endpoint(endpoint: str) -> bool:
    return endpoint.startswith(("http://", "https://"))


def auth_headers(resource: ResourceDescriptor) -> dict[str, str]:
    """Build request headers from the connection's auth block.

    Accepted shapes::

        auth: {type: bearer, token: ...}
        auth: {type: header, header: X-Api-Key, value: ...}
    """
    conn = resource.connection or {}
    headers: dict[str, str] = {str(k): str(v) for k, v in (conn.get("headers") or {}).items()}

    auth = conn.get("auth")
    if not isinstance(auth, dict):
        return headers

    auth_type = str(auth.get("type", "bearer" if auth.get("token") else "")).lower()
    if auth_type == "bearer" and auth.get("token"):
        headers["Authorization"] = f"Bearer {auth['token']}"
    elif auth_type == "header":
        name = auth.get("header") or auth.get("name")
        if name and auth.get("value") is not None:
            headers[str(name)] = str(auth["value"])
    return headers


def flatten_dependencies(body: Any) -> dict[str, MetricValue]:
    """Pull a recognized dependency block out of a JSON health body."""
    if not isinstance(body, dict):
        return {}
    block = body.get(DEPENDENCY_BLOCK)
    if not isinstance(block, dict):
        deps = body.get("dependencies")
        block = deps.get(DEPENDENCY_BLOCK) if isinstance(deps, dict) else None
    if not isinstance(block, dict):
        return {}

    flat: dict[str, MetricValue] = {}
    for key, metric in DEPENDENCY_FIELDS.items():
        if metric not in flat and block.get(key) is not None:
            flat[metric] = block[key]
    return flat


def _rate_limit_remaining(headers: httpx.Headers) -> int | None:
    for name in ("x-ratelimit-remaining-requests", "x-ratelimit-remaining"):
        raw = headers.get(name)
        if raw is not None:
            try:
                return int(raw)
            except ValueError:
                return None
    return None


# ── HTTP probe ───────────────────────────────────────────────────────────────


def probe_http(
    url: str,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    json_body: dict[str, Any] | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    transport: httpx.BaseTransport | None = None,
) -> MetricCollectorResult:
    """Single HTTP request with status code + latency + availability."""
    debug: dict[str, Any] = {"url": url, "method": method}
    t0 = time.perf_counter()
    try:
        with httpx.Client(timeout=timeout, follow_redirects=True, transport=transport) as client:
            resp = client.request(method, url, headers=headers, json=json_body)
        latency = (time.perf_counter() - t0) * 1000

        metrics: dict[str, MetricValue] = {
            "status_code": resp.status_code,
            "response_time_ms": round(latency),
            "availability": resp.status_code < 400,
        }

        remaining = _rate_limit_remaining(resp.headers)
        if remaining is not None:
            metrics["rate_limit_remaining"] = remaining

        try:
            body = resp.json()
        except ValueError:
            debug["body"] = "non-json"
        else:
            metrics.update(flatten_dependencies(body))

        return MetricCollectorResult(metrics=metrics, debug=debug)
    except httpx.TimeoutException:
        debug["error"] = f"timed out after {timeout}s"
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
        # ValueError covers headers that cannot be encoded (non-ASCII credentials)
        debug["error"] = f"{type(e).__name__}: {e}"

    latency = (time.perf_counter() - t0) * 1000
    return MetricCollectorResult(
        metrics={
            "status_code": UNAVAILABLE_STATUS_CODE,
            "response_time_ms": round(latency),
            "availability": False,
        },
        debug=debug,
    )


# ── Per-type collectors ──────────────────────────────────────────────────────


class CollectorDispatch:
    """Runs the probe matching a resource's type.

    ``transport`` is handed to every ``httpx.Client`` this dispatcher opens;
    tests pass an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.transport = transport

    def run(self, resource: ResourceDescriptor) -> MetricCollectorResult:
        collector = COLLECTORS.get(resource.type)
        if collector is None:
            return MetricCollectorResult()
        result = collector(self, resource)
        logger.debug("Collected %d metrics for %s", len(result.metrics), resource.id)
        return result

    __call__ = run

    def http_get(self, resource: ResourceDescriptor) -> MetricCollectorResult:
        endpoint = resource_endpoint(resource)
        return probe_http(
            endpoint, "GET", headers=auth_headers(resource),
            timeout=self.timeout, transport=self.transport,
        )


def collect_passive(dispatch: CollectorDispatch, resource: ResourceDescriptor) -> MetricCollectorResult:
    """database / cache_queue / vector_db."""
    endpoint = resource_endpoint(resource)
    if not is_http_endpoint(endpoint):
        # Nothing to probe: report the type's standard metrics as down.
        defaults: dict[str, MetricValue] = {
            m.name: (False if m.kind == "boolean" else None) for m in metrics_for(resource.type)
        }
        return MetricCollectorResult(
            metrics={k: v for k, v in defaults.items() if v is not None},
            debug={"probe": "passive", "reason": "no http endpoint configured"},
        )

    result = dispatch.http_get(resource)
    for metric, source in PASSIVE_ALIASES.get(resource.type, {}).items():
        if source in result.metrics:
            result.metrics.setdefault(metric, result.metrics[source])
    result.debug["probe"] = "http"
    return result


def collect_http_service(dispatch: CollectorDispatch, resource: ResourceDescriptor) -> MetricCollectorResult:
    result = dispatch.http_get(resource)
    result.debug["probe"] = "http"
    return result


def collect_llm_provider(dispatch: CollectorDispatch, resource: ResourceDescriptor) -> MetricCollectorResult:
    """Synthetic minimal completion request (tiny prompt, capped output)."""
    conn = resource.connection or {}
    model = conn.get("model") or (resource.config or {}).get("model") or resource.subtype or ""
    payload = {
        "model": model,
        "messages": [{"role": "user", "content": LLM_PROBE_PROMPT}],
        "max_tokens": LLM_PROBE_MAX_TOKENS,
    }
    result = probe_http(
        resource_endpoint(resource), "POST",
        headers=auth_headers(resource), json_body=payload,
        timeout=dispatch.timeout, transport=dispatch.transport,
    )
    result.debug["probe"] = "llm_synthetic"
    return result


COLLECTORS: dict[ResourceType, Callable[[CollectorDispatch, ResourceDescriptor], MetricCollectorResult]] = {
    ResourceType.DATABASE: collect_passive,
    ResourceType.CACHE_QUEUE: collect_passive,
    ResourceType.VECTOR_DB: collect_passive,
    ResourceType.HTTP_SERVICE: collect_http_service,
    ResourceType.LLM_PROVIDER: collect_llm_provider,
}

_uncovered = set(ResourceType) - set(COLLECTORS)
if _uncovered:
    raise RuntimeError(f"No collector for resource types: {sorted(t.value for t in _uncovered)}")
