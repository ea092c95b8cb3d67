"""Check execution: runs one check and folds it into the resource's status.

Order within ``run_check``: resolve resource → upsert it → policy gate →
collect → evaluate → write check → derive and write status. The check row
is always written before the status that references it.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from urllib.parse import urlsplit, urlunsplit

from resource_health.catalog.provider import ResourceProvider
from resource_health.domain.models import (
    ConnectionInfo,
    ExecutionType,
    HealthStatus,
    MetricValue,
    ResourceDescriptor,
    ResourceHealthCheck,
    ResourceHealthStatus,
    RuntimeDependency,
    StatusSummary,
)
from resource_health.health.collectors import CollectorDispatch, resource_endpoint
from resource_health.health.errors import PolicyDisabledError, ResourceNotFoundError
from resource_health.health.rules import evaluate_rules
from resource_health.i18n import status_message
from resource_health.stores.base import CheckPage, HealthStore, StatusFilters

logger = logging.getLogger(__name__)

KEY_METRICS_LIMIT = 3

# Embedded dependency thresholds
DEPENDENCY_P95_DEGRADED_MS = 1000
DEPENDENCY_ERROR_RATE_DEGRADED_PCT = 2


# ── Summary builders ─────────────────────────────────────────────────────────


def build_runtime_dependencies(metrics: dict[str, MetricValue]) -> dict[str, RuntimeDependency] | None:
    """Sub-status of the ORM / connection-pool layer behind an HTTP service.

    Only present when at least one of the tracked metrics was observed.
    """
    connection_ok = metrics.get("prisma_connection_ok")
    pool_exhausted = metrics.get("prisma_pool_exhausted")
    p95 = metrics.get("prisma_query_latency_ms_p95")
    error_rate = metrics.get("prisma_error_rate_pct_5m")

    observed = ("prisma_connection_ok", "prisma_pool_exhausted",
                "prisma_query_latency_ms_p95", "prisma_error_rate_pct_5m")
    if not any(name in metrics for name in observed):
        return None

    if connection_ok is False:
        status = HealthStatus.DOWN
    elif pool_exhausted:
        status = HealthStatus.DEGRADED
    elif isinstance(p95, (int, float)) and p95 > DEPENDENCY_P95_DEGRADED_MS:
        status = HealthStatus.DEGRADED
    elif isinstance(error_rate, (int, float)) and error_rate > DEPENDENCY_ERROR_RATE_DEGRADED_PCT:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.UP

    avg = metrics.get("prisma_query_latency_ms_avg")
    last_error = metrics.get("prisma_last_error_code")
    return {
        "prisma": RuntimeDependency(
            status=status,
            connection_ok=connection_ok if isinstance(connection_ok, bool) else None,
            pool_exhausted=pool_exhausted if isinstance(pool_exhausted, bool) else None,
            latency_p95_ms=p95 if isinstance(p95, (int, float)) else None,
            latency_avg_ms=avg if isinstance(avg, (int, float)) else None,
            error_rate_pct_5m=error_rate if isinstance(error_rate, (int, float)) else None,
            last_error_code=str(last_error) if last_error is not None else None,
        )
    }


def build_connection_info(resource: ResourceDescriptor) -> ConnectionInfo | None:
    """Endpoint with credentials stripped, plus its effective port."""
    endpoint = resource_endpoint(resource)
    if not endpoint:
        return None
    try:
        parts = urlsplit(endpoint)
        port = parts.port
    except ValueError:
        return ConnectionInfo(endpoint=endpoint)

    host = parts.hostname or ""
    netloc = f"{host}:{port}" if port else host
    if port is None:
        port = {"https": 443, "http": 80}.get(parts.scheme)
    return ConnectionInfo(
        endpoint=urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment)),
        port=port,
    )


def key_metrics(metrics: dict[str, MetricValue]) -> dict[str, MetricValue]:
    """First few metrics in collector order."""
    return dict(list(metrics.items())[:KEY_METRICS_LIMIT])


# ── Service ──────────────────────────────────────────────────────────────────


class HealthService:
    """Runs checks and serves status/history reads for the API."""

    def __init__(
        self,
        store: HealthStore,
        catalog: ResourceProvider,
        collector: CollectorDispatch | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.collector = collector or CollectorDispatch()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def run_check(
        self,
        resource_id: str,
        execution_type: ExecutionType = ExecutionType.MANUAL,
        resource_override: ResourceDescriptor | None = None,
    ) -> ResourceHealthCheck:
        """Execute one check.

        Raises ``ResourceNotFoundError`` or ``PolicyDisabledError`` before any
        collector runs. Collector failures never raise: they produce a DOWN
        check carrying the error message.
        """
        resource = resource_override or self.catalog.get_resource(resource_id)
        if resource is None:
            raise ResourceNotFoundError(resource_id)

        # Keep a working copy so history stays joinable if the catalog changes.
        self.store.upsert_resource(resource)

        policy = resource.policy
        if policy is None or not policy.enabled:
            raise PolicyDisabledError(resource_id)

        t0 = time.perf_counter()
        try:
            collected = self.collector.run(resource)
        except Exception as e:
            logger.exception("Collector failed for %s", resource_id)
            failed_rules: list[str] = []
            check = ResourceHealthCheck(
                id=uuid.uuid4().hex,
                resource_id=resource_id,
                executed_at=self._clock().isoformat(),
                execution_type=execution_type,
                final_status=HealthStatus.DOWN,
                duration_ms=round((time.perf_counter() - t0) * 1000),
                metrics={},
                rule_evaluations={},
                error_message=str(e) or type(e).__name__,
            )
        else:
            outcome = evaluate_rules(collected.metrics, policy.rules)
            failed_rules = outcome.failed_rule_ids
            check = ResourceHealthCheck(
                id=uuid.uuid4().hex,
                resource_id=resource_id,
                executed_at=self._clock().isoformat(),
                execution_type=execution_type,
                final_status=outcome.final_status,
                duration_ms=round((time.perf_counter() - t0) * 1000),
                metrics=collected.metrics,
                rule_evaluations=outcome.evaluations,
                collector_debug=collected.debug or None,
            )

        self.store.add_check(check)
        self._persist_status(resource_id, resource, check, failed_rules)

        logger.debug(
            "Check %s/%s: %s (%dms, failed=%s)",
            resource_id, execution_type.value, check.final_status.value,
            check.duration_ms, failed_rules,
        )
        return check

    def _persist_status(
        self,
        resource_id: str,
        resource: ResourceDescriptor,
        check: ResourceHealthCheck,
        failed_rules: list[str],
    ) -> None:
        existing = self.store.get_status(resource_id)
        is_up = check.final_status == HealthStatus.UP
        previous_failures = existing.consecutive_failures if existing else 0

        status = ResourceHealthStatus(
            resource_id=resource_id,
            resource_name=resource.display_name,
            resource_type=resource.type,
            resource_subtype=resource.subtype,
            env=resource.env,
            current_status=check.final_status,
            last_check_at=check.executed_at,
            last_success_at=check.executed_at if is_up else (existing.last_success_at if existing else None),
            consecutive_failures=0 if is_up else previous_failures + 1,
            summary=StatusSummary(
                message=status_message(check.final_status),
                primary_cause=failed_rules[0] if failed_rules else None,
                failed_rules=list(failed_rules),
                key_metrics=key_metrics(check.metrics),
                runtime_dependencies=build_runtime_dependencies(check.metrics),
                connection_info=build_connection_info(resource),
            ),
        )

        if is_up:
            self.store.reset_failures(resource_id)
        else:
            self.store.increment_failures(resource_id)
        self.store.upsert_status(status)

    # ── Reads ─────────────────────────────────────────────────────────────

    def get_status(self, resource_id: str) -> ResourceHealthStatus | None:
        return self.store.get_status(resource_id)

    def list_status(self, filters: StatusFilters | None = None) -> list[ResourceHealthStatus]:
        return self.store.list_status(filters)

    def list_checks(self, resource_id: str, limit: int = 20, offset: int = 0) -> CheckPage:
        return self.store.list_checks(resource_id, limit, offset)

    def get_check(self, check_id: str) -> ResourceHealthCheck | None:
        return self.store.get_check(check_id)
