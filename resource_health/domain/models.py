"""Pydantic models for monitored resources, policies, checks and status.

Field names follow the registry wire format, so a registry payload or a
catalog YAML entry validates directly into these models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel

# Metric values are scalars or small objects (bool, number, string, dict).
MetricValue = Any


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Enumerations ─────────────────────────────────────────────────────────────


class ResourceType(str, Enum):
    DATABASE = "database"
    CACHE_QUEUE = "cache_queue"
    HTTP_SERVICE = "http_service"
    LLM_PROVIDER = "llm_provider"
    VECTOR_DB = "vector_db"


class HealthStatus(str, Enum):
    UP = "UP"
    DEGRADED = "DEGRADED"
    DOWN = "DOWN"


class ExecutionType(str, Enum):
    SCHEDULED = "SCHEDULED"
    MANUAL = "MANUAL"
    EVENT = "EVENT"


class Operator(str, Enum):
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    EQ = "=="
    NEQ = "!="
    IN = "in"
    NOT_IN = "not_in"
    REGEX = "regex"
    EXISTS = "exists"


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ScheduleType(str, Enum):
    CRON = "CRON"
    INTERVAL = "INTERVAL"


class AggregationStrategy(str, Enum):
    WORST_OF = "worst_of"
    WEIGHTED_SCORE = "weighted_score"
    QUORUM = "quorum"
    CUSTOM_EXPRESSION = "custom_expression"


class CatalogSource(str, Enum):
    REGISTRY_SNAPSHOT = "registry_snapshot"
    MANUAL = "manual"
    SYNC = "sync"


# ── Policy ───────────────────────────────────────────────────────────────────


class RuleDefinition(BaseModel):
    rule_id: str
    metric: str
    operator: Operator
    threshold: MetricValue = None
    onFailStatus: HealthStatus = HealthStatus.DOWN
    severity: Severity = Severity.MEDIUM


class Schedule(BaseModel):
    type: ScheduleType = ScheduleType.INTERVAL
    value: str = "PT10M"  # ISO-8601 duration for INTERVAL, cron expression for CRON


class Timeouts(BaseModel):
    perMetricMs: int | None = None
    perCheckMs: int | None = None


class Retries(BaseModel):
    maxAttempts: int = 1
    backoff: str = "fixed"  # exponential | fixed
    baseDelayMs: int = 0


class Aggregation(BaseModel):
    strategy: AggregationStrategy = AggregationStrategy.WORST_OF


class Cooldown(BaseModel):
    perResourceMinutes: int | None = None
    perRuleMinutes: int | None = None


class Notifications(BaseModel):
    emitEvents: bool = False
    webhooks: list[str] = []


class MetricRef(BaseModel):
    name: str


class HealthPolicy(BaseModel):
    """Per-resource check configuration.

    ``retries``, ``cooldown`` and ``notifications`` are carried for the
    registry's benefit only; the check path does not consult them.
    """

    policy_id: str = ""
    resource_id: str = ""
    enabled: bool = True
    schedule: Schedule = Schedule()
    timeouts: Timeouts | None = None
    retries: Retries | None = None
    metrics: list[MetricRef] = []
    rules: list[RuleDefinition] = []
    aggregation: Aggregation = Aggregation()
    cooldown: Cooldown | None = None
    notifications: Notifications | None = None
    tags: list[str] = []


# ── Resource ─────────────────────────────────────────────────────────────────


class ResourceDescriptor(BaseModel):
    id: str
    name: str = ""
    type: ResourceType
    subtype: str | None = None
    enabled: bool = True
    owner: str | None = None
    env: str | None = None
    criticality: str | None = None  # tier1 | tier2 | tier3
    tags: list[str] = []
    connection: dict[str, Any] = {}
    config: dict[str, Any] = {}
    policy: HealthPolicy | None = None
    source: CatalogSource = CatalogSource.MANUAL
    synced_at: str | None = None
    updated_at: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.id


# ── Collector output ─────────────────────────────────────────────────────────


@dataclass
class MetricCollectorResult:
    """Metrics from one probe. ``debug`` is never used for evaluation."""

    metrics: dict[str, MetricValue] = field(default_factory=dict)
    debug: dict[str, Any] = field(default_factory=dict)


# ── Check history ────────────────────────────────────────────────────────────


class RuleEvaluationResult(BaseModel):
    rule_id: str
    metric: str
    passed: bool
    operator: Operator
    threshold: MetricValue = None
    observed: MetricValue = None
    severity: Severity
    statusOnFail: HealthStatus


class ResourceHealthCheck(BaseModel):
    id: str
    resource_id: str
    executed_at: str
    execution_type: ExecutionType
    final_status: HealthStatus
    duration_ms: int
    metrics: dict[str, MetricValue] = {}
    rule_evaluations: dict[str, RuleEvaluationResult] = {}
    error_message: str | None = None
    collector_debug: dict[str, Any] | None = None


# ── Current status ───────────────────────────────────────────────────────────


class RuntimeDependency(BaseModel):
    status: HealthStatus
    connection_ok: bool | None = None
    pool_exhausted: bool | None = None
    latency_p95_ms: float | None = None
    latency_avg_ms: float | None = None
    error_rate_pct_5m: float | None = None
    last_error_code: str | None = None


class ConnectionInfo(BaseModel):
    endpoint: str
    port: int | None = None


class StatusSummary(BaseModel):
    message: dict[str, str] | str | None = None
    primary_cause: str | None = None
    failed_rules: list[str] = []
    key_metrics: dict[str, MetricValue] = {}
    runtime_dependencies: dict[str, RuntimeDependency] | None = None
    connection_info: ConnectionInfo | None = None


class ResourceHealthStatus(BaseModel):
    resource_id: str
    resource_name: str | None = None
    resource_type: ResourceType
    resource_subtype: str | None = None
    env: str | None = None
    current_status: HealthStatus
    last_check_at: str | None = None
    last_success_at: str | None = None
    consecutive_failures: int = 0
    summary: StatusSummary | None = None
    updated_at: str | None = None
