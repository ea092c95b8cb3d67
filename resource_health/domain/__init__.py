from resource_health.domain.models import (
    ExecutionType,
    HealthPolicy,
    HealthStatus,
    MetricCollectorResult,
    Operator,
    ResourceDescriptor,
    ResourceHealthCheck,
    ResourceHealthStatus,
    ResourceType,
    RuleDefinition,
    RuleEvaluationResult,
)

__all__ = [
    "ExecutionType",
    "HealthPolicy",
    "HealthStatus",
    "MetricCollectorResult",
    "Operator",
    "ResourceDescriptor",
    "ResourceHealthCheck",
    "ResourceHealthStatus",
    "ResourceType",
    "RuleDefinition",
    "RuleEvaluationResult",
]
