"""Rule engine: turns collected metrics into per-rule verdicts and a status.

Pure: no I/O, no state. Rules are evaluated in declaration order and never
short-circuit each other. Aggregation is worst-of (DOWN > DEGRADED > UP).
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from resource_health.domain.models import (
    HealthStatus,
    MetricValue,
    Operator,
    RuleDefinition,
    RuleEvaluationResult,
)


@dataclass
class RuleEngineResult:
    evaluations: dict[str, RuleEvaluationResult] = field(default_factory=dict)
    final_status: HealthStatus = HealthStatus.UP
    failed_rule_ids: list[str] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a metric number
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _same(a: Any, b: Any) -> bool:
    """Value equality that keeps booleans and numbers apart (True != 1)."""
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def _contains(seq: Sequence[Any], value: Any) -> bool:
    return any(_same(item, value) for item in seq)


def evaluate_operator(operator: Operator, observed: MetricValue, threshold: MetricValue = None) -> bool:
    """Apply one operator. Type mismatches fail the rule instead of raising."""
    if operator in (Operator.LT, Operator.LTE, Operator.GT, Operator.GTE):
        if not (_is_number(observed) and _is_number(threshold)):
            return False
        if operator == Operator.LT:
            return observed < threshold
        if operator == Operator.LTE:
            return observed <= threshold
        if operator == Operator.GT:
            return observed > threshold
        return observed >= threshold

    if operator == Operator.EQ:
        return _same(observed, threshold)
    if operator == Operator.NEQ:
        return not _same(observed, threshold)

    if operator in (Operator.IN, Operator.NOT_IN):
        if not isinstance(threshold, (list, tuple)):
            return False
        found = _contains(threshold, observed)
        return found if operator == Operator.IN else not found

    if operator == Operator.REGEX:
        if not (isinstance(observed, str) and isinstance(threshold, str)):
            return False
        try:
            return re.search(threshold, observed) is not None
        except re.error:
            return False

    if operator == Operator.EXISTS:
        return observed is not None

    return False


def worst_of(statuses: Sequence[HealthStatus]) -> HealthStatus:
    if HealthStatus.DOWN in statuses:
        return HealthStatus.DOWN
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.UP


def evaluate_rules(
    metrics: Mapping[str, MetricValue],
    rules: Sequence[RuleDefinition] | None,
) -> RuleEngineResult:
    """Evaluate ``rules`` against ``metrics``.

    With no rules, the resource is UP only when ``availability`` is exactly
    ``True``. ``failed_rule_ids`` keeps declaration order, so its first entry
    is the primary cause reported in the status summary.
    """
    if not rules:
        available = metrics.get("availability") is True
        return RuleEngineResult(final_status=HealthStatus.UP if available else HealthStatus.DOWN)

    result = RuleEngineResult()
    failed_statuses: list[HealthStatus] = []

    for rule in rules:
        observed = metrics.get(rule.metric)
        passed = evaluate_operator(rule.operator, observed, rule.threshold)
        result.evaluations[rule.rule_id] = RuleEvaluationResult(
            rule_id=rule.rule_id,
            metric=rule.metric,
            passed=passed,
            operator=rule.operator,
            threshold=rule.threshold,
            observed=observed,
            severity=rule.severity,
            statusOnFail=rule.onFailStatus,
        )
        if not passed:
            result.failed_rule_ids.append(rule.rule_id)
            failed_statuses.append(rule.onFailStatus)

    result.final_status = worst_of(failed_statuses)
    return result
