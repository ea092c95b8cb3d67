"""Errors surfaced by check execution.

Only these two reach callers of ``HealthService.run_check``; every probe
failure is folded into the check record instead.
"""

from __future__ import annotations


class HealthCheckError(Exception):
    """Base class for check-trigger failures carrying a stable code."""

    code = "INTERNAL_ERROR"

    def __init__(self, resource_id: str) -> None:
        self.resource_id = resource_id
        super().__init__(f"{self.code}: {resource_id}")


class ResourceNotFoundError(HealthCheckError):
    code = "RESOURCE_NOT_FOUND"


class PolicyDisabledError(HealthCheckError):
    code = "POLICY_DISABLED"
