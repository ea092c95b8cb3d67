"""Tests for the CLI commands."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from resource_health import main
from resource_health.domain.models import ExecutionType, HealthStatus, ResourceHealthCheck
from resource_health.health.errors import ResourceNotFoundError


def fake_components(check=None, error=None):
    service = MagicMock()
    if error is not None:
        service.run_check.side_effect = error
    else:
        service.run_check.return_value = check
    return {"health_service": service, "health_store": MagicMock(), "catalog": MagicMock()}


class TestCheckCommand:
    def test_up_exits_zero(self) -> None:
        check = ResourceHealthCheck(
            id="c1", resource_id="api-1", executed_at="2024-01-01T00:00:00+00:00",
            execution_type=ExecutionType.MANUAL, final_status=HealthStatus.UP,
            duration_ms=10, metrics={"availability": True},
        )
        components = fake_components(check)
        with patch.object(main, "build_components", return_value=components):
            assert main.run_check("api-1") == 0
        components["health_service"].run_check.assert_called_once_with("api-1", ExecutionType.MANUAL)
        components["health_store"].close.assert_called_once()

    def test_down_exits_two(self) -> None:
        check = ResourceHealthCheck(
            id="c1", resource_id="api-1", executed_at="2024-01-01T00:00:00+00:00",
            execution_type=ExecutionType.MANUAL, final_status=HealthStatus.DOWN,
            duration_ms=10, error_message="refused",
        )
        with patch.object(main, "build_components", return_value=fake_components(check)):
            assert main.run_check("api-1") == 2

    def test_unknown_resource_exits_one(self) -> None:
        components = fake_components(error=ResourceNotFoundError("ghost"))
        with patch.object(main, "build_components", return_value=components):
            assert main.run_check("ghost") == 1
        components["health_store"].close.assert_called_once()


class TestImportCommand:
    def test_import(self) -> None:
        components = fake_components()
        components["catalog"].import_from_registry.return_value = 3
        with patch.object(main, "build_components", return_value=components):
            assert main.run_import() == 0
        components["catalog"].import_from_registry.assert_called_once()
