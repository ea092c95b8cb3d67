"""Entry point for the resource health checker."""

from __future__ import annotations

import argparse
import json
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel

from resource_health.api.server import build_components, create_app
from resource_health.config import settings
from resource_health.domain.models import ExecutionType, HealthStatus
from resource_health.health.errors import HealthCheckError

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

_STATUS_STYLE = {
    HealthStatus.UP: "bold green",
    HealthStatus.DEGRADED: "bold yellow",
    HealthStatus.DOWN: "bold red",
}


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting Resource Health Checker", style="bold green"))
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def run_check(resource_id: str) -> int:
    """Run a single MANUAL check against the local catalog and print it."""
    components = build_components(settings)
    service = components["health_service"]
    try:
        check = service.run_check(resource_id, ExecutionType.MANUAL)
    except HealthCheckError as e:
        console.print(f"[bold red]{e.code}[/bold red] {resource_id}")
        return 1
    finally:
        components["health_store"].close()

    console.print(Panel(
        f"{check.final_status.value} in {check.duration_ms}ms",
        title=resource_id,
        style=_STATUS_STYLE[check.final_status],
    ))
    console.print_json(json.dumps(check.model_dump(mode="json")["metrics"]))
    for rule_id, ev in check.rule_evaluations.items():
        mark = "[green]pass[/green]" if ev.passed else f"[red]fail → {ev.statusOnFail.value}[/red]"
        console.print(f"  {rule_id}: {ev.metric} {ev.operator.value} {ev.threshold!r} (observed {ev.observed!r}) {mark}")
    if check.error_message:
        console.print(f"[red]error:[/red] {check.error_message}")
    return 0 if check.final_status == HealthStatus.UP else 2


def run_import() -> int:
    components = build_components(settings)
    try:
        imported = components["catalog"].import_from_registry()
    finally:
        components["health_store"].close()
    console.print(f"Imported {imported} resources from registry")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Resource Health Checker")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server and scheduler")

    check_parser = sub.add_parser("check", help="Run one check for a catalog resource")
    check_parser.add_argument("resource_id", help="Resource id from the catalog")

    sub.add_parser("import", help="Import the catalog from the resource registry")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "check":
        sys.exit(run_check(args.resource_id))
    elif args.command == "import":
        sys.exit(run_import())
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
