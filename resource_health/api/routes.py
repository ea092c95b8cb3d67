"""API routes for resource health checks, status, history and the catalog.

Endpoints (prefix /api/v1/resource-health):
  POST   /check/{resource_id}        run a MANUAL check now
  GET    /status                     status list (filters + paging)
  GET    /status/{resource_id}       current status of one resource
  GET    /history/{resource_id}      check history, most recent first
  GET    /checks/{check_id}          one check record
  GET    /schema/metrics             metric catalog per resource type
  GET    /resources                  catalog listing
  GET    /catalog, POST /catalog, POST /catalog/import
  GET    /catalog/{id}, PATCH /catalog/{id}, DELETE /catalog/{id}
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import JSONResponse

from resource_health.catalog.registry_client import RegistryError
from resource_health.domain.catalog import catalog_to_dict
from resource_health.domain.models import ExecutionType, ResourceHealthStatus
from resource_health.health.errors import HealthCheckError, PolicyDisabledError, ResourceNotFoundError
from resource_health.i18n import parse_accept_language, pick_locale
from resource_health.stores.base import StatusFilters

logger = logging.getLogger(__name__)

resource_health_router = APIRouter()

_ERROR_STATUS = {
    ResourceNotFoundError.code: 404,
    PolicyDisabledError.code: 409,
}


def _error(status_code: int, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": code})


def _localized(status: ResourceHealthStatus, locale: str | None, default_locale: str) -> dict[str, Any]:
    data = status.model_dump(mode="json")
    summary = data.get("summary")
    if summary and summary.get("message"):
        summary["message"] = pick_locale(locale, summary["message"], default_locale)
    return data


def _default_locale(request: Request) -> str:
    return getattr(request.app.state, "default_locale", "pt-BR")


# ── Checks ───────────────────────────────────────────────────────────────────


@resource_health_router.post("/check/{resource_id}", status_code=202)
def trigger_check(resource_id: str, request: Request) -> Any:
    """Run a MANUAL check synchronously and report the resulting check id."""
    service = request.app.state.health_service
    try:
        check = service.run_check(resource_id, ExecutionType.MANUAL)
    except HealthCheckError as e:
        return _error(_ERROR_STATUS.get(e.code, 500), e.code)
    except Exception:
        logger.exception("Manual check failed: %s", resource_id)
        return _error(500, "INTERNAL_ERROR")

    return {
        "check_id": check.id,
        "resource_id": check.resource_id,
        "final_status": check.final_status.value,
        "queued_at": check.executed_at,
        "estimated_start": check.executed_at,
    }


@resource_health_router.get("/checks/{check_id}")
def get_check(check_id: str, request: Request) -> Any:
    check = request.app.state.health_service.get_check(check_id)
    if check is None:
        return _error(404, "CHECK_NOT_FOUND")
    return check.model_dump(mode="json")


@resource_health_router.get("/history/{resource_id}")
def check_history(
    resource_id: str,
    request: Request,
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
) -> dict[str, Any]:
    page = request.app.state.health_service.list_checks(resource_id, limit, offset)
    return {
        "items": [c.model_dump(mode="json") for c in page.items],
        "paging": {"limit": limit, "offset": offset, "total": page.total},
    }


# ── Status ───────────────────────────────────────────────────────────────────


@resource_health_router.get("/status/{resource_id}")
def get_status(resource_id: str, request: Request) -> Any:
    status = request.app.state.health_service.get_status(resource_id)
    if status is None:
        return _error(404, ResourceNotFoundError.code)
    locale = parse_accept_language(request.headers.get("accept-language"))
    return _localized(status, locale, _default_locale(request))


@resource_health_router.get("/status")
def list_status(
    request: Request,
    type: str | None = None,
    subtype: str | None = None,
    status: str | None = None,
    tag: str | None = None,
    owner: str | None = None,
    env: str | None = None,
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
) -> dict[str, Any]:
    filters = StatusFilters(type=type, subtype=subtype, status=status, tag=tag, owner=owner, env=env)
    items = request.app.state.health_service.list_status(filters)
    locale = parse_accept_language(request.headers.get("accept-language"))
    default_locale = _default_locale(request)
    return {
        "items": [_localized(s, locale, default_locale) for s in items[offset:offset + limit]],
        "paging": {"limit": limit, "offset": offset, "total": len(items)},
    }


@resource_health_router.get("/schema/metrics")
def metric_schema() -> dict[str, Any]:
    return {"catalogByResourceType": catalog_to_dict()}


# ── Catalog ──────────────────────────────────────────────────────────────────


@resource_health_router.get("/resources")
def list_resources(request: Request) -> dict[str, Any]:
    catalog = request.app.state.catalog
    return {"items": [r.model_dump(mode="json") for r in catalog.list()], "source": "catalog"}


@resource_health_router.get("/catalog")
def list_catalog(request: Request) -> dict[str, Any]:
    return {"items": [r.model_dump(mode="json") for r in request.app.state.catalog.list()]}


@resource_health_router.post("/catalog/import")
def import_catalog(request: Request) -> Any:
    try:
        imported = request.app.state.catalog.import_from_registry()
    except (RegistryError, RuntimeError, ValueError):
        logger.exception("Catalog import failed")
        return _error(500, "IMPORT_FAILED")
    return {"imported": imported}


@resource_health_router.get("/catalog/{resource_id}")
def get_catalog_entry(resource_id: str, request: Request) -> Any:
    res = request.app.state.catalog.get(resource_id)
    if res is None:
        return _error(404, ResourceNotFoundError.code)
    return res.model_dump(mode="json")


@resource_health_router.post("/catalog", status_code=201)
def create_catalog_entry(body: dict[str, Any], request: Request) -> Any:
    if not body.get("id") or not body.get("name") or not body.get("type"):
        return _error(400, "INVALID_BODY")
    try:
        saved = request.app.state.catalog.upsert(body)
    except ValueError:
        return _error(400, "INVALID_BODY")
    return saved.model_dump(mode="json")


@resource_health_router.patch("/catalog/{resource_id}")
def update_catalog_entry(resource_id: str, body: dict[str, Any], request: Request) -> Any:
    catalog = request.app.state.catalog
    if catalog.get(resource_id) is None:
        return _error(404, ResourceNotFoundError.code)
    try:
        saved = catalog.upsert({**body, "id": resource_id})
    except ValueError:
        return _error(400, "INVALID_BODY")
    return saved.model_dump(mode="json")


@resource_health_router.delete("/catalog/{resource_id}", status_code=204)
def delete_catalog_entry(resource_id: str, request: Request) -> Response:
    deleted = request.app.state.catalog.delete(resource_id)
    request.app.state.health_store.remove_resource(resource_id)
    if not deleted:
        return _error(404, ResourceNotFoundError.code)
    return Response(status_code=204)
