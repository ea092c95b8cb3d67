"""FastAPI server for the resource health checker."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from resource_health.api.routes import resource_health_router
from resource_health.catalog.registry_client import ResourceRegistryClient
from resource_health.catalog.service import CatalogService
from resource_health.config import Settings, settings
from resource_health.health.collectors import CollectorDispatch
from resource_health.health.scheduler import Scheduler
from resource_health.health.service import HealthService
from resource_health.stores.factory import create_store

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/resource-health"


def build_components(cfg: Settings) -> dict:
    """Construct the store, catalog, registry client, service and scheduler once."""
    store = create_store(cfg)
    registry_client = ResourceRegistryClient(
        base_url=cfg.resource_registry_base_url,
        api_key=cfg.resource_registry_api_key,
        cache_seconds=cfg.resource_registry_cache_seconds,
    )
    catalog = CatalogService(cfg.catalog_file, registry_client)
    service = HealthService(
        store=store,
        catalog=catalog,
        collector=CollectorDispatch(timeout=cfg.collector_timeout_seconds),
    )
    provider = registry_client if cfg.scheduler_source == "registry" else catalog
    scheduler = Scheduler(
        provider=provider,
        service=service,
        store=store,
        loop_seconds=cfg.scheduler_loop_seconds,
        jitter_max_seconds=cfg.scheduler_jitter_max_seconds,
    )
    return {
        "health_store": store,
        "registry_client": registry_client,
        "catalog": catalog,
        "health_service": service,
        "scheduler": scheduler,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize shared resources on startup."""
    cfg: Settings = app.state.settings
    components = build_components(cfg)
    for name, component in components.items():
        setattr(app.state, name, component)

    catalog: CatalogService = components["catalog"]
    catalog.load()
    if cfg.scheduler_source == "catalog":
        catalog.ensure_seeded()
    logger.info("Catalog loaded: %d resources", len(catalog.list()))

    scheduler: Scheduler = components["scheduler"]
    if cfg.scheduler_enabled:
        try:
            await scheduler.start()
        except Exception:
            logger.exception("Health scheduler failed to start")

    yield

    # Shutdown
    await scheduler.stop()
    scheduler.shutdown()
    components["health_store"].close()


def create_app(cfg: Settings | None = None) -> FastAPI:
    cfg = cfg or settings
    app = FastAPI(
        title="Resource Health Checker",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.default_locale = cfg.default_locale

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if cfg.internal_api_key:
        @app.middleware("http")
        async def require_api_key(request: Request, call_next):
            if request.url.path != "/healthz" and request.headers.get("x-internal-api-key") != cfg.internal_api_key:
                return JSONResponse(status_code=401, content={"code": "UNAUTHORIZED"})
            return await call_next(request)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok", "service": cfg.service_name}

    app.include_router(resource_health_router, prefix=API_PREFIX)
    return app
