"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from callops.adapters.inbound.rest.routers import health_router, providers_router
from callops.adapters.outbound.persistence.database import create_schema
from callops.adapters.outbound.persistence.repositories import SQLAlchemyProviderConfigRepository
from callops.config import Settings, get_settings
from callops.dependencies import Container, build_container
from callops.ports.outbound import ConnectivityProbePort
from callops.shared.errors import register_exception_handlers
from callops.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RequestIdMiddleware,
)
from callops.shared.observability import configure_logging
from callops.shared.providers.circuit_breaker import Clock, utcnow

logger = structlog.get_logger(__name__)


async def restore_active_providers(container: Container) -> int:
    """Re-install breakers for the configurations that were active at shutdown."""
    async with container.session_factory() as session:
        active = await SQLAlchemyProviderConfigRepository(session).list_active()
    container.registry.restore(active)
    return len(active)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle — startup & shutdown hooks."""
    container: Container = app.state.container
    settings = container.settings
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.render_json_logs,
    )
    logger.info(
        "application_starting",
        env=settings.app_env.value,
        failure_threshold=settings.circuit_breaker_failure_threshold,
        cooldown_s=settings.circuit_breaker_cooldown_seconds,
    )

    if settings.database_auto_create:
        await create_schema(container.engine)

    restored = await restore_active_providers(container)
    logger.info("provider_slots_restored", count=restored)

    yield

    await container.engine.dispose()
    logger.info("application_shutdown")


def create_app(
    settings: Settings | None = None,
    *,
    probe: ConnectivityProbePort | None = None,
    clock: Clock = utcnow,
) -> FastAPI:
    """Application factory — creates a fully configured FastAPI instance."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Call Ops Provider Service",
        description=(
            "Provider configuration and resilience backend for the call-center "
            "dashboard: schema-driven credential forms, connectivity tests, "
            "activation, circuit breaking, and backup failover health."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Store the runtime in app state for lifecycle and request access
    app.state.settings = settings
    app.state.container = build_container(settings, probe=probe, clock=clock)

    # ── Middleware (order matters: last added = outermost) ────
    cors_origins = settings.cors_origins
    # CORSMiddleware does not allow ["*"] together with credentials.
    allow_all_origins = "*" in cors_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if allow_all_origins else cors_origins,
        allow_origin_regex=".*" if allow_all_origins else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.prometheus_enabled:
        app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── REST routers (versioned) ─────────────────────────────
    api_v1 = "/api/v1"
    app.include_router(health_router, prefix=api_v1)
    app.include_router(providers_router, prefix=api_v1)

    return app


def get_app() -> FastAPI:
    """Uvicorn factory entry-point (``uvicorn callops.main:get_app --factory``)."""
    return create_app()
