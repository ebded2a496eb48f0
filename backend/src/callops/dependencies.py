"""Dependency injection container — wires adapters to ports.

The long-lived runtime (breaker registry, workflow gate, event bus, probe,
session factory) is built once per application and kept on ``app.state``;
FastAPI's ``Depends()`` factories below pull from it and inject per-request
handlers into route functions.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from callops.adapters.outbound.event_bus import InProcessEventBus
from callops.adapters.outbound.persistence.database import create_engine, create_session_factory
from callops.adapters.outbound.persistence.repositories import SQLAlchemyProviderConfigRepository
from callops.adapters.outbound.probe import HttpConnectivityProbe
from callops.application.commands import (
    ProbeActiveProviderHandler,
    RecordCallOutcomeHandler,
    ResetProviderHandler,
    SaveProviderHandler,
    TestConnectionHandler,
)
from callops.application.consumers import ProviderAuditConsumer
from callops.application.queries import (
    GetCurrentConfigurationHandler,
    GetHealthHandler,
    GetSchemaHandler,
    ListSupportedProvidersHandler,
    RenderFormHandler,
)
from callops.application.services import WorkflowGate
from callops.config import Settings, get_settings
from callops.domain.catalog import DEFAULT_CATALOG, ProviderCatalog
from callops.domain.services.form_engine import ConfigFormEngine
from callops.ports.outbound import ConnectivityProbePort
from callops.shared.providers import (
    BreakerPolicy,
    BreakerRegistry,
    ProviderHealthAggregator,
    ResilientProviderGateway,
)
from callops.shared.providers.circuit_breaker import Clock, utcnow
from callops.shared.security import decode_token, parse_bearer


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


# ── Runtime container ────────────────────────────────────────
@dataclass
class Container:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    probe: ConnectivityProbePort
    registry: BreakerRegistry
    aggregator: ProviderHealthAggregator
    gateway: ResilientProviderGateway
    catalog: ProviderCatalog = DEFAULT_CATALOG
    form_engine: ConfigFormEngine = field(default_factory=ConfigFormEngine)
    gate: WorkflowGate = field(default_factory=WorkflowGate)
    event_bus: InProcessEventBus = field(default_factory=InProcessEventBus)
    audit: ProviderAuditConsumer = field(default_factory=ProviderAuditConsumer)


def build_container(
    settings: Settings,
    *,
    probe: ConnectivityProbePort | None = None,
    clock: Clock = utcnow,
) -> Container:
    engine = create_engine(settings)
    registry = BreakerRegistry(
        BreakerPolicy(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            cooldown_seconds=settings.circuit_breaker_cooldown_seconds,
            manual_probe_bypasses_cooldown=settings.manual_probe_bypasses_cooldown,
        ),
        clock=clock,
    )
    container = Container(
        settings=settings,
        engine=engine,
        session_factory=create_session_factory(settings, engine),
        probe=probe
        or HttpConnectivityProbe(
            timeout=settings.probe_timeout_seconds,
            max_attempts=settings.probe_max_attempts,
        ),
        registry=registry,
        aggregator=ProviderHealthAggregator(registry),
        gateway=ResilientProviderGateway(
            registry, timeout_seconds=settings.provider_call_timeout_seconds
        ),
    )
    container.audit.register(container.event_bus)
    return container


def get_container(request: Request) -> Container:
    return request.app.state.container  # type: ignore[no-any-return]


# ── DB session dependency ────────────────────────────────────
async def get_db_session(
    container: Container = Depends(get_container),
) -> AsyncGenerator[AsyncSession, None]:
    async with container.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_provider_repository(
    session: AsyncSession = Depends(get_db_session),
) -> SQLAlchemyProviderConfigRepository:
    return SQLAlchemyProviderConfigRepository(session)


# ── Auth dependency ──────────────────────────────────────────
async def get_current_user(
    authorization: str = Header(None, alias="Authorization"),
    container: Container = Depends(get_container),
) -> dict[str, Any]:
    """Verify the bearer JWT issued by the auth service."""
    settings = container.settings
    payload = decode_token(
        parse_bearer(authorization), settings.jwt_secret_key, settings.jwt_algorithm
    )
    return {
        "username": payload["sub"],
        "role": payload.get("role", "viewer"),
    }


# ── Use-case handler factories ───────────────────────────────
def get_list_providers_handler(
    container: Container = Depends(get_container),
) -> ListSupportedProvidersHandler:
    return ListSupportedProvidersHandler(container.catalog)


def get_schema_handler(container: Container = Depends(get_container)) -> GetSchemaHandler:
    return GetSchemaHandler(container.catalog)


def get_render_form_handler(
    container: Container = Depends(get_container),
    repo: SQLAlchemyProviderConfigRepository = Depends(get_provider_repository),
) -> RenderFormHandler:
    return RenderFormHandler(container.catalog, container.form_engine, repo)


def get_current_configuration_handler(
    repo: SQLAlchemyProviderConfigRepository = Depends(get_provider_repository),
) -> GetCurrentConfigurationHandler:
    return GetCurrentConfigurationHandler(repo)


def get_health_handler(container: Container = Depends(get_container)) -> GetHealthHandler:
    return GetHealthHandler(container.aggregator)


def get_test_connection_handler(
    container: Container = Depends(get_container),
) -> TestConnectionHandler:
    return TestConnectionHandler(
        catalog=container.catalog,
        form_engine=container.form_engine,
        probe=container.probe,
        gate=container.gate,
        event_bus=container.event_bus,
    )


def get_save_provider_handler(
    container: Container = Depends(get_container),
    repo: SQLAlchemyProviderConfigRepository = Depends(get_provider_repository),
) -> SaveProviderHandler:
    return SaveProviderHandler(
        catalog=container.catalog,
        form_engine=container.form_engine,
        repo=repo,
        registry=container.registry,
        gate=container.gate,
        event_bus=container.event_bus,
    )


def get_probe_active_handler(
    container: Container = Depends(get_container),
) -> ProbeActiveProviderHandler:
    return ProbeActiveProviderHandler(
        probe=container.probe,
        registry=container.registry,
        gate=container.gate,
        event_bus=container.event_bus,
    )


def get_record_outcome_handler(
    container: Container = Depends(get_container),
) -> RecordCallOutcomeHandler:
    return RecordCallOutcomeHandler(container.registry)


def get_reset_provider_handler(
    container: Container = Depends(get_container),
) -> ResetProviderHandler:
    return ResetProviderHandler(container.registry)
