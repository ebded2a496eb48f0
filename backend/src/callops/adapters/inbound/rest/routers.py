"""Health and Provider configuration — REST routers."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import ORJSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from starlette.responses import Response

from callops.application.commands import (
    ProbeActiveProviderCommand,
    ProbeActiveProviderHandler,
    RecordCallOutcomeCommand,
    RecordCallOutcomeHandler,
    ResetProviderCommand,
    ResetProviderHandler,
    SaveProviderCommand,
    SaveProviderHandler,
    TestConnectionCommand,
    TestConnectionHandler,
)
from callops.application.dtos import (
    CallOutcomeRequest,
    CurrentConfigurationResponse,
    ErrorResponse,
    HealthResponse,
    HealthSnapshotResponse,
    ProbeResponse,
    ProviderConfigurationResponse,
    ProviderFormResponse,
    ProviderSchemaResponse,
    RenderedFieldResponse,
    SaveProviderRequest,
    SupportedProviderResponse,
    TestConnectionRequest,
    TestResultResponse,
    WorkflowStatusResponse,
)
from callops.application.queries import (
    GetCurrentConfigurationHandler,
    GetCurrentConfigurationQuery,
    GetHealthHandler,
    GetHealthQuery,
    GetSchemaHandler,
    GetSchemaQuery,
    ListSupportedProvidersHandler,
    RenderFormHandler,
    RenderFormQuery,
)
from callops.dependencies import (
    Container,
    get_container,
    get_current_configuration_handler,
    get_current_user,
    get_health_handler,
    get_list_providers_handler,
    get_probe_active_handler,
    get_record_outcome_handler,
    get_render_form_handler,
    get_reset_provider_handler,
    get_save_provider_handler,
    get_schema_handler,
    get_test_connection_handler,
)
from callops.domain.enums import ProviderSlot
from callops.shared.security.rbac import ADMIN, OPERATOR, require_role

# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check(container: Container = Depends(get_container)) -> Any:
    settings = container.settings

    db_status = "connected"
    try:
        async with container.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        db_status = "disconnected"

    body = HealthResponse(
        status="ok" if db_status == "connected" else "degraded",
        environment=settings.app_env.value,
        services={"database": db_status},
    )
    return ORJSONResponse(
        status_code=200 if db_status == "connected" else 503,
        content=body.model_dump(),
    )


@health_router.get("/metrics")
async def prometheus_metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
providers_router = APIRouter(
    prefix="/providers",
    tags=["Providers"],
    dependencies=[Depends(get_current_user)],
    responses={401: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)


@providers_router.get("/supported", response_model=list[SupportedProviderResponse])
async def list_supported_providers(
    handler: ListSupportedProvidersHandler = Depends(get_list_providers_handler),
) -> list[SupportedProviderResponse]:
    entries = await handler.handle()
    return [SupportedProviderResponse.from_entry(e) for e in entries]


@providers_router.get("/current", response_model=CurrentConfigurationResponse)
async def current_configuration(
    slot: ProviderSlot = Query(ProviderSlot.PRIMARY),
    handler: GetCurrentConfigurationHandler = Depends(get_current_configuration_handler),
    container: Container = Depends(get_container),
) -> CurrentConfigurationResponse:
    cfg = await handler.handle(GetCurrentConfigurationQuery(slot=slot))
    if cfg is None:
        return CurrentConfigurationResponse(slot=slot, configured=False)
    return CurrentConfigurationResponse(
        slot=slot,
        configured=True,
        configuration=ProviderConfigurationResponse.from_entity(
            cfg, container.catalog.schema(cfg.provider)
        ),
    )


@providers_router.post("/test", response_model=TestResultResponse)
async def test_connection(
    body: TestConnectionRequest,
    handler: TestConnectionHandler = Depends(get_test_connection_handler),
    _user: dict = Depends(require_role(ADMIN, OPERATOR)),
) -> TestResultResponse:
    """Probe a draft configuration without saving it."""
    result = await handler.handle(
        TestConnectionCommand(provider=body.provider, credentials=body.credentials, slot=body.slot)
    )
    return TestResultResponse(success=result.success, error=result.error)


@providers_router.post(
    "/select/{provider}",
    response_model=ProviderConfigurationResponse,
    responses={409: {"model": ErrorResponse}},
)
async def save_provider(
    provider: str,
    body: SaveProviderRequest,
    handler: SaveProviderHandler = Depends(get_save_provider_handler),
    container: Container = Depends(get_container),
    _user: dict = Depends(require_role(ADMIN, OPERATOR)),
) -> ProviderConfigurationResponse:
    """Validate, persist and activate a provider configuration for a slot."""
    saved = await handler.handle(
        SaveProviderCommand(
            provider=provider,
            credentials=body.credentials,
            slot=body.slot,
            backup_provider=body.backup_provider,
        )
    )
    return ProviderConfigurationResponse.from_entity(saved, container.catalog.schema(provider))


# ── Health & breaker ─────────────────────────────────────────
@providers_router.get("/health/{slot}", response_model=HealthSnapshotResponse)
async def provider_health(
    slot: ProviderSlot,
    handler: GetHealthHandler = Depends(get_health_handler),
) -> HealthSnapshotResponse:
    snap = await handler.handle(GetHealthQuery(slot=slot))
    return HealthSnapshotResponse.model_validate(snap)


@providers_router.post("/health/{slot}/refresh", response_model=HealthSnapshotResponse)
async def refresh_provider_health(
    slot: ProviderSlot,
    handler: GetHealthHandler = Depends(get_health_handler),
) -> HealthSnapshotResponse:
    snap = await handler.handle(GetHealthQuery(slot=slot, refresh=True))
    return HealthSnapshotResponse.model_validate(snap)


@providers_router.post(
    "/health/{slot}/outcomes",
    response_model=HealthSnapshotResponse,
    responses={404: {"model": ErrorResponse}},
)
async def report_call_outcome(
    slot: ProviderSlot,
    body: CallOutcomeRequest,
    handler: RecordCallOutcomeHandler = Depends(get_record_outcome_handler),
    health: GetHealthHandler = Depends(get_health_handler),
) -> HealthSnapshotResponse:
    """Report the outcome of a live call made through the slot's provider."""
    await handler.handle(RecordCallOutcomeCommand(slot=slot, success=body.success, error=body.error))
    snap = await health.handle(GetHealthQuery(slot=slot))
    return HealthSnapshotResponse.model_validate(snap)


@providers_router.post(
    "/{slot}/probe",
    response_model=ProbeResponse,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def probe_active_provider(
    slot: ProviderSlot,
    handler: ProbeActiveProviderHandler = Depends(get_probe_active_handler),
    health: GetHealthHandler = Depends(get_health_handler),
    _user: dict = Depends(require_role(ADMIN, OPERATOR)),
) -> ProbeResponse:
    """Manual recovery probe of the slot's active configuration."""
    result = await handler.handle(ProbeActiveProviderCommand(slot=slot))
    snap = await health.handle(GetHealthQuery(slot=slot))
    return ProbeResponse(
        success=result.success,
        error=result.error,
        health=HealthSnapshotResponse.model_validate(snap),
    )


@providers_router.post("/{slot}/reset", response_model=HealthSnapshotResponse)
async def reset_provider(
    slot: ProviderSlot,
    handler: ResetProviderHandler = Depends(get_reset_provider_handler),
    health: GetHealthHandler = Depends(get_health_handler),
    user: dict = Depends(require_role(ADMIN)),
) -> HealthSnapshotResponse:
    """Admin: force the slot's circuit breaker back to CLOSED."""
    await handler.handle(ResetProviderCommand(slot=slot, requested_by=user["username"]))
    snap = await health.handle(GetHealthQuery(slot=slot))
    return HealthSnapshotResponse.model_validate(snap)


# ── Schema & form (catch-all provider paths last) ────────────
@providers_router.get("/{provider}/schema", response_model=ProviderSchemaResponse)
async def provider_schema(
    provider: str,
    handler: GetSchemaHandler = Depends(get_schema_handler),
) -> ProviderSchemaResponse:
    schema = await handler.handle(GetSchemaQuery(provider=provider))
    return ProviderSchemaResponse.from_schema(schema)


@providers_router.get("/{provider}/form", response_model=ProviderFormResponse)
async def provider_form(
    provider: str,
    slot: ProviderSlot = Query(ProviderSlot.PRIMARY),
    handler: RenderFormHandler = Depends(get_render_form_handler),
    container: Container = Depends(get_container),
) -> ProviderFormResponse:
    fields = await handler.handle(RenderFormQuery(provider=provider, slot=slot))
    return ProviderFormResponse(
        provider=provider,
        slot=slot,
        fields=[RenderedFieldResponse.from_rendered(f) for f in fields],
        workflow=WorkflowStatusResponse.model_validate(container.gate.status(slot)),
    )
