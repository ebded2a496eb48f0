"""Global exception handlers — map domain errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
import structlog

from callops.domain.exceptions import (
    AuthenticationError,
    AuthorisationError,
    BreakerRejection,
    DomainError,
    PersistenceError,
    ProbeError,
    ProviderNotConfiguredError,
    UnknownProviderError,
    ValidationError,
    WorkflowBusyError,
)
from callops.shared.providers.gateway import AllProvidersExhaustedError

logger = structlog.get_logger(__name__)


def _body(exc: DomainError) -> dict[str, object]:
    return {"code": exc.code, "message": exc.message}


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain→HTTP exception mappings."""

    @app.exception_handler(ValidationError)
    async def handle_validation(request: Request, exc: ValidationError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=422,
            content={
                **_body(exc),
                "errors": [{"field": e.field, "reason": e.reason} for e in exc.errors],
            },
        )

    @app.exception_handler(UnknownProviderError)
    async def handle_unknown_provider(
        request: Request, exc: UnknownProviderError
    ) -> ORJSONResponse:
        return ORJSONResponse(status_code=404, content=_body(exc))

    @app.exception_handler(ProviderNotConfiguredError)
    async def handle_not_configured(
        request: Request, exc: ProviderNotConfiguredError
    ) -> ORJSONResponse:
        return ORJSONResponse(status_code=404, content=_body(exc))

    @app.exception_handler(PersistenceError)
    async def handle_persistence(request: Request, exc: PersistenceError) -> ORJSONResponse:
        logger.warning("persistence_error_http", message=exc.message)
        return ORJSONResponse(status_code=409, content=_body(exc))

    @app.exception_handler(WorkflowBusyError)
    async def handle_busy(request: Request, exc: WorkflowBusyError) -> ORJSONResponse:
        return ORJSONResponse(status_code=409, content=_body(exc))

    @app.exception_handler(BreakerRejection)
    async def handle_breaker(request: Request, exc: BreakerRejection) -> ORJSONResponse:
        logger.info("breaker_rejection_http", breaker=exc.name, state=exc.state)
        return ORJSONResponse(status_code=503, content=_body(exc))

    @app.exception_handler(ProbeError)
    async def handle_probe(request: Request, exc: ProbeError) -> ORJSONResponse:
        logger.error("probe_error_http", provider=exc.provider, message=exc.reason)
        return ORJSONResponse(status_code=502, content=_body(exc))

    @app.exception_handler(AuthenticationError)
    async def handle_authn(request: Request, exc: AuthenticationError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=401,
            content=_body(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(AuthorisationError)
    async def handle_authz(request: Request, exc: AuthorisationError) -> ORJSONResponse:
        return ORJSONResponse(status_code=403, content=_body(exc))

    @app.exception_handler(AllProvidersExhaustedError)
    async def handle_exhausted(
        request: Request, exc: AllProvidersExhaustedError
    ) -> ORJSONResponse:
        logger.error("providers_exhausted_http", errors=exc.errors)
        return ORJSONResponse(
            status_code=502,
            content={"code": "PROVIDERS_EXHAUSTED", "message": str(exc), "errors": exc.errors},
        )

    @app.exception_handler(DomainError)
    async def handle_domain(request: Request, exc: DomainError) -> ORJSONResponse:
        return ORJSONResponse(status_code=400, content=_body(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_exception", error=str(exc))
        return ORJSONResponse(
            status_code=500,
            content={
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )
