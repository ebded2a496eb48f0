"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.
"""

from __future__ import annotations

from dataclasses import dataclass


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Validation ───────────────────────────────────────────────
@dataclass(frozen=True, slots=True)
class FieldError:
    """A single field-level validation failure."""

    field: str
    reason: str


class ValidationError(DomainError):
    """Input failed domain validation rules.

    Carries every field-level failure so the caller can correct them all
    in one pass.
    """

    def __init__(self, errors: list[FieldError] | str) -> None:
        if isinstance(errors, str):
            errors = [FieldError(field="", reason=errors)]
        self.errors = list(errors)
        summary = "; ".join(
            f"{e.field}: {e.reason}" if e.field else e.reason for e in self.errors
        )
        super().__init__(f"Validation failed: {summary}", code="VALIDATION_ERROR")

    @property
    def fields(self) -> list[str]:
        return [e.field for e in self.errors]


# ── Provider workflow ────────────────────────────────────────
class ProbeError(DomainError):
    """Connectivity or credential failure while probing a provider."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        self.reason = message
        super().__init__(f"[{provider}] {message}", code="PROBE_FAILED")


class PersistenceError(DomainError):
    """The configuration store rejected a write."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="PERSISTENCE_ERROR")


class WorkflowBusyError(DomainError):
    def __init__(self, slot: str, phase: str) -> None:
        super().__init__(
            f"Slot {slot!r} is busy ({phase.lower()}); retry once it completes",
            code="WORKFLOW_BUSY",
        )


class UnknownProviderError(DomainError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider {provider!r} is not supported", code="UNKNOWN_PROVIDER")


class ProviderNotConfiguredError(DomainError):
    def __init__(self, slot: str) -> None:
        super().__init__(
            f"No active provider configured for slot {slot!r}",
            code="PROVIDER_NOT_CONFIGURED",
        )


# ── Circuit breaker ──────────────────────────────────────────
class BreakerRejection(DomainError):
    """Call refused because the provider's circuit is open."""

    def __init__(self, name: str, state: str) -> None:
        self.name = name
        self.state = state
        super().__init__(
            f"Circuit for {name!r} is {state}; call not attempted",
            code="CIRCUIT_OPEN",
        )


# ── Auth ─────────────────────────────────────────────────────
class AuthenticationError(DomainError):
    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, code="AUTHENTICATION_ERROR")


class AuthorisationError(DomainError):
    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message, code="AUTHORISATION_ERROR")
