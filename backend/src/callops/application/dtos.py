"""Data Transfer Objects — Pydantic models for API boundaries.

DTOs handle serialisation, validation, and documentation.  They live in the
application layer because they are *not* domain objects; they adapt between
the external world and the domain.
"""

from __future__ import annotations

from datetime import datetime
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

from callops.domain.catalog import SupportedProvider
from callops.domain.entities import ProviderConfiguration
from callops.domain.enums import (
    CircuitState,
    FieldType,
    ProviderSlot,
    WorkflowOutcome,
    WorkflowPhase,
)
from callops.domain.services.form_engine import RenderedField
from callops.domain.value_objects import FieldDescriptor, ProviderSchema

SECRET_MASK = "********"

DraftValueIn = Union[str, int, float]


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class FieldErrorResponse(BaseModel):
    field: str
    reason: str


class ErrorResponse(BaseModel):
    code: str
    message: str
    errors: list[FieldErrorResponse] | None = None


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    services: dict[str, str] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════
#  Catalog & schema
# ═══════════════════════════════════════════════════════════════
class SupportedProviderResponse(BaseModel):
    name: str
    label: str
    description: str
    features: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    pricing: str = ""

    @classmethod
    def from_entry(cls, entry: SupportedProvider) -> SupportedProviderResponse:
        return cls(
            name=entry.name,
            label=entry.label,
            description=entry.description,
            features=list(entry.features),
            languages=list(entry.languages),
            pricing=entry.pricing,
        )


class FieldOptionResponse(BaseModel):
    value: str
    label: str


class FieldDescriptorResponse(BaseModel):
    label: str
    type: FieldType
    required: bool = False
    options: list[FieldOptionResponse] = Field(default_factory=list)
    min: int | float | None = None
    max: int | float | None = None
    step: int | float | None = None
    help: str | None = None
    placeholder: str | None = None
    rows: int | None = None

    @classmethod
    def from_descriptor(cls, d: FieldDescriptor) -> FieldDescriptorResponse:
        return cls(
            label=d.label,
            type=d.type,
            required=d.required,
            options=[FieldOptionResponse(value=o.value, label=o.label) for o in d.options],
            min=d.min,
            max=d.max,
            step=d.step,
            help=d.help,
            placeholder=d.placeholder,
            rows=d.rows if d.type == FieldType.TEXTAREA else None,
        )


class ProviderSchemaResponse(BaseModel):
    provider: str
    fields: dict[str, FieldDescriptorResponse]

    @classmethod
    def from_schema(cls, schema: ProviderSchema) -> ProviderSchemaResponse:
        return cls(
            provider=schema.provider,
            fields={key: FieldDescriptorResponse.from_descriptor(d) for key, d in schema.items()},
        )


class RenderedFieldResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    label: str
    widget: FieldType
    value: str
    required: bool
    options: list[FieldOptionResponse] = Field(default_factory=list)
    min: int | float | None = None
    max: int | float | None = None
    step: int | float | None = None
    help: str | None = None
    placeholder: str | None = None
    rows: int = 4
    has_value: bool = False

    @classmethod
    def from_rendered(cls, f: RenderedField) -> RenderedFieldResponse:
        return cls(
            key=f.key,
            label=f.label,
            widget=f.widget,
            value=f.value,
            required=f.required,
            options=[FieldOptionResponse(value=o.value, label=o.label) for o in f.options],
            min=f.min,
            max=f.max,
            step=f.step,
            help=f.help,
            placeholder=f.placeholder,
            rows=f.rows,
            has_value=f.has_value,
        )


class WorkflowStatusResponse(BaseModel):
    """Phase of the slot's test/activate workflow and how the last action ended."""

    model_config = ConfigDict(from_attributes=True)

    phase: WorkflowPhase = WorkflowPhase.IDLE
    last_outcome: WorkflowOutcome | None = None
    last_error: str | None = None


class ProviderFormResponse(BaseModel):
    provider: str
    slot: ProviderSlot
    fields: list[RenderedFieldResponse]
    workflow: WorkflowStatusResponse = Field(default_factory=WorkflowStatusResponse)


# ═══════════════════════════════════════════════════════════════
#  Test / save workflow
# ═══════════════════════════════════════════════════════════════
class TestConnectionRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    provider: str = Field(..., min_length=1, max_length=50, examples=["twilio"])
    slot: ProviderSlot = ProviderSlot.PRIMARY
    credentials: dict[str, DraftValueIn] = Field(default_factory=dict)


class TestResultResponse(BaseModel):
    success: bool
    error: str | None = None


class SaveProviderRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    slot: ProviderSlot = ProviderSlot.PRIMARY
    credentials: dict[str, DraftValueIn] = Field(default_factory=dict)
    backup_provider: str | None = Field(None, max_length=50, examples=["exotel"])


class ProviderConfigurationResponse(BaseModel):
    id: str
    slot: ProviderSlot
    provider: str
    credentials: dict[str, DraftValueIn]
    backup_provider: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    activated_at: datetime | None = None

    @classmethod
    def from_entity(
        cls, cfg: ProviderConfiguration, schema: ProviderSchema
    ) -> ProviderConfigurationResponse:
        """Build the response with every password-type value masked."""
        secrets = schema.secret_keys
        return cls(
            id=cfg.id,
            slot=cfg.slot,
            provider=cfg.provider,
            credentials={
                k: (SECRET_MASK if k in secrets else v) for k, v in cfg.credentials.items()
            },
            backup_provider=cfg.backup_provider,
            is_active=cfg.is_active,
            created_at=cfg.created_at,
            updated_at=cfg.updated_at,
            activated_at=cfg.activated_at,
        )


class CurrentConfigurationResponse(BaseModel):
    slot: ProviderSlot
    configured: bool
    configuration: ProviderConfigurationResponse | None = None


# ═══════════════════════════════════════════════════════════════
#  Health & breaker
# ═══════════════════════════════════════════════════════════════
class HealthSnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    slot: ProviderSlot
    provider: str | None = None
    configured: bool
    is_healthy: bool
    circuit_breaker_state: CircuitState | None = None
    consecutive_failures: int
    error_count: int
    last_error: str | None = None
    last_tested: datetime | None = None
    opened_at: datetime | None = None
    backup_provider: str | None = None
    failover_active: bool = False


class CallOutcomeRequest(BaseModel):
    success: bool
    error: str | None = Field(None, max_length=2000)


class ProbeResponse(BaseModel):
    success: bool
    error: str | None = None
    health: HealthSnapshotResponse
