"""Domain enumerations for provider configuration and resilience."""

from __future__ import annotations

import enum


class FieldType(str, enum.Enum):
    """Input kind of a configurable provider field."""

    TEXT = "text"
    PASSWORD = "password"
    NUMBER = "number"
    SELECT = "select"
    TEXTAREA = "textarea"

    @classmethod
    def parse(cls, raw: str | None) -> FieldType:
        """Resolve a raw type string, falling back to short text."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            return cls.TEXT

    @property
    def is_secret(self) -> bool:
        return self is FieldType.PASSWORD


class ProviderSlot(str, enum.Enum):
    """Position a provider configuration occupies in the failover pair."""

    PRIMARY = "primary"
    BACKUP = "backup"

    @property
    def other(self) -> ProviderSlot:
        return ProviderSlot.BACKUP if self is ProviderSlot.PRIMARY else ProviderSlot.PRIMARY


class CircuitState(str, enum.Enum):
    """Circuit breaker state, rendered upper-case on the wire."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class WorkflowPhase(str, enum.Enum):
    """In-flight action of the test/activate workflow for one slot."""

    IDLE = "IDLE"
    TESTING = "TESTING"
    SAVING = "SAVING"


class WorkflowOutcome(str, enum.Enum):
    """Terminal result of the last workflow action for one slot."""

    TEST_SUCCEEDED = "TEST_SUCCEEDED"
    TEST_FAILED = "TEST_FAILED"
    SAVED = "SAVED"
    SAVE_FAILED = "SAVE_FAILED"
