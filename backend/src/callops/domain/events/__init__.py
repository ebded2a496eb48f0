"""Domain events — typed records of things that happened in the domain.

Events are published *after* a successful domain operation so that other
bounded contexts or infrastructure adapters can react asynchronously.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class DomainEvent:
    """Base class for all domain events."""

    event_type: str = "DOMAIN_EVENT"
    occurred_at: datetime = field(default_factory=_utcnow)
    metadata: dict[str, Any] = field(default_factory=dict)


# ── Provider workflow events ─────────────────────────────────
@dataclass(frozen=True, slots=True)
class ProviderTestedEvent(DomainEvent):
    event_type: str = "PROVIDER_TESTED"
    provider: str = ""
    slot: str = ""
    success: bool = False
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ProviderActivatedEvent(DomainEvent):
    event_type: str = "PROVIDER_ACTIVATED"
    configuration_id: str = ""
    provider: str = ""
    slot: str = ""
    backup_provider: str | None = None


@dataclass(frozen=True, slots=True)
class ProviderProbedEvent(DomainEvent):
    """Manual recovery probe against an activated provider."""

    event_type: str = "PROVIDER_PROBED"
    provider: str = ""
    slot: str = ""
    success: bool = False
    circuit_state: str = ""
