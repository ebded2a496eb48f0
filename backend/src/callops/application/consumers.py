"""Event consumers (handlers) for domain events.

Bridges the internal event bus to the audit log so every provider test,
activation and recovery probe leaves a structured trail.
"""

from __future__ import annotations

import structlog

from callops.domain.events import DomainEvent
from callops.ports.outbound import EventBusPort

logger = structlog.get_logger("callops.audit")

AUDITED_EVENTS = ("PROVIDER_TESTED", "PROVIDER_ACTIVATED", "PROVIDER_PROBED")


class ProviderAuditConsumer:
    """Writes one audit record per provider workflow event."""

    def __init__(self) -> None:
        self.recorded: int = 0

    def register(self, bus: EventBusPort) -> None:
        for event_type in AUDITED_EVENTS:
            bus.subscribe(event_type, self.handle)

    async def handle(self, event: DomainEvent) -> None:
        fields = {
            k: getattr(event, k)
            for k in event.__dataclass_fields__
            if k not in ("event_type", "occurred_at", "metadata")
        }
        logger.info(
            "provider_audit",
            event_type=event.event_type,
            occurred_at=event.occurred_at.isoformat(),
            **fields,
        )
        self.recorded += 1
