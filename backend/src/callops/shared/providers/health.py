"""Health aggregation across the primary and backup provider slots.

Snapshots are pure reads of the registry and the breakers; nothing is
cached, so a refresh is simply another read that also republishes the
breaker state gauge.
"""

from __future__ import annotations

import structlog

from callops.domain.enums import CircuitState, ProviderSlot
from callops.shared.observability.metrics import set_breaker_state
from callops.shared.providers.registry import BreakerRegistry, SlotEntry
from callops.shared.providers.types import HealthSnapshot

logger = structlog.get_logger(__name__)


class ProviderHealthAggregator:
    """Combines breaker state with backup availability into health snapshots."""

    def __init__(self, registry: BreakerRegistry) -> None:
        self._registry = registry

    def snapshot(self, slot: ProviderSlot = ProviderSlot.PRIMARY) -> HealthSnapshot:
        entry = self._registry.get(slot)
        backup_provider, backup_closed = self._backup_of(slot, entry)

        if entry is None:
            return HealthSnapshot(slot=slot, backup_provider=backup_provider)

        state = entry.breaker.snapshot
        return HealthSnapshot(
            slot=slot,
            provider=entry.provider,
            configured=True,
            is_healthy=state.state == CircuitState.CLOSED,
            circuit_breaker_state=state.state,
            consecutive_failures=state.consecutive_failures,
            error_count=state.error_count,
            last_error=state.last_error,
            last_tested=state.last_tested,
            opened_at=state.opened_at,
            backup_provider=backup_provider,
            failover_active=state.state != CircuitState.CLOSED and backup_closed,
        )

    def refresh(self, slot: ProviderSlot = ProviderSlot.PRIMARY) -> HealthSnapshot:
        """Fresh snapshot; also pushes the current state to the metrics gauge."""
        snap = self.snapshot(slot)
        state = snap.circuit_breaker_state
        if state is not None:
            entry = self._registry.require(slot)
            set_breaker_state(entry.breaker.name, state.value)
        logger.debug(
            "provider_health_refreshed",
            slot=slot.value,
            state=state.value if state else None,
            failover_active=snap.failover_active,
        )
        return snap

    def route(self) -> ProviderSlot:
        """Slot that new traffic should go to right now."""
        if self.snapshot(ProviderSlot.PRIMARY).failover_active:
            return ProviderSlot.BACKUP
        return ProviderSlot.PRIMARY

    # ── Internals ────────────────────────────────────────────
    def _backup_of(
        self, slot: ProviderSlot, entry: SlotEntry | None
    ) -> tuple[str | None, bool]:
        """Backup provider name for a slot and whether it can take traffic."""
        if slot != ProviderSlot.PRIMARY:
            return None, False
        backup = self._registry.get(ProviderSlot.BACKUP)
        if backup is not None:
            return backup.provider, backup.breaker.state == CircuitState.CLOSED
        declared = entry.configuration.backup_provider if entry else None
        return declared, False
