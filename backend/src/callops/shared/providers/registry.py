"""Breaker registry — the active configuration and breaker of each slot."""

from __future__ import annotations

import threading
from dataclasses import dataclass

import structlog

from callops.domain.entities import ProviderConfiguration
from callops.domain.enums import ProviderSlot
from callops.domain.exceptions import ProviderNotConfiguredError
from callops.shared.providers.circuit_breaker import CircuitBreaker, Clock, utcnow
from callops.shared.providers.types import BreakerPolicy

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SlotEntry:
    configuration: ProviderConfiguration
    breaker: CircuitBreaker

    @property
    def provider(self) -> str:
        return self.configuration.provider


class BreakerRegistry:
    """Thread-safe slot → (configuration, breaker) map.

    Activating a slot always installs a fresh ``CLOSED`` breaker with zero
    counters; reads take no lock.
    """

    def __init__(self, policy: BreakerPolicy | None = None, *, clock: Clock = utcnow) -> None:
        self._policy = policy or BreakerPolicy()
        self._clock = clock
        self._entries: dict[ProviderSlot, SlotEntry] = {}
        self._lock = threading.Lock()

    @property
    def policy(self) -> BreakerPolicy:
        return self._policy

    def activate(self, configuration: ProviderConfiguration) -> SlotEntry:
        breaker = CircuitBreaker(
            f"{configuration.slot.value}:{configuration.provider}",
            policy=self._policy,
            clock=self._clock,
        )
        entry = SlotEntry(configuration=configuration, breaker=breaker)
        with self._lock:
            previous = self._entries.get(configuration.slot)
            self._entries[configuration.slot] = entry
        logger.info(
            "provider_slot_activated",
            slot=configuration.slot.value,
            provider=configuration.provider,
            replaced=previous.provider if previous else None,
        )
        return entry

    def deactivate(self, slot: ProviderSlot) -> None:
        with self._lock:
            removed = self._entries.pop(slot, None)
        if removed:
            logger.info("provider_slot_deactivated", slot=slot.value, provider=removed.provider)

    def restore(self, configurations: list[ProviderConfiguration]) -> None:
        """Re-install breakers for persisted active configurations at startup."""
        for configuration in configurations:
            if configuration.is_active:
                self.activate(configuration)

    def get(self, slot: ProviderSlot) -> SlotEntry | None:
        return self._entries.get(slot)

    def require(self, slot: ProviderSlot) -> SlotEntry:
        entry = self._entries.get(slot)
        if entry is None:
            raise ProviderNotConfiguredError(slot.value)
        return entry

    def slots(self) -> list[ProviderSlot]:
        return [s for s in ProviderSlot if s in self._entries]
