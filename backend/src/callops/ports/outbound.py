"""Outbound ports — interfaces that infrastructure adapters must implement.

These are the *driven* ports in hexagonal architecture.  The domain and
application layers depend only on these abstractions, never on concrete
implementations (database drivers, HTTP clients, etc.).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from callops.domain.entities import ProviderConfiguration
from callops.domain.enums import ProviderSlot
from callops.domain.events import DomainEvent
from callops.domain.value_objects import DraftValue


# ═══════════════════════════════════════════════════════════════
#  Repository ports
# ═══════════════════════════════════════════════════════════════
class ProviderConfigRepository(ABC):
    """Persistence for provider configurations, one active row per slot."""

    @abstractmethod
    async def save_active(self, configuration: ProviderConfiguration) -> ProviderConfiguration:
        """Commit ``configuration`` as the slot's active row, retiring the previous one.

        The write is durable once this returns. Raises ``PersistenceError`` when
        the store rejects or fails to commit the write.
        """

    @abstractmethod
    async def get_active(self, slot: ProviderSlot) -> ProviderConfiguration | None: ...

    @abstractmethod
    async def list_active(self) -> list[ProviderConfiguration]: ...


# ═══════════════════════════════════════════════════════════════
#  Connectivity probe port
# ═══════════════════════════════════════════════════════════════
class ConnectivityProbePort(ABC):
    """Live reachability/credential check against a provider's API."""

    @abstractmethod
    async def probe(self, provider: str, credentials: Mapping[str, DraftValue]) -> None:
        """Return normally when reachable; raise ``ProbeError`` otherwise."""


# ═══════════════════════════════════════════════════════════════
#  Event bus port
# ═══════════════════════════════════════════════════════════════
class EventBusPort(ABC):
    """Publish/subscribe for domain events."""

    @abstractmethod
    async def publish(self, event: DomainEvent) -> None: ...

    @abstractmethod
    def subscribe(
        self,
        event_type: str,
        handler: Any,
    ) -> None: ...
