"""Provider resilience framework.

Provides circuit breaking, slot registry, health aggregation and
primary → backup failover for the configured call providers.
"""

from callops.shared.providers.types import (
    BreakerPolicy,
    BreakerState,
    HealthSnapshot,
)
from callops.shared.providers.circuit_breaker import CircuitBreaker
from callops.shared.providers.registry import BreakerRegistry, SlotEntry
from callops.shared.providers.health import ProviderHealthAggregator
from callops.shared.providers.gateway import (
    AllProvidersExhaustedError,
    ResilientProviderGateway,
)

__all__ = [
    "AllProvidersExhaustedError",
    "BreakerPolicy",
    "BreakerRegistry",
    "BreakerState",
    "CircuitBreaker",
    "HealthSnapshot",
    "ProviderHealthAggregator",
    "ResilientProviderGateway",
    "SlotEntry",
]
