"""Core types for the provider resilience framework."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from callops.domain.enums import CircuitState, ProviderSlot


@dataclass(frozen=True)
class BreakerPolicy:
    """Static tuning for a circuit breaker.

    Attributes:
        failure_threshold: Consecutive failures (F) before the circuit opens.
        cooldown_seconds:  Seconds (C) an open circuit waits before a probe.
        manual_probe_bypasses_cooldown: Operator probes may start a
            half-open trial before the cooldown elapses.
    """

    failure_threshold: int = 5
    cooldown_seconds: float = 60.0
    manual_probe_bypasses_cooldown: bool = True

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be >= 0")


@dataclass(frozen=True)
class BreakerState:
    """Immutable view of a breaker; replaced wholesale on every transition."""

    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    error_count: int = 0
    last_error: str | None = None
    last_tested: datetime | None = None
    opened_at: datetime | None = None
    probe_in_flight: bool = False

    def evolve(self, **changes: object) -> BreakerState:
        return replace(self, **changes)  # type: ignore[arg-type]


@dataclass(frozen=True)
class HealthSnapshot:
    """Point-in-time health of one provider slot."""

    slot: ProviderSlot
    provider: str | None = None
    configured: bool = False
    is_healthy: bool = False
    circuit_breaker_state: CircuitState | None = None
    consecutive_failures: int = 0
    error_count: int = 0
    last_error: str | None = None
    last_tested: datetime | None = None
    opened_at: datetime | None = None
    backup_provider: str | None = None
    failover_active: bool = False
