"""Circuit breaker — prevents cascading failures by isolating unhealthy providers.

State machine:
    CLOSED    → (F consecutive failures)   → OPEN
    OPEN      → (cooldown C elapsed)       → HALF_OPEN
    OPEN      → (manual probe, if allowed) → HALF_OPEN
    HALF_OPEN → (probe succeeds)           → CLOSED
    HALF_OPEN → (probe fails)              → OPEN

The cooldown is evaluated lazily: there is no timer.  Readers compute the
half-open view from ``opened_at`` on the fly; the next writer commits it
before applying its outcome.  State lives in an immutable ``BreakerState``
that writers replace under a lock, so readers never block.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from callops.domain.enums import CircuitState
from callops.domain.exceptions import BreakerRejection
from callops.shared.observability.metrics import (
    BREAKER_REJECTIONS,
    record_breaker_transition,
    set_breaker_state,
)
from callops.shared.providers.types import BreakerPolicy, BreakerState

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CircuitBreaker:
    """Per-slot circuit breaker with lazy half-open probing."""

    def __init__(
        self,
        name: str,
        *,
        policy: BreakerPolicy | None = None,
        clock: Clock = utcnow,
        initial: BreakerState | None = None,
    ) -> None:
        self._name = name
        self._policy = policy or BreakerPolicy()
        self._clock = clock
        self._state = initial or BreakerState()
        self._lock = threading.Lock()
        set_breaker_state(name, self._state.state.value)

    @property
    def name(self) -> str:
        return self._name

    @property
    def policy(self) -> BreakerPolicy:
        return self._policy

    # ── Reads (lock-free) ────────────────────────────────────
    @property
    def snapshot(self) -> BreakerState:
        """Current state with any elapsed cooldown already applied."""
        return self._advance(self._state, self._clock())

    @property
    def state(self) -> CircuitState:
        return self.snapshot.state

    # ── Gating ───────────────────────────────────────────────
    def can_execute(self) -> bool:
        """Check if the circuit lets a call through, reserving the probe if half-open."""
        with self._lock:
            current = self._commit_cooldown(self._clock())

            if current.state == CircuitState.CLOSED:
                return True

            if current.state == CircuitState.HALF_OPEN and not current.probe_in_flight:
                self._state = current.evolve(probe_in_flight=True)
                return True

            BREAKER_REJECTIONS.labels(breaker=self._name).inc()
            return False

    def acquire(self) -> None:
        """Like ``can_execute`` but raises ``BreakerRejection`` when refused."""
        if not self.can_execute():
            raise BreakerRejection(self._name, self.state.value)

    def begin_manual_probe(self) -> None:
        """Claim the recovery probe for an operator-initiated test.

        An open circuit moves straight to half-open when the policy allows
        manual probes to skip the cooldown; otherwise the probe waits for it.
        """
        with self._lock:
            now = self._clock()
            current = self._commit_cooldown(now)

            if current.state == CircuitState.CLOSED:
                return

            if (
                current.state == CircuitState.OPEN
                and self._policy.manual_probe_bypasses_cooldown
            ):
                current = self._transition(current, CircuitState.HALF_OPEN, reason="manual_probe")

            if current.state == CircuitState.HALF_OPEN and not current.probe_in_flight:
                self._state = current.evolve(probe_in_flight=True)
                return

            BREAKER_REJECTIONS.labels(breaker=self._name).inc()
            raise BreakerRejection(self._name, current.state.value)

    def release_probe(self) -> None:
        """Give back a reserved probe whose call never produced an outcome."""
        with self._lock:
            if self._state.probe_in_flight:
                self._state = self._state.evolve(probe_in_flight=False)

    # ── Outcomes ─────────────────────────────────────────────
    def record_success(self) -> None:
        """Record a successful call; closes a half-open circuit."""
        with self._lock:
            now = self._clock()
            current = self._commit_cooldown(now)

            if current.state == CircuitState.OPEN:
                # Stale outcome from a call admitted before the circuit opened.
                self._state = current.evolve(last_tested=now)
                return

            if current.state == CircuitState.HALF_OPEN:
                current = self._transition(current, CircuitState.CLOSED)

            self._state = current.evolve(
                consecutive_failures=0,
                last_tested=now,
                opened_at=None,
                probe_in_flight=False,
            )

    def record_failure(self, error: str | None = None) -> None:
        """Record a failed call; may trip the circuit."""
        with self._lock:
            now = self._clock()
            current = self._commit_cooldown(now)
            current = current.evolve(
                consecutive_failures=current.consecutive_failures + 1,
                error_count=current.error_count + 1,
                last_error=error or current.last_error,
                last_tested=now,
            )

            if current.state == CircuitState.HALF_OPEN:
                current = self._transition(current, CircuitState.OPEN, reason="probe_failed")
                current = current.evolve(opened_at=now, probe_in_flight=False)
            elif (
                current.state == CircuitState.CLOSED
                and current.consecutive_failures >= self._policy.failure_threshold
            ):
                current = self._transition(current, CircuitState.OPEN, reason="threshold")
                current = current.evolve(opened_at=now)

            self._state = current

    def reset(self) -> None:
        """Force-reset the circuit to CLOSED (for admin override)."""
        with self._lock:
            current = self._state
            if current.state != CircuitState.CLOSED:
                record_breaker_transition(self._name, current.state.value, CircuitState.CLOSED.value)
            self._state = current.evolve(
                state=CircuitState.CLOSED,
                consecutive_failures=0,
                opened_at=None,
                probe_in_flight=False,
            )
            logger.info(
                "circuit_breaker_force_reset",
                breaker=self._name,
                previous_state=current.state.value,
            )

    # ── Internals ────────────────────────────────────────────
    def _advance(self, current: BreakerState, now: datetime) -> BreakerState:
        if current.state != CircuitState.OPEN or current.opened_at is None:
            return current
        elapsed = (now - current.opened_at).total_seconds()
        if elapsed >= self._policy.cooldown_seconds:
            return current.evolve(state=CircuitState.HALF_OPEN, probe_in_flight=False)
        return current

    def _commit_cooldown(self, now: datetime) -> BreakerState:
        """Caller must hold lock."""
        current = self._state
        advanced = self._advance(current, now)
        if advanced is not current:
            logger.info(
                "circuit_breaker_half_open",
                breaker=self._name,
                elapsed_s=round((now - current.opened_at).total_seconds(), 1),  # type: ignore[operator]
            )
            record_breaker_transition(self._name, current.state.value, advanced.state.value)
            self._state = advanced
        return advanced

    def _transition(
        self,
        current: BreakerState,
        target: CircuitState,
        *,
        reason: str | None = None,
    ) -> BreakerState:
        """Caller must hold lock."""
        record_breaker_transition(self._name, current.state.value, target.value)
        log = logger.bind(breaker=self._name, previous_state=current.state.value)
        if target == CircuitState.OPEN and current.state == CircuitState.HALF_OPEN:
            log.warning(
                "circuit_breaker_reopened",
                failures=current.consecutive_failures,
                last_error=current.last_error,
            )
        elif target == CircuitState.OPEN:
            log.warning(
                "circuit_breaker_opened",
                failures=current.consecutive_failures,
                cooldown_s=self._policy.cooldown_seconds,
                last_error=current.last_error,
            )
        elif target == CircuitState.HALF_OPEN:
            log.info("circuit_breaker_half_open", reason=reason)
        else:
            log.info("circuit_breaker_closed")
        return current.evolve(state=target)
