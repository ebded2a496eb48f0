"""Tests for the provider resilience system.

Covers the CircuitBreaker state machine, the BreakerRegistry, the
ProviderHealthAggregator and the ResilientProviderGateway.
"""

from __future__ import annotations

import asyncio
import threading

import pytest

from callops.domain.entities import ProviderConfiguration
from callops.domain.enums import CircuitState, ProviderSlot
from callops.domain.exceptions import BreakerRejection, ProviderNotConfiguredError
from callops.shared.providers.circuit_breaker import CircuitBreaker
from callops.shared.providers.gateway import AllProvidersExhaustedError, ResilientProviderGateway
from callops.shared.providers.health import ProviderHealthAggregator
from callops.shared.providers.registry import BreakerRegistry
from callops.shared.providers.types import BreakerPolicy


def _breaker(clock, *, threshold: int = 5, cooldown: float = 60.0, bypass: bool = True) -> CircuitBreaker:
    return CircuitBreaker(
        "primary:test",
        policy=BreakerPolicy(
            failure_threshold=threshold,
            cooldown_seconds=cooldown,
            manual_probe_bypasses_cooldown=bypass,
        ),
        clock=clock,
    )


def _trip(cb: CircuitBreaker, times: int = 5) -> None:
    for i in range(times):
        cb.record_failure(f"err-{i}")


# ═══════════════════════════════════════════════════════════════
#  CircuitBreaker
# ═══════════════════════════════════════════════════════════════
class TestCircuitBreaker:
    def test_starts_closed(self, clock) -> None:
        cb = _breaker(clock)
        snap = cb.snapshot
        assert snap.state == CircuitState.CLOSED
        assert snap.consecutive_failures == 0
        assert snap.error_count == 0
        assert snap.opened_at is None
        assert cb.can_execute()

    def test_does_not_open_before_threshold(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb, 4)
        assert cb.state == CircuitState.CLOSED
        assert cb.snapshot.consecutive_failures == 4
        assert cb.snapshot.opened_at is None

    def test_opens_after_threshold(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb, 5)
        snap = cb.snapshot
        assert snap.state == CircuitState.OPEN
        assert snap.opened_at == clock.now
        assert snap.last_error == "err-4"
        assert snap.error_count == 5
        assert not cb.can_execute()

    def test_every_outcome_updates_last_tested(self, clock) -> None:
        cb = _breaker(clock)
        cb.record_failure("boom")
        assert cb.snapshot.last_tested == clock.now
        clock.advance(5)
        cb.record_success()
        assert cb.snapshot.last_tested == clock.now
        assert cb.snapshot.last_error == "boom"

    def test_success_resets_consecutive_failures(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb, 3)
        cb.record_success()
        assert cb.snapshot.consecutive_failures == 0
        assert cb.snapshot.error_count == 3
        _trip(cb, 4)
        assert cb.state == CircuitState.CLOSED

    def test_open_rejects_until_cooldown(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb)
        clock.advance(59)
        assert cb.state == CircuitState.OPEN
        assert not cb.can_execute()
        with pytest.raises(BreakerRejection):
            cb.acquire()

    def test_snapshot_sees_half_open_after_cooldown(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb)
        opened = clock.now
        clock.advance(60)
        snap = cb.snapshot
        assert snap.state == CircuitState.HALF_OPEN
        assert snap.opened_at == opened

    def test_half_open_admits_exactly_one_probe(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb)
        clock.advance(61)
        assert cb.can_execute()
        assert not cb.can_execute()
        assert cb.snapshot.probe_in_flight

    def test_half_open_to_closed_on_success(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb)
        clock.advance(61)
        assert cb.can_execute()
        cb.record_success()
        snap = cb.snapshot
        assert snap.state == CircuitState.CLOSED
        assert snap.consecutive_failures == 0
        assert snap.opened_at is None
        assert snap.last_tested == clock.now
        assert not snap.probe_in_flight

    def test_half_open_to_open_on_failure(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb)
        clock.advance(61)
        before = cb.snapshot.error_count
        assert cb.can_execute()
        cb.record_failure("still down")
        snap = cb.snapshot
        assert snap.state == CircuitState.OPEN
        assert snap.opened_at == clock.now
        assert snap.error_count == before + 1
        assert snap.last_error == "still down"

    def test_outcome_after_cooldown_commits_half_open_first(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb)
        clock.advance(120)
        # No explicit probe reservation: the outcome is applied to HALF_OPEN.
        cb.record_success()
        assert cb.state == CircuitState.CLOSED

    def test_stale_success_while_open_only_touches_last_tested(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb)
        clock.advance(10)
        cb.record_success()
        snap = cb.snapshot
        assert snap.state == CircuitState.OPEN
        assert snap.consecutive_failures == 5
        assert snap.last_tested == clock.now

    def test_manual_probe_bypasses_cooldown(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb)
        clock.advance(5)
        cb.begin_manual_probe()
        assert cb.state == CircuitState.HALF_OPEN
        assert not cb.can_execute()
        cb.record_success()
        assert cb.state == CircuitState.CLOSED

    def test_manual_probe_respects_cooldown_when_configured(self, clock) -> None:
        cb = _breaker(clock, bypass=False)
        _trip(cb)
        clock.advance(5)
        with pytest.raises(BreakerRejection):
            cb.begin_manual_probe()
        clock.advance(60)
        cb.begin_manual_probe()
        assert cb.snapshot.probe_in_flight

    def test_manual_probe_on_closed_circuit_is_a_no_op(self, clock) -> None:
        cb = _breaker(clock)
        cb.begin_manual_probe()
        assert cb.state == CircuitState.CLOSED
        assert not cb.snapshot.probe_in_flight

    def test_release_probe_frees_half_open_slot(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb)
        clock.advance(61)
        assert cb.can_execute()
        cb.release_probe()
        assert cb.can_execute()

    def test_force_reset_keeps_error_count(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb)
        cb.reset()
        snap = cb.snapshot
        assert snap.state == CircuitState.CLOSED
        assert snap.consecutive_failures == 0
        assert snap.opened_at is None
        assert snap.error_count == 5

    def test_recovery_scenario(self, clock) -> None:
        """F=5, C=60s: five failures open at t0; a probe at t0+61 closes it."""
        cb = _breaker(clock)
        _trip(cb)
        t0 = clock.now
        assert cb.snapshot.opened_at == t0
        t1 = clock.advance(61)
        assert cb.can_execute()
        cb.record_success()
        snap = cb.snapshot
        assert snap.state == CircuitState.CLOSED
        assert snap.consecutive_failures == 0
        assert snap.last_tested == t1

    def test_opened_at_set_iff_not_closed(self, clock) -> None:
        cb = _breaker(clock, threshold=2, cooldown=10)
        steps = [
            lambda: cb.record_failure("a"),
            lambda: cb.record_failure("b"),
            lambda: clock.advance(10),
            lambda: cb.record_failure("c"),
            lambda: clock.advance(10),
            lambda: cb.record_success(),
            lambda: cb.record_failure("d"),
        ]
        for step in steps:
            step()
            snap = cb.snapshot
            assert (snap.opened_at is not None) == (snap.state != CircuitState.CLOSED)

    def test_concurrent_failures_are_all_counted(self, clock) -> None:
        cb = _breaker(clock)
        threads, per_thread = 8, 250
        barrier = threading.Barrier(threads)

        def report() -> None:
            barrier.wait()
            for i in range(per_thread):
                cb.record_failure(f"err-{i}")

        workers = [threading.Thread(target=report) for _ in range(threads)]
        for w in workers:
            w.start()
        for w in workers:
            w.join()

        snap = cb.snapshot
        assert snap.error_count == threads * per_thread
        assert snap.state == CircuitState.OPEN

    def test_concurrent_callers_share_one_half_open_probe(self, clock) -> None:
        cb = _breaker(clock)
        _trip(cb)
        clock.advance(61)
        threads = 8
        barrier = threading.Barrier(threads)
        admitted: list[bool] = []
        lock = threading.Lock()

        def attempt() -> None:
            barrier.wait()
            allowed = cb.can_execute()
            with lock:
                admitted.append(allowed)

        workers = [threading.Thread(target=attempt) for _ in range(threads)]
        for w in workers:
            w.start()
        for w in workers:
            w.join()

        assert admitted.count(True) == 1
        assert cb.state == CircuitState.HALF_OPEN

    def test_invalid_policy_rejected(self) -> None:
        with pytest.raises(ValueError):
            BreakerPolicy(failure_threshold=0)
        with pytest.raises(ValueError):
            BreakerPolicy(cooldown_seconds=-1)


# ═══════════════════════════════════════════════════════════════
#  BreakerRegistry
# ═══════════════════════════════════════════════════════════════
class TestBreakerRegistry:
    def test_activate_installs_fresh_closed_breaker(
        self, registry: BreakerRegistry, twilio_primary: ProviderConfiguration
    ) -> None:
        first = registry.activate(twilio_primary)
        _trip(first.breaker)
        assert first.breaker.state == CircuitState.OPEN

        second = registry.activate(twilio_primary)
        assert second.breaker is not first.breaker
        assert second.breaker.state == CircuitState.CLOSED
        assert second.breaker.snapshot.error_count == 0
        assert registry.get(ProviderSlot.PRIMARY) is second

    def test_require_unconfigured_slot_raises(self, registry: BreakerRegistry) -> None:
        with pytest.raises(ProviderNotConfiguredError):
            registry.require(ProviderSlot.BACKUP)

    def test_restore_skips_inactive(
        self,
        registry: BreakerRegistry,
        twilio_primary: ProviderConfiguration,
        exotel_backup: ProviderConfiguration,
    ) -> None:
        exotel_backup.deactivate()
        registry.restore([twilio_primary, exotel_backup])
        assert registry.slots() == [ProviderSlot.PRIMARY]

    def test_deactivate(self, registry: BreakerRegistry, twilio_primary) -> None:
        registry.activate(twilio_primary)
        registry.deactivate(ProviderSlot.PRIMARY)
        assert registry.get(ProviderSlot.PRIMARY) is None


# ═══════════════════════════════════════════════════════════════
#  ProviderHealthAggregator
# ═══════════════════════════════════════════════════════════════
class TestProviderHealthAggregator:
    def test_unconfigured_slot(self, registry: BreakerRegistry) -> None:
        snap = ProviderHealthAggregator(registry).snapshot(ProviderSlot.PRIMARY)
        assert not snap.configured
        assert not snap.is_healthy
        assert snap.circuit_breaker_state is None
        assert not snap.failover_active

    def test_healthy_primary(self, registry: BreakerRegistry, twilio_primary) -> None:
        registry.activate(twilio_primary)
        snap = ProviderHealthAggregator(registry).snapshot()
        assert snap.configured
        assert snap.is_healthy
        assert snap.provider == "twilio"
        assert snap.circuit_breaker_state == CircuitState.CLOSED
        # Declared backup shown even before the backup slot is activated
        assert snap.backup_provider == "exotel"
        assert not snap.failover_active

    def test_open_primary_without_backup(self, registry: BreakerRegistry, twilio_primary) -> None:
        twilio_primary.backup_provider = None
        entry = registry.activate(twilio_primary)
        _trip(entry.breaker)
        snap = ProviderHealthAggregator(registry).snapshot()
        assert not snap.is_healthy
        assert snap.circuit_breaker_state == CircuitState.OPEN
        assert snap.backup_provider is None
        assert not snap.failover_active

    def test_open_primary_with_closed_backup_fails_over(
        self, registry: BreakerRegistry, twilio_primary, exotel_backup
    ) -> None:
        entry = registry.activate(twilio_primary)
        registry.activate(exotel_backup)
        _trip(entry.breaker)
        aggregator = ProviderHealthAggregator(registry)
        snap = aggregator.snapshot()
        assert not snap.is_healthy
        assert snap.backup_provider == "exotel"
        assert snap.failover_active
        assert aggregator.route() == ProviderSlot.BACKUP

    def test_no_failover_when_backup_also_open(
        self, registry: BreakerRegistry, twilio_primary, exotel_backup
    ) -> None:
        primary = registry.activate(twilio_primary)
        backup = registry.activate(exotel_backup)
        _trip(primary.breaker)
        _trip(backup.breaker)
        aggregator = ProviderHealthAggregator(registry)
        assert not aggregator.snapshot().failover_active
        assert aggregator.route() == ProviderSlot.PRIMARY

    def test_declared_backup_not_active_gives_no_failover(
        self, registry: BreakerRegistry, twilio_primary
    ) -> None:
        entry = registry.activate(twilio_primary)
        _trip(entry.breaker)
        snap = ProviderHealthAggregator(registry).snapshot()
        assert snap.backup_provider == "exotel"
        assert not snap.failover_active

    def test_snapshot_reports_lazy_half_open(
        self, registry: BreakerRegistry, twilio_primary, clock
    ) -> None:
        entry = registry.activate(twilio_primary)
        _trip(entry.breaker)
        clock.advance(60)
        snap = ProviderHealthAggregator(registry).refresh(ProviderSlot.PRIMARY)
        assert snap.circuit_breaker_state == CircuitState.HALF_OPEN
        assert not snap.is_healthy

    def test_backup_slot_has_no_backup(self, registry: BreakerRegistry, exotel_backup) -> None:
        registry.activate(exotel_backup)
        snap = ProviderHealthAggregator(registry).snapshot(ProviderSlot.BACKUP)
        assert snap.is_healthy
        assert snap.backup_provider is None


# ═══════════════════════════════════════════════════════════════
#  ResilientProviderGateway
# ═══════════════════════════════════════════════════════════════
class TestResilientProviderGateway:
    @pytest.mark.asyncio
    async def test_success_on_primary(self, registry, twilio_primary) -> None:
        registry.activate(twilio_primary)
        gateway = ResilientProviderGateway(registry)

        async def call(cfg: ProviderConfiguration) -> str:
            return cfg.provider

        assert await gateway.execute(call) == "twilio"

    @pytest.mark.asyncio
    async def test_failure_recorded_then_fails_over(
        self, registry, twilio_primary, exotel_backup
    ) -> None:
        primary = registry.activate(twilio_primary)
        registry.activate(exotel_backup)
        gateway = ResilientProviderGateway(registry)

        async def call(cfg: ProviderConfiguration) -> str:
            if cfg.slot == ProviderSlot.PRIMARY:
                raise RuntimeError("carrier down")
            return cfg.provider

        assert await gateway.execute(call) == "exotel"
        assert primary.breaker.snapshot.consecutive_failures == 1
        assert "carrier down" in (primary.breaker.snapshot.last_error or "")

    @pytest.mark.asyncio
    async def test_open_primary_is_skipped_without_attempt(
        self, registry, twilio_primary, exotel_backup
    ) -> None:
        primary = registry.activate(twilio_primary)
        registry.activate(exotel_backup)
        _trip(primary.breaker)
        attempted: list[str] = []
        gateway = ResilientProviderGateway(registry)

        async def call(cfg: ProviderConfiguration) -> str:
            attempted.append(cfg.provider)
            return cfg.provider

        assert await gateway.execute(call) == "exotel"
        assert attempted == ["exotel"]

    @pytest.mark.asyncio
    async def test_all_rejected_raises_breaker_rejection(self, registry, twilio_primary) -> None:
        primary = registry.activate(twilio_primary)
        _trip(primary.breaker)
        gateway = ResilientProviderGateway(registry)

        async def call(cfg: ProviderConfiguration) -> str:
            raise AssertionError("must not be attempted")

        with pytest.raises(BreakerRejection):
            await gateway.execute(call)

    @pytest.mark.asyncio
    async def test_all_failed_raises_exhausted(self, registry, twilio_primary, exotel_backup) -> None:
        registry.activate(twilio_primary)
        registry.activate(exotel_backup)
        gateway = ResilientProviderGateway(registry)

        async def call(cfg: ProviderConfiguration) -> str:
            raise ConnectionError(cfg.provider)

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            await gateway.execute(call)
        assert set(exc_info.value.errors) == {"primary", "backup"}

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, registry, twilio_primary) -> None:
        primary = registry.activate(twilio_primary)
        gateway = ResilientProviderGateway(registry, timeout_seconds=0.01)

        async def call(cfg: ProviderConfiguration) -> str:
            await asyncio.sleep(1)
            return "late"

        with pytest.raises(AllProvidersExhaustedError):
            await gateway.execute(call)
        assert primary.breaker.snapshot.consecutive_failures == 1
        assert "Timeout" in (primary.breaker.snapshot.last_error or "")

    @pytest.mark.asyncio
    async def test_no_configured_slot(self, registry) -> None:
        gateway = ResilientProviderGateway(registry)

        async def call(cfg: ProviderConfiguration) -> str:
            return "x"

        with pytest.raises(ProviderNotConfiguredError):
            await gateway.execute(call)

    @pytest.mark.asyncio
    async def test_half_open_probe_success_closes(
        self, registry, twilio_primary, clock
    ) -> None:
        primary = registry.activate(twilio_primary)
        _trip(primary.breaker)
        clock.advance(61)
        gateway = ResilientProviderGateway(registry)

        async def call(cfg: ProviderConfiguration) -> str:
            return "ok"

        assert await gateway.execute(call) == "ok"
        assert primary.breaker.state == CircuitState.CLOSED
