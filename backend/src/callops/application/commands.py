"""Command handlers — write-side use cases.

Each handler encapsulates a single business operation that mutates state.
Handlers depend only on port interfaces, never on concrete adapters.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field

import structlog

from callops.application.services import WorkflowGate
from callops.domain.catalog import ProviderCatalog
from callops.domain.entities import ProviderConfiguration
from callops.domain.enums import ProviderSlot, WorkflowOutcome, WorkflowPhase
from callops.domain.events import (
    ProviderActivatedEvent,
    ProviderProbedEvent,
    ProviderTestedEvent,
)
from callops.domain.exceptions import (
    FieldError,
    PersistenceError,
    ProbeError,
    ValidationError,
)
from callops.domain.services.form_engine import ConfigFormEngine
from callops.domain.value_objects import DraftValue
from callops.ports.outbound import (
    ConnectivityProbePort,
    EventBusPort,
    ProviderConfigRepository,
)
from callops.shared.observability.metrics import (
    PROVIDER_CALLS,
    PROVIDER_PROBE_LATENCY,
    PROVIDER_PROBES,
)
from callops.shared.providers.registry import BreakerRegistry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TestResult:
    """Outcome of a connectivity probe."""

    __test__ = False

    success: bool
    error: str | None = None


async def _timed_probe(
    probe: ConnectivityProbePort,
    provider: str,
    credentials: dict[str, DraftValue],
    kind: str,
) -> TestResult:
    start = time.monotonic()
    try:
        await probe.probe(provider, credentials)
    except ProbeError as exc:
        PROVIDER_PROBES.labels(provider=provider, kind=kind, result="failure").inc()
        return TestResult(success=False, error=exc.reason)
    finally:
        PROVIDER_PROBE_LATENCY.labels(provider=provider).observe(time.monotonic() - start)
    PROVIDER_PROBES.labels(provider=provider, kind=kind, result="success").inc()
    return TestResult(success=True)


# ═══════════════════════════════════════════════════════════════
#  Test Connection
# ═══════════════════════════════════════════════════════════════
@dataclass
class TestConnectionCommand:
    """Input for probing a draft without saving it."""

    __test__ = False

    provider: str
    credentials: dict[str, DraftValue] = field(default_factory=dict)
    slot: ProviderSlot = ProviderSlot.PRIMARY


class TestConnectionHandler:
    """Validates a draft and probes the vendor; never touches breakers or storage."""

    __test__ = False

    def __init__(
        self,
        catalog: ProviderCatalog,
        form_engine: ConfigFormEngine,
        probe: ConnectivityProbePort,
        gate: WorkflowGate,
        event_bus: EventBusPort,
    ) -> None:
        self._catalog = catalog
        self._form = form_engine
        self._probe = probe
        self._gate = gate
        self._event_bus = event_bus

    async def handle(self, cmd: TestConnectionCommand) -> TestResult:
        log = logger.bind(provider=cmd.provider, slot=cmd.slot.value)
        schema = self._catalog.schema(cmd.provider)

        with self._gate.hold(cmd.slot, WorkflowPhase.TESTING):
            log.info("provider_test_started")
            try:
                values = self._form.validate(schema, cmd.credentials)
            except ValidationError as exc:
                self._gate.record(cmd.slot, WorkflowOutcome.TEST_FAILED, exc.message)
                raise

            result = await _timed_probe(self._probe, cmd.provider, values, kind="draft")

            if result.success:
                self._gate.record(cmd.slot, WorkflowOutcome.TEST_SUCCEEDED)
                log.info("provider_test_succeeded")
            else:
                self._gate.record(cmd.slot, WorkflowOutcome.TEST_FAILED, result.error)
                log.warning("provider_test_failed", error=result.error)

        await self._event_bus.publish(
            ProviderTestedEvent(
                provider=cmd.provider,
                slot=cmd.slot.value,
                success=result.success,
                error=result.error,
            )
        )
        return result


# ═══════════════════════════════════════════════════════════════
#  Save & Activate Provider
# ═══════════════════════════════════════════════════════════════
@dataclass
class SaveProviderCommand:
    provider: str
    credentials: dict[str, DraftValue] = field(default_factory=dict)
    slot: ProviderSlot = ProviderSlot.PRIMARY
    backup_provider: str | None = None


class SaveProviderHandler:
    """Validates, persists and activates a configuration for a slot.

    Activation installs a fresh ``CLOSED`` breaker for the slot.  On any
    failure the previously active configuration stays in place.
    """

    def __init__(
        self,
        catalog: ProviderCatalog,
        form_engine: ConfigFormEngine,
        repo: ProviderConfigRepository,
        registry: BreakerRegistry,
        gate: WorkflowGate,
        event_bus: EventBusPort,
    ) -> None:
        self._catalog = catalog
        self._form = form_engine
        self._repo = repo
        self._registry = registry
        self._gate = gate
        self._event_bus = event_bus

    async def handle(self, cmd: SaveProviderCommand) -> ProviderConfiguration:
        log = logger.bind(provider=cmd.provider, slot=cmd.slot.value)
        schema = self._catalog.schema(cmd.provider)

        with self._gate.hold(cmd.slot, WorkflowPhase.SAVING):
            log.info("provider_save_started")
            try:
                values = self._form.validate(schema, cmd.credentials)
                self._check_backup(cmd)

                configuration = ProviderConfiguration(
                    slot=cmd.slot,
                    provider=cmd.provider,
                    credentials=values,
                    backup_provider=cmd.backup_provider or None,
                )
                configuration.activate()
                saved = await self._repo.save_active(configuration)
            except (ValidationError, PersistenceError) as exc:
                self._gate.record(cmd.slot, WorkflowOutcome.SAVE_FAILED, exc.message)
                log.warning("provider_save_failed", code=exc.code, error=exc.message)
                raise

            self._registry.activate(saved)
            self._gate.record(cmd.slot, WorkflowOutcome.SAVED)

        log.info("provider_activated", configuration_id=saved.id)
        await self._event_bus.publish(
            ProviderActivatedEvent(
                configuration_id=saved.id,
                provider=saved.provider,
                slot=saved.slot.value,
                backup_provider=saved.backup_provider,
            )
        )
        return saved

    def _check_backup(self, cmd: SaveProviderCommand) -> None:
        backup = cmd.backup_provider
        if not backup:
            return
        if cmd.slot != ProviderSlot.PRIMARY:
            reason = "only the primary slot may declare a backup provider"
        elif backup == cmd.provider:
            reason = "backup provider must differ from the primary provider"
        elif backup not in self._catalog:
            reason = f"{backup!r} is not a supported provider"
        else:
            return
        raise ValidationError([FieldError("backup_provider", reason)])


# ═══════════════════════════════════════════════════════════════
#  Probe Active Provider (manual recovery probe)
# ═══════════════════════════════════════════════════════════════
@dataclass
class ProbeActiveProviderCommand:
    slot: ProviderSlot = ProviderSlot.PRIMARY


class ProbeActiveProviderHandler:
    """Re-probes a slot's saved configuration as the breaker's recovery probe."""

    def __init__(
        self,
        probe: ConnectivityProbePort,
        registry: BreakerRegistry,
        gate: WorkflowGate,
        event_bus: EventBusPort,
    ) -> None:
        self._probe = probe
        self._registry = registry
        self._gate = gate
        self._event_bus = event_bus

    async def handle(self, cmd: ProbeActiveProviderCommand) -> TestResult:
        entry = self._registry.require(cmd.slot)
        cfg = entry.configuration
        breaker = entry.breaker
        log = logger.bind(provider=cfg.provider, slot=cmd.slot.value)

        with self._gate.hold(cmd.slot, WorkflowPhase.TESTING):
            breaker.begin_manual_probe()
            try:
                result = await _timed_probe(
                    self._probe, cfg.provider, cfg.credentials, kind="recovery"
                )
            except asyncio.CancelledError:
                breaker.release_probe()
                raise
            except Exception as exc:
                breaker.record_failure(f"{type(exc).__name__}: {exc}")
                raise

            if result.success:
                breaker.record_success()
            else:
                breaker.record_failure(result.error)

        state = breaker.state
        log.info("provider_recovery_probe", success=result.success, circuit_state=state.value)
        await self._event_bus.publish(
            ProviderProbedEvent(
                provider=cfg.provider,
                slot=cmd.slot.value,
                success=result.success,
                circuit_state=state.value,
            )
        )
        return result


# ═══════════════════════════════════════════════════════════════
#  Record Call Outcome
# ═══════════════════════════════════════════════════════════════
@dataclass
class RecordCallOutcomeCommand:
    slot: ProviderSlot
    success: bool
    error: str | None = None


class RecordCallOutcomeHandler:
    """Applies a genuine call outcome, reported by a caller, to the slot's breaker."""

    def __init__(self, registry: BreakerRegistry) -> None:
        self._registry = registry

    async def handle(self, cmd: RecordCallOutcomeCommand) -> None:
        entry = self._registry.require(cmd.slot)
        if cmd.success:
            entry.breaker.record_success()
        else:
            entry.breaker.record_failure(cmd.error or "call failed")
        PROVIDER_CALLS.labels(
            slot=cmd.slot.value,
            provider=entry.provider,
            outcome="success" if cmd.success else "failure",
        ).inc()


# ═══════════════════════════════════════════════════════════════
#  Reset Provider (admin override)
# ═══════════════════════════════════════════════════════════════
@dataclass
class ResetProviderCommand:
    slot: ProviderSlot
    requested_by: str = "system"


class ResetProviderHandler:
    def __init__(self, registry: BreakerRegistry) -> None:
        self._registry = registry

    async def handle(self, cmd: ResetProviderCommand) -> None:
        entry = self._registry.require(cmd.slot)
        entry.breaker.reset()
        logger.info(
            "provider_admin_reset",
            slot=cmd.slot.value,
            provider=entry.provider,
            requested_by=cmd.requested_by,
        )

