"""Resilient provider gateway — the entry-point for live provider calls.

Composes the breaker registry and the circuit breakers into a single
resilience layer.  Callers hand in a request function and the gateway
handles breaker gating, timeouts, outcome recording and failover from the
primary slot to the backup slot.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from callops.domain.entities import ProviderConfiguration
from callops.domain.enums import ProviderSlot
from callops.domain.exceptions import BreakerRejection, ProviderNotConfiguredError
from callops.shared.observability.metrics import PROVIDER_CALLS
from callops.shared.providers.registry import BreakerRegistry, SlotEntry

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class AllProvidersExhaustedError(Exception):
    """Raised when every slot in the failover chain was attempted and failed."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = errors
        slots = ", ".join(errors.keys())
        super().__init__(f"All providers exhausted: {slots}")


class ResilientProviderGateway:
    """Wraps any async provider call with breaker gating and failover.

    Usage::

        gateway = ResilientProviderGateway(registry, timeout_seconds=10)

        result = await gateway.execute(
            lambda cfg: place_call(cfg.credentials, number),
        )

    ``request_fn`` receives the slot's ``ProviderConfiguration`` and must
    return the result or raise on failure.
    """

    def __init__(self, registry: BreakerRegistry, *, timeout_seconds: float = 30.0) -> None:
        self._registry = registry
        self._timeout = timeout_seconds

    async def execute(
        self,
        request_fn: Callable[[ProviderConfiguration], Awaitable[T]],
        *,
        slot: ProviderSlot = ProviderSlot.PRIMARY,
    ) -> T:
        """Execute a request, failing over to the other slot when needed.

        Raises:
            ProviderNotConfiguredError: Neither slot has an active provider.
            BreakerRejection: Every configured slot refused the call.
            AllProvidersExhaustedError: At least one attempt ran and failed.
        """
        chain = [e for e in (self._registry.get(slot), self._registry.get(slot.other)) if e]
        if not chain:
            raise ProviderNotConfiguredError(slot.value)

        errors: dict[str, str] = {}
        rejection: BreakerRejection | None = None

        for position, entry in enumerate(chain):
            try:
                result = await self._try_slot(entry, request_fn)
            except BreakerRejection as exc:
                rejection = exc
                errors[entry.configuration.slot.value] = "circuit_open"
                continue
            except Exception as exc:
                errors[entry.configuration.slot.value] = f"{type(exc).__name__}: {exc}"
                continue

            if position > 0:
                logger.info(
                    "provider_failover_success",
                    slot=entry.configuration.slot.value,
                    provider=entry.provider,
                    failed_slots=list(errors),
                )
            return result

        if rejection is not None and all(v == "circuit_open" for v in errors.values()):
            raise rejection
        raise AllProvidersExhaustedError(errors)

    # ── Slot-level attempt ───────────────────────────────────
    async def _try_slot(
        self,
        entry: SlotEntry,
        request_fn: Callable[[ProviderConfiguration], Awaitable[T]],
    ) -> T:
        cfg = entry.configuration
        breaker = entry.breaker
        breaker.acquire()

        log = logger.bind(slot=cfg.slot.value, provider=cfg.provider)
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(request_fn(cfg), timeout=self._timeout)
        except asyncio.CancelledError:
            breaker.release_probe()
            raise
        except asyncio.TimeoutError:
            error_msg = f"Timeout after {self._timeout}s"
            breaker.record_failure(error_msg)
            PROVIDER_CALLS.labels(slot=cfg.slot.value, provider=cfg.provider, outcome="timeout").inc()
            log.warning("provider_timeout", timeout_s=self._timeout)
            raise
        except Exception as exc:
            latency_ms = (time.monotonic() - start) * 1000
            error_msg = f"{type(exc).__name__}: {exc}"
            breaker.record_failure(error_msg)
            PROVIDER_CALLS.labels(slot=cfg.slot.value, provider=cfg.provider, outcome="failure").inc()
            log.warning("provider_request_failed", error=error_msg, latency_ms=round(latency_ms, 1))
            raise

        latency_ms = (time.monotonic() - start) * 1000
        breaker.record_success()
        PROVIDER_CALLS.labels(slot=cfg.slot.value, provider=cfg.provider, outcome="success").inc()
        log.info("provider_request_success", latency_ms=round(latency_ms, 1))
        return result
