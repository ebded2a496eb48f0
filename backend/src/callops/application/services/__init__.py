"""Workflow gate for the provider test/activate workflow.

A slot runs at most one workflow action at a time, so a test and a save of
the same slot never overlap.  Overlapping requests are refused with
``WorkflowBusyError`` rather than queued.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace

import structlog

from callops.domain.enums import ProviderSlot, WorkflowOutcome, WorkflowPhase
from callops.domain.exceptions import WorkflowBusyError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class WorkflowStatus:
    phase: WorkflowPhase = WorkflowPhase.IDLE
    last_outcome: WorkflowOutcome | None = None
    last_error: str | None = None


class WorkflowGate:
    """Per-slot phase tracker enforcing test/save mutual exclusion."""

    def __init__(self) -> None:
        self._status: dict[ProviderSlot, WorkflowStatus] = {
            slot: WorkflowStatus() for slot in ProviderSlot
        }
        self._lock = threading.Lock()

    def status(self, slot: ProviderSlot) -> WorkflowStatus:
        return self._status[slot]

    @contextmanager
    def hold(self, slot: ProviderSlot, phase: WorkflowPhase) -> Iterator[None]:
        """Occupy ``slot`` with ``phase`` for the duration of the block."""
        with self._lock:
            current = self._status[slot]
            if current.phase != WorkflowPhase.IDLE:
                logger.info(
                    "workflow_busy",
                    slot=slot.value,
                    requested=phase.value,
                    running=current.phase.value,
                )
                raise WorkflowBusyError(slot.value, current.phase.value)
            self._status[slot] = replace(current, phase=phase)
        try:
            yield
        finally:
            with self._lock:
                self._status[slot] = replace(self._status[slot], phase=WorkflowPhase.IDLE)

    def record(
        self,
        slot: ProviderSlot,
        outcome: WorkflowOutcome,
        error: str | None = None,
    ) -> None:
        with self._lock:
            self._status[slot] = replace(
                self._status[slot], last_outcome=outcome, last_error=error
            )
