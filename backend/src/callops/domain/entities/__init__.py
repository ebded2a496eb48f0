"""Domain entities — objects with identity and lifecycle.

Entities are *mutable* but expose controlled mutation methods that enforce
business invariants.  They carry a unique ``id`` field.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from callops.domain.enums import ProviderSlot
from callops.domain.value_objects import DraftValue


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# ═══════════════════════════════════════════════════════════════
#  Provider Configuration
# ═══════════════════════════════════════════════════════════════
@dataclass(slots=True)
class ProviderConfiguration:
    """Validated, persisted credentials for the provider occupying a slot."""

    id: str = field(default_factory=_new_id)
    slot: ProviderSlot = ProviderSlot.PRIMARY
    provider: str = ""
    credentials: dict[str, DraftValue] = field(default_factory=dict)
    backup_provider: str | None = None
    is_active: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    activated_at: datetime | None = None

    # ── Lifecycle ────────────────────────────────────────────
    def activate(self) -> None:
        now = _utcnow()
        self.is_active = True
        self.activated_at = now
        self.updated_at = now

    def deactivate(self) -> None:
        self.is_active = False
        self.updated_at = _utcnow()

    def as_draft(self) -> dict[str, DraftValue]:
        """Copy of the stored values, suitable for re-rendering a form."""
        return dict(self.credentials)
