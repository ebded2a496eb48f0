"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from callops.domain.entities import ProviderConfiguration
from callops.domain.enums import ProviderSlot
from callops.shared.providers.registry import BreakerRegistry
from callops.shared.providers.types import BreakerPolicy

T0 = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy() -> BreakerPolicy:
    return BreakerPolicy(failure_threshold=5, cooldown_seconds=60.0)


@pytest.fixture
def registry(policy: BreakerPolicy, clock: FakeClock) -> BreakerRegistry:
    return BreakerRegistry(policy, clock=clock)


@pytest.fixture
def twilio_primary() -> ProviderConfiguration:
    cfg = ProviderConfiguration(
        slot=ProviderSlot.PRIMARY,
        provider="twilio",
        credentials={
            "account_sid": "AC123",
            "auth_token": "s3cret",
            "phone_number": "+15550100",
        },
        backup_provider="exotel",
    )
    cfg.activate()
    return cfg


@pytest.fixture
def exotel_backup() -> ProviderConfiguration:
    cfg = ProviderConfiguration(
        slot=ProviderSlot.BACKUP,
        provider="exotel",
        credentials={
            "account_sid": "exo-sid",
            "api_key": "exo-key",
            "api_token": "exo-token",
            "subdomain": "api.exotel.com",
            "caller_id": "+911234567890",
        },
    )
    cfg.activate()
    return cfg
