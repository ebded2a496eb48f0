"""Unit tests for application query handlers."""

import pytest
from unittest.mock import AsyncMock, Mock

from callops.application.queries import (
    GetCurrentConfigurationHandler,
    GetCurrentConfigurationQuery,
    GetHealthHandler,
    GetHealthQuery,
    GetSchemaHandler,
    GetSchemaQuery,
    ListSupportedProvidersHandler,
    RenderFormHandler,
    RenderFormQuery,
)
from callops.domain.catalog import DEFAULT_CATALOG
from callops.domain.enums import CircuitState, ProviderSlot
from callops.domain.exceptions import UnknownProviderError
from callops.domain.services.form_engine import ConfigFormEngine
from callops.shared.providers.health import ProviderHealthAggregator


@pytest.fixture
def mock_repo():
    repo = Mock()
    repo.get_active = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def render_handler(mock_repo):
    return RenderFormHandler(DEFAULT_CATALOG, ConfigFormEngine(), mock_repo)


@pytest.mark.asyncio
async def test_list_supported_providers():
    entries = await ListSupportedProvidersHandler(DEFAULT_CATALOG).handle()
    assert [e.name for e in entries] == ["exotel", "twilio", "voicebase", "custom"]


@pytest.mark.asyncio
async def test_get_schema():
    schema = await GetSchemaHandler(DEFAULT_CATALOG).handle(GetSchemaQuery(provider="twilio"))
    assert list(schema)[:3] == ["account_sid", "auth_token", "phone_number"]


@pytest.mark.asyncio
async def test_get_schema_unknown_provider():
    with pytest.raises(UnknownProviderError):
        await GetSchemaHandler(DEFAULT_CATALOG).handle(GetSchemaQuery(provider="nexmo"))


class TestRenderForm:
    @pytest.mark.asyncio
    async def test_blank_form_when_slot_empty(self, render_handler, mock_repo):
        fields = await render_handler.handle(RenderFormQuery(provider="twilio"))
        assert all(f.value == "" for f in fields)
        mock_repo.get_active.assert_awaited_once_with(ProviderSlot.PRIMARY)

    @pytest.mark.asyncio
    async def test_prefilled_from_active_configuration_with_secrets_masked(
        self, render_handler, mock_repo, twilio_primary
    ):
        mock_repo.get_active.return_value = twilio_primary
        fields = {f.key: f for f in await render_handler.handle(RenderFormQuery(provider="twilio"))}

        assert fields["account_sid"].value == "AC123"
        assert fields["phone_number"].value == "+15550100"
        assert fields["auth_token"].value == ""
        assert fields["auth_token"].has_value

    @pytest.mark.asyncio
    async def test_other_provider_renders_blank(self, render_handler, mock_repo, twilio_primary):
        mock_repo.get_active.return_value = twilio_primary
        fields = await render_handler.handle(RenderFormQuery(provider="exotel"))
        assert all(f.value == "" for f in fields)
        assert not any(f.has_value for f in fields)


@pytest.mark.asyncio
async def test_current_configuration(mock_repo, exotel_backup):
    mock_repo.get_active.return_value = exotel_backup
    cfg = await GetCurrentConfigurationHandler(mock_repo).handle(
        GetCurrentConfigurationQuery(slot=ProviderSlot.BACKUP)
    )
    assert cfg is exotel_backup
    mock_repo.get_active.assert_awaited_once_with(ProviderSlot.BACKUP)


@pytest.mark.asyncio
async def test_health_query(registry, twilio_primary, clock):
    breaker = registry.activate(twilio_primary).breaker
    for _ in range(5):
        breaker.record_failure("down")
    handler = GetHealthHandler(ProviderHealthAggregator(registry))

    snap = await handler.handle(GetHealthQuery())
    assert snap.circuit_breaker_state == CircuitState.OPEN
    assert snap.last_error == "down"

    clock.advance(60)
    snap = await handler.handle(GetHealthQuery(refresh=True))
    assert snap.circuit_breaker_state == CircuitState.HALF_OPEN
