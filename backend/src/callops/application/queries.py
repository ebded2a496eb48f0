"""Query handlers — read-side use cases.

Query handlers are intentionally simple: they read from the catalog, the
repository or the breaker registry and return domain objects.  No mutation
of domain state happens here.
"""

from __future__ import annotations

import structlog
from dataclasses import dataclass

from callops.domain.catalog import ProviderCatalog, SupportedProvider
from callops.domain.entities import ProviderConfiguration
from callops.domain.enums import ProviderSlot
from callops.domain.services.form_engine import ConfigFormEngine, RenderedField
from callops.domain.value_objects import ProviderSchema
from callops.ports.outbound import ProviderConfigRepository
from callops.shared.providers.health import ProviderHealthAggregator
from callops.shared.providers.types import HealthSnapshot

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════
#  Catalog
# ═══════════════════════════════════════════════════════════════
class ListSupportedProvidersHandler:
    def __init__(self, catalog: ProviderCatalog) -> None:
        self._catalog = catalog

    async def handle(self) -> list[SupportedProvider]:
        return self._catalog.entries()


@dataclass
class GetSchemaQuery:
    provider: str


class GetSchemaHandler:
    def __init__(self, catalog: ProviderCatalog) -> None:
        self._catalog = catalog

    async def handle(self, query: GetSchemaQuery) -> ProviderSchema:
        return self._catalog.schema(query.provider)


# ═══════════════════════════════════════════════════════════════
#  Rendered form
# ═══════════════════════════════════════════════════════════════
@dataclass
class RenderFormQuery:
    provider: str
    slot: ProviderSlot = ProviderSlot.PRIMARY


class RenderFormHandler:
    """Renders a provider's form, pre-filled from the slot's saved configuration.

    Saved values are only used when the slot currently holds the same
    provider; secrets are always masked.
    """

    def __init__(
        self,
        catalog: ProviderCatalog,
        form_engine: ConfigFormEngine,
        repo: ProviderConfigRepository,
    ) -> None:
        self._catalog = catalog
        self._form = form_engine
        self._repo = repo

    async def handle(self, query: RenderFormQuery) -> list[RenderedField]:
        schema = self._catalog.schema(query.provider)
        current = await self._repo.get_active(query.slot)
        draft = current.as_draft() if current and current.provider == query.provider else None
        logger.debug(
            "render_form",
            provider=query.provider,
            slot=query.slot.value,
            prefilled=draft is not None,
        )
        return self._form.render(schema, draft, mask_secrets=True)


# ═══════════════════════════════════════════════════════════════
#  Current configuration
# ═══════════════════════════════════════════════════════════════
@dataclass
class GetCurrentConfigurationQuery:
    slot: ProviderSlot = ProviderSlot.PRIMARY


class GetCurrentConfigurationHandler:
    def __init__(self, repo: ProviderConfigRepository) -> None:
        self._repo = repo

    async def handle(self, query: GetCurrentConfigurationQuery) -> ProviderConfiguration | None:
        return await self._repo.get_active(query.slot)


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
@dataclass
class GetHealthQuery:
    slot: ProviderSlot = ProviderSlot.PRIMARY
    refresh: bool = False


class GetHealthHandler:
    def __init__(self, aggregator: ProviderHealthAggregator) -> None:
        self._aggregator = aggregator

    async def handle(self, query: GetHealthQuery) -> HealthSnapshot:
        if query.refresh:
            return self._aggregator.refresh(query.slot)
        return self._aggregator.snapshot(query.slot)
