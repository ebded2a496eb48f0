"""Concrete repository implementations using SQLAlchemy.

These adapters implement the outbound port interfaces, translating between
domain entities and ORM models.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from callops.domain.entities import ProviderConfiguration
from callops.domain.enums import ProviderSlot
from callops.domain.exceptions import PersistenceError
from callops.ports.outbound import ProviderConfigRepository

from .models import ProviderConfigurationModel

logger = structlog.get_logger(__name__)


# ── Converters ───────────────────────────────────────────────
def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back; every stored timestamp is UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _config_to_model(c: ProviderConfiguration) -> ProviderConfigurationModel:
    return ProviderConfigurationModel(
        id=c.id,
        slot=c.slot.value,
        provider=c.provider,
        credentials=dict(c.credentials),
        backup_provider=c.backup_provider,
        is_active=c.is_active,
        created_at=c.created_at,
        updated_at=c.updated_at,
        activated_at=c.activated_at,
    )


def _model_to_config(m: ProviderConfigurationModel) -> ProviderConfiguration:
    return ProviderConfiguration(
        id=m.id,
        slot=ProviderSlot(m.slot),
        provider=m.provider,
        credentials=dict(m.credentials or {}),
        backup_provider=m.backup_provider,
        is_active=m.is_active,
        created_at=_aware(m.created_at),  # type: ignore[arg-type]
        updated_at=_aware(m.updated_at),  # type: ignore[arg-type]
        activated_at=_aware(m.activated_at),
    )


# ═══════════════════════════════════════════════════════════════
#  SQLAlchemy Provider Configuration Repository
# ═══════════════════════════════════════════════════════════════
class SQLAlchemyProviderConfigRepository(ProviderConfigRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save_active(self, configuration: ProviderConfiguration) -> ProviderConfiguration:
        slot = configuration.slot
        log = logger.bind(slot=slot.value, provider=configuration.provider)

        conflict = await self._session.scalar(
            select(ProviderConfigurationModel.id).where(
                ProviderConfigurationModel.slot == slot.other.value,
                ProviderConfigurationModel.provider == configuration.provider,
                ProviderConfigurationModel.is_active.is_(True),
            )
        )
        if conflict is not None:
            log.warning("provider_config_conflict", other_slot=slot.other.value)
            raise PersistenceError(
                f"Provider {configuration.provider!r} is already active in the "
                f"{slot.other.value} slot"
            )

        try:
            await self._session.execute(
                update(ProviderConfigurationModel)
                .where(
                    ProviderConfigurationModel.slot == slot.value,
                    ProviderConfigurationModel.is_active.is_(True),
                )
                .values(is_active=False, updated_at=datetime.now(timezone.utc))
            )
            self._session.add(_config_to_model(configuration))
            await self._session.flush()
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            log.error("provider_config_write_rejected", error=str(exc.orig))
            raise PersistenceError(
                f"Configuration for the {slot.value} slot was rejected by the store"
            ) from exc
        except SQLAlchemyError as exc:
            await self._session.rollback()
            log.error("provider_config_write_failed", error=str(exc))
            raise PersistenceError(
                f"Configuration for the {slot.value} slot could not be stored"
            ) from exc

        log.info("provider_config_saved", configuration_id=configuration.id)
        return configuration

    async def get_active(self, slot: ProviderSlot) -> ProviderConfiguration | None:
        result = await self._session.scalar(
            select(ProviderConfigurationModel)
            .where(
                ProviderConfigurationModel.slot == slot.value,
                ProviderConfigurationModel.is_active.is_(True),
            )
            .order_by(ProviderConfigurationModel.activated_at.desc())
            .limit(1)
        )
        return _model_to_config(result) if result else None

    async def list_active(self) -> list[ProviderConfiguration]:
        result = await self._session.scalars(
            select(ProviderConfigurationModel).where(
                ProviderConfigurationModel.is_active.is_(True)
            )
        )
        return [_model_to_config(m) for m in result.all()]
