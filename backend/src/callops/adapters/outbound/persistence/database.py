"""SQLAlchemy async database session factory."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from callops.adapters.outbound.persistence.models import Base
from callops.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    url = settings.database_url
    connect_args: dict[str, Any] = {}

    if url.startswith("sqlite"):
        # In-memory databases live per connection; share one across sessions.
        kwargs: dict[str, Any] = {"poolclass": StaticPool} if ":memory:" in url else {}
        return create_async_engine(
            url,
            echo=settings.app_debug,
            connect_args={"check_same_thread": False},
            **kwargs,
        )

    # asyncpg doesn't like 'sslmode' in the query string, it wants 'ssl' in connect_args
    if "sslmode=" in url:
        import ssl
        from sqlalchemy.engine.url import make_url

        parsed_url = make_url(url)
        query = dict(parsed_url.query)
        ssl_mode = query.pop("sslmode", "require")
        url = parsed_url.set(query=query).render_as_string(hide_password=False)

        if ssl_mode in ("require", "verify-full", "verify-ca"):
            ctx = ssl.create_default_context()
            if ssl_mode == "require":
                ctx.check_hostname = False
                ctx.verify_mode = ssl.CERT_NONE
            connect_args["ssl"] = ctx

    return create_async_engine(
        url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=settings.app_debug,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def create_session_factory(
    settings: Settings, engine: AsyncEngine | None = None
) -> async_sessionmaker[AsyncSession]:
    engine = engine or create_engine(settings)
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def create_schema(engine: AsyncEngine) -> None:
    """Create missing tables (development and tests only)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
