"""Shared fixtures for integration tests requiring live infrastructure."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator

import pytest
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from booking_core.config import get_settings
from booking_core.storage.orm import Base, Tenant
from booking_core.storage.session import TenantScopedSession

# ── Engine ─────────────────────────────────────────────────────────


@pytest.fixture()
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an async engine from settings and ensure the schema exists."""
    engine = create_async_engine(
        get_settings().database_url,
        pool_size=5,
        max_overflow=0,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


# ── Session factory ────────────────────────────────────────────────


@pytest.fixture()
def session_factory(
    async_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Session factory with the tenant isolation hooks installed."""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        sync_session_class=TenantScopedSession,
        expire_on_commit=False,
    )


# ── Committed tenants (real commit + DELETE cleanup) ───────────────


@pytest.fixture()
async def committed_tenants(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[tuple[Tenant, Tenant]]:
    """Two committed tenants. Their rows cascade away on cleanup."""
    suffix = uuid.uuid4().hex[:8]
    async with session_factory() as session:
        first = Tenant(name=f"acme-{suffix}", subdomain=f"acme-{suffix}")
        second = Tenant(name=f"globex-{suffix}", subdomain=f"globex-{suffix}")
        session.add_all([first, second])
        await session.commit()

    yield first, second

    async with session_factory() as session:
        await session.execute(
            Tenant.__table__.delete().where(Tenant.id.in_([first.id, second.id]))
        )
        await session.commit()


# ── Redis fixture ─────────────────────────────────────────────────


@pytest.fixture()
async def redis_client() -> AsyncGenerator[Redis]:
    """Create and close a real Redis client."""
    client = Redis.from_url(get_settings().redis_url)
    yield client
    await client.aclose()
