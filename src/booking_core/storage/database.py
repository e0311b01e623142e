"""Async engine and session factory."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from booking_core.config import settings
from booking_core.storage.session import TenantScopedSession

engine = create_async_engine(settings.database_url, pool_pre_ping=True)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    sync_session_class=TenantScopedSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session; FastAPI closes it after the response."""
    async with async_session() as session:
        yield session
