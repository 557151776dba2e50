"""Database engines and the request-scoped session dependency."""

from collections.abc import AsyncGenerator

from sqlalchemy import Engine, create_engine
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine

from backend.app.config import PLACEHOLDER_POSTGRES_URL, Settings, get_settings

# async driver -> sync driver, for migrations
_SYNC_DRIVERS = {
    "sqlite+aiosqlite://": "sqlite://",
    "postgresql+asyncpg://": "postgresql://",
}


def _database_url(settings: Settings) -> str:
    """Resolve the configured database URL.

    Raises:
        ValueError: If DATABASE_URL is unset or still the placeholder.
    """
    url = settings.database_url or settings.postgres_url
    if not url or url == PLACEHOLDER_POSTGRES_URL:
        raise ValueError("DATABASE_URL must be set to a valid connection string")
    return url


def create_engine_from_settings(settings: Settings) -> Engine:
    """Sync engine for alembic."""
    url = _database_url(settings)
    for async_prefix, sync_prefix in _SYNC_DRIVERS.items():
        if url.startswith(async_prefix):
            url = sync_prefix + url[len(async_prefix) :]
            break
    return create_engine(url, pool_pre_ping=True)


def create_async_engine_from_settings(settings: Settings) -> AsyncEngine:
    url = _database_url(settings)
    if url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://") :]
    return create_async_engine(url, pool_pre_ping=True)


_async_engine: AsyncEngine | None = None


def get_async_engine() -> AsyncEngine:
    """Process-wide async engine, created on first use."""
    global _async_engine
    if _async_engine is None:
        _async_engine = create_async_engine_from_settings(get_settings())
    return _async_engine


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one AsyncSession per request."""
    async with AsyncSession(get_async_engine(), expire_on_commit=False) as session:
        yield session
