"""Shared pytest fixtures for all test suites."""

import os
import uuid
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from backend.app.db.context import RequestContext
from backend.app.db.inmemory import (
    InMemoryAnalysisRepository,
    InMemoryAuditLogRepository,
    InMemoryChatTurnRepository,
    InMemoryDocumentRepository,
    InMemoryEntitlementRepository,
    InMemoryVersionStore,
)
from backend.app.db.models import Base
from backend.app.storage.blobs import InMemoryBlobStore


@pytest.fixture
def ctx() -> RequestContext:
    """Request context for a fresh user."""
    return RequestContext(user_id=uuid.uuid4())


@pytest.fixture
def other_ctx() -> RequestContext:
    """Request context for a second, unrelated user."""
    return RequestContext(user_id=uuid.uuid4())


@pytest.fixture
def entitlements() -> InMemoryEntitlementRepository:
    return InMemoryEntitlementRepository(default_credits=3)


@pytest.fixture
def documents() -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository()


@pytest.fixture
def analyses() -> InMemoryAnalysisRepository:
    return InMemoryAnalysisRepository()


@pytest.fixture
def versions() -> InMemoryVersionStore:
    return InMemoryVersionStore()


@pytest.fixture
def chat_turns() -> InMemoryChatTurnRepository:
    return InMemoryChatTurnRepository()


@pytest.fixture
def audit() -> InMemoryAuditLogRepository:
    return InMemoryAuditLogRepository()


@pytest.fixture
def blobs() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest_asyncio.fixture
async def sqlite_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the full schema.

    StaticPool keeps one connection so every session sees the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def sqlite_session(sqlite_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Async session bound to the SQLite engine."""
    async with AsyncSession(sqlite_engine, expire_on_commit=False) as session:
        yield session


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()
