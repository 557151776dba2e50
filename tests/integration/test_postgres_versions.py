"""PostgreSQL-only tests: row locking under concurrent version appends."""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from backend.app.db.context import RequestContext
from backend.app.db.sql_repositories import (
    SqlAnalysisRepository,
    SqlDocumentRepository,
    SqlVersionStore,
)


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_concurrent_corrections_are_serialized(
    postgres_engine: AsyncEngine, ctx: RequestContext
) -> None:
    """K concurrent appends on top of version 1 yield exactly 1..K+1."""
    async with AsyncSession(postgres_engine, expire_on_commit=False) as session:
        document = await SqlDocumentRepository(session).create(
            ctx,
            display_name="contrato.pdf",
            storage_path=f"{ctx.user_id}/1_contrato.pdf",
            media_type="application/pdf",
            size_bytes=1,
        )
        await SqlVersionStore(session).append(document.document_id, "original")

    async def correct(i: int) -> int:
        async with AsyncSession(postgres_engine, expire_on_commit=False) as session:
            return await SqlVersionStore(session).append(document.document_id, f"correção {i}")

    k = 10
    numbers = await asyncio.gather(*(correct(i) for i in range(k)))

    assert sorted(numbers) == list(range(2, k + 2))

    async with AsyncSession(postgres_engine) as session:
        stored = await SqlVersionStore(session).all_versions(document.document_id)
    assert [v.version_number for v in stored] == list(range(1, k + 2))


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_analysis_result_round_trips_as_jsonb(
    postgres_engine: AsyncEngine, ctx: RequestContext
) -> None:
    """Analysis results are stored in a JSONB column and read back intact."""
    async with AsyncSession(postgres_engine, expire_on_commit=False) as session:
        document = await SqlDocumentRepository(session).create(
            ctx,
            display_name="a.pdf",
            storage_path="p",
            media_type="application/pdf",
            size_bytes=1,
        )
        result = {"summary": "Cláusula de multa abusiva", "status": "completed"}
        await SqlAnalysisRepository(session).save(document.document_id, result)

        stored = await SqlAnalysisRepository(session).get(document.document_id)

    assert stored is not None
    assert stored.result == result
