"""Tests for the in-memory document version store."""

import asyncio
import uuid

import pytest

from backend.app.db.inmemory import InMemoryVersionStore


@pytest.mark.asyncio
async def test_first_append_is_version_one(versions: InMemoryVersionStore) -> None:
    """Numbering starts at 1."""
    document_id = uuid.uuid4()

    assert await versions.latest(document_id) is None
    assert await versions.append(document_id, "texto") == 1

    latest = await versions.latest(document_id)
    assert latest is not None
    assert (latest.version_number, latest.content_text) == (1, "texto")


@pytest.mark.asyncio
async def test_sequence_is_dense_and_immutable(versions: InMemoryVersionStore) -> None:
    """Each append adds max+1 and earlier versions stay readable."""
    document_id = uuid.uuid4()
    for text in ("a", "b", "c"):
        await versions.append(document_id, text)

    all_versions = await versions.all_versions(document_id)
    assert [v.version_number for v in all_versions] == [1, 2, 3]

    first = await versions.get(document_id, 1)
    assert first is not None and first.content_text == "a"
    assert await versions.get(document_id, 4) is None


@pytest.mark.asyncio
async def test_documents_are_numbered_independently(versions: InMemoryVersionStore) -> None:
    """Each document has its own sequence."""
    a, b = uuid.uuid4(), uuid.uuid4()

    await versions.append(a, "a1")
    await versions.append(a, "a2")

    assert await versions.append(b, "b1") == 1


@pytest.mark.asyncio
async def test_concurrent_appends_never_collide(versions: InMemoryVersionStore) -> None:
    """K concurrent corrections on top of version 1 give exactly 1..K+1."""
    document_id = uuid.uuid4()
    await versions.append(document_id, "original")

    k = 25
    numbers = await asyncio.gather(
        *(versions.append(document_id, f"correção {i}") for i in range(k))
    )

    assert sorted(numbers) == list(range(2, k + 2))
    stored = [v.version_number for v in await versions.all_versions(document_id)]
    assert stored == list(range(1, k + 2))
