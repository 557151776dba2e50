"""Blob storage for uploaded files.

The production blob store is an external collaborator; these implementations
cover local deployments (a directory on disk) and tests (a dict).
"""

import re
import unicodedata
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol
from uuid import UUID

from fastapi.concurrency import run_in_threadpool

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\s]')
_REPEATED_UNDERSCORES = re.compile(r"_{2,}")


class BlobNotFoundError(KeyError):
    """No blob stored under the requested path."""


class BlobStore(Protocol):
    """Binary object storage keyed by path."""

    async def put(self, path: str, data: bytes, media_type: str) -> None:
        """Store bytes under a path, overwriting nothing.

        Args:
            path: Storage locator
            data: File bytes
            media_type: Declared media type
        """
        ...

    async def get(self, path: str) -> bytes:
        """Load bytes stored under a path.

        Raises:
            BlobNotFoundError: If nothing is stored there
        """
        ...


def sanitize_file_name(file_name: str) -> str:
    """Make an uploaded file name safe to use inside a storage path.

    Strips diacritics, replaces path and shell metacharacters and whitespace
    with ``_``, collapses runs of underscores and lower-cases the result.
    """
    decomposed = unicodedata.normalize("NFD", file_name)
    without_marks = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    replaced = _UNSAFE_CHARS.sub("_", without_marks)
    collapsed = _REPEATED_UNDERSCORES.sub("_", replaced)
    return collapsed.strip("_").lower()


def build_storage_path(user_id: UUID, file_name: str, now: datetime | None = None) -> str:
    """Build the storage locator for a user's upload."""
    if now is None:
        now = datetime.now(timezone.utc)
    stamp = int(now.timestamp() * 1000)
    return f"{user_id}/{stamp}_{sanitize_file_name(file_name)}"


class InMemoryBlobStore:
    """In-memory implementation of BlobStore."""

    def __init__(self) -> None:
        self._blobs: dict[str, tuple[bytes, str]] = {}

    async def put(self, path: str, data: bytes, media_type: str) -> None:
        """Store bytes under a path."""
        self._blobs[path] = (data, media_type)

    async def get(self, path: str) -> bytes:
        """Load bytes stored under a path."""
        if path not in self._blobs:
            raise BlobNotFoundError(path)
        return self._blobs[path][0]


class LocalBlobStore:
    """Filesystem implementation of BlobStore rooted at a directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if self._root not in target.parents:
            raise ValueError(f"Storage path escapes blob root: {path}")
        return target

    async def put(self, path: str, data: bytes, media_type: str) -> None:
        """Store bytes under a path."""
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await run_in_threadpool(_write)

    async def get(self, path: str) -> bytes:
        """Load bytes stored under a path."""
        target = self._resolve(path)
        if not target.is_file():
            raise BlobNotFoundError(path)
        return await run_in_threadpool(target.read_bytes)
