"""In-memory implementations of repository interfaces."""

import asyncio
import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any

from backend.app.db.context import RequestContext
from backend.app.db.models import utcnow
from backend.app.db.repositories import (
    AnalysisRecord,
    ChatTurnRecord,
    DocumentRecord,
    EntitlementRecord,
    RetryAfter,
    VersionRecord,
)
from backend.app.models.common import DocumentStatus, Tier


class InMemoryEntitlementRepository:
    """In-memory implementation of EntitlementRepository."""

    def __init__(self, default_credits: int = 3) -> None:
        self._default_credits = default_credits
        self._entitlements: dict[uuid.UUID, EntitlementRecord] = {}

    async def get(self, user_id: uuid.UUID) -> EntitlementRecord | None:
        """Get a user's entitlement without creating one."""
        return self._entitlements.get(user_id)

    async def get_or_create(self, user_id: uuid.UUID) -> EntitlementRecord:
        """Get a user's entitlement, creating the default on first sight."""
        record = self._entitlements.get(user_id)
        if record is None:
            record = EntitlementRecord(
                user_id=user_id,
                tier=Tier.free,
                credits=self._default_credits,
                payment_customer_id=None,
                updated_at=utcnow(),
            )
            self._entitlements[user_id] = record
        return record

    async def set_tier(self, user_id: uuid.UUID, tier: Tier) -> None:
        """Set a user's subscription tier."""
        record = await self.get_or_create(user_id)
        record.tier = tier
        record.updated_at = utcnow()

    async def set_payment_customer(self, user_id: uuid.UUID, customer_id: str) -> None:
        """Remember the payment-provider customer for a user."""
        record = await self.get_or_create(user_id)
        record.payment_customer_id = customer_id
        record.updated_at = utcnow()

    async def find_by_payment_customer(self, customer_id: str) -> EntitlementRecord | None:
        """Find the entitlement owning a payment-provider customer."""
        for record in self._entitlements.values():
            if record.payment_customer_id == customer_id:
                return record
        return None

    async def consume_credit(self, user_id: uuid.UUID) -> int:
        """Decrement credits by one, never below zero."""
        record = await self.get_or_create(user_id)
        if record.credits > 0:
            record.credits -= 1
            record.updated_at = utcnow()
        return record.credits


class InMemoryDocumentRepository:
    """In-memory implementation of DocumentRepository."""

    def __init__(self) -> None:
        self._documents: dict[uuid.UUID, DocumentRecord] = {}

    async def create(
        self,
        ctx: RequestContext,
        *,
        display_name: str,
        storage_path: str,
        media_type: str,
        size_bytes: int,
    ) -> DocumentRecord:
        """Create a pending document owned by the caller."""
        record = DocumentRecord(
            document_id=uuid.uuid4(),
            user_id=ctx.user_id,
            display_name=display_name,
            storage_path=storage_path,
            media_type=media_type,
            size_bytes=size_bytes,
            status=DocumentStatus.pending,
            error_message=None,
            created_at=utcnow(),
        )
        self._documents[record.document_id] = record
        return record

    async def get(self, document_id: uuid.UUID, ctx: RequestContext) -> DocumentRecord | None:
        """Get a document by ID."""
        record = self._documents.get(document_id)

        if record is None:
            return None

        # Enforce ownership
        if record.user_id != ctx.user_id:
            return None

        return record

    async def list_for_user(self, ctx: RequestContext) -> list[DocumentRecord]:
        """List the caller's documents, newest first."""
        results = [r for r in self._documents.values() if r.user_id == ctx.user_id]
        results.sort(key=lambda r: r.created_at, reverse=True)
        return results

    async def set_status(
        self,
        document_id: uuid.UUID,
        status: DocumentStatus,
        error_message: str | None = None,
    ) -> None:
        """Move a document through its lifecycle."""
        record = self._documents.get(document_id)
        if record is None:
            return
        record.status = status
        record.error_message = error_message


class InMemoryAnalysisRepository:
    """In-memory implementation of AnalysisRepository."""

    def __init__(self) -> None:
        self._analyses: dict[uuid.UUID, AnalysisRecord] = {}

    async def save(self, document_id: uuid.UUID, result: dict[str, Any]) -> AnalysisRecord:
        """Store the analysis for a document, replacing any previous one."""
        record = AnalysisRecord(document_id=document_id, result=result, created_at=utcnow())
        self._analyses[document_id] = record
        return record

    async def get(self, document_id: uuid.UUID) -> AnalysisRecord | None:
        """Get the analysis for a document."""
        return self._analyses.get(document_id)


class InMemoryVersionStore:
    """In-memory implementation of VersionStore.

    Appends for the same document are serialized by a per-document lock;
    appends for different documents never contend.
    """

    def __init__(self) -> None:
        self._versions: dict[uuid.UUID, list[VersionRecord]] = defaultdict(list)
        self._locks: dict[uuid.UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def append(self, document_id: uuid.UUID, text: str) -> int:
        """Append a new version."""
        async with self._locks[document_id]:
            versions = self._versions[document_id]
            next_number = (versions[-1].version_number if versions else 0) + 1
            versions.append(
                VersionRecord(
                    document_id=document_id,
                    version_number=next_number,
                    content_text=text,
                    created_at=utcnow(),
                )
            )
            return next_number

    async def latest(self, document_id: uuid.UUID) -> VersionRecord | None:
        """Get the highest-numbered version."""
        versions = self._versions.get(document_id)
        return versions[-1] if versions else None

    async def get(self, document_id: uuid.UUID, version_number: int) -> VersionRecord | None:
        """Get a specific version."""
        for record in self._versions.get(document_id, []):
            if record.version_number == version_number:
                return record
        return None

    async def all_versions(self, document_id: uuid.UUID) -> list[VersionRecord]:
        """List all versions in ascending order."""
        return list(self._versions.get(document_id, []))


class InMemoryChatTurnRepository:
    """In-memory implementation of ChatTurnRepository."""

    def __init__(self) -> None:
        self._turns: list[ChatTurnRecord] = []

    async def append(
        self,
        ctx: RequestContext,
        *,
        document_id: uuid.UUID | None,
        user_message: str,
        ai_response: str,
    ) -> ChatTurnRecord:
        """Append a chat turn."""
        record = ChatTurnRecord(
            turn_id=uuid.uuid4(),
            document_id=document_id,
            user_id=ctx.user_id,
            user_message=user_message,
            ai_response=ai_response,
            created_at=utcnow(),
        )
        self._turns.append(record)
        return record

    async def recent(
        self, ctx: RequestContext, document_id: uuid.UUID | None, limit: int
    ) -> list[ChatTurnRecord]:
        """Get the most recent turns, oldest first."""
        matching = [
            t for t in self._turns if t.user_id == ctx.user_id and t.document_id == document_id
        ]
        return matching[-limit:] if limit > 0 else []

    async def list_for_document(
        self, ctx: RequestContext, document_id: uuid.UUID
    ) -> list[ChatTurnRecord]:
        """List every turn for a document, oldest first."""
        return [
            t for t in self._turns if t.user_id == ctx.user_id and t.document_id == document_id
        ]


class InMemoryAuditLogRepository:
    """In-memory implementation of AuditLogRepository."""

    def __init__(self) -> None:
        self.events: list[tuple[uuid.UUID, str, dict[str, Any]]] = []

    async def record(self, user_id: uuid.UUID, action: str, details: dict[str, Any]) -> None:
        """Persist an audit event."""
        self.events.append((user_id, action, details))


class InMemoryRateLimiter:
    """In-memory implementation of RateLimiter using fixed window."""

    def __init__(self, max_requests: int, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._windows: dict[str, tuple[datetime, int]] = {}

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available."""
        if key in self._windows:
            window_start, count = self._windows[key]

            # Check if window expired
            if now >= window_start + timedelta(seconds=self._window_seconds):
                self._windows[key] = (now, 1)
                return None

            if count >= self._max_requests:
                seconds_remaining = int(
                    (window_start + timedelta(seconds=self._window_seconds) - now).total_seconds()
                )
                return RetryAfter(seconds=max(1, seconds_remaining))

            self._windows[key] = (window_start, count + 1)
            return None
        else:
            # First request
            self._windows[key] = (now, 1)
            return None
