"""Repository protocol interfaces for data access."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from backend.app.db.context import RequestContext
from backend.app.models.common import DocumentStatus, Tier


@dataclass
class EntitlementRecord:
    """Entitlement data record."""

    user_id: UUID
    tier: Tier
    credits: int
    payment_customer_id: str | None
    updated_at: datetime


@dataclass
class DocumentRecord:
    """Document data record."""

    document_id: UUID
    user_id: UUID
    display_name: str
    storage_path: str
    media_type: str
    size_bytes: int
    status: DocumentStatus
    error_message: str | None
    created_at: datetime


@dataclass
class AnalysisRecord:
    """Analysis data record."""

    document_id: UUID
    result: dict[str, Any]
    created_at: datetime


@dataclass(frozen=True)
class VersionRecord:
    """Immutable document version record."""

    document_id: UUID
    version_number: int
    content_text: str
    created_at: datetime


@dataclass(frozen=True)
class ChatTurnRecord:
    """Immutable chat turn record."""

    turn_id: UUID
    document_id: UUID | None
    user_id: UUID
    user_message: str
    ai_response: str
    created_at: datetime


class EntitlementRepository(Protocol):
    """Repository for per-user entitlements."""

    async def get(self, user_id: UUID) -> EntitlementRecord | None:
        """Get a user's entitlement without creating one."""
        ...

    async def get_or_create(self, user_id: UUID) -> EntitlementRecord:
        """Get a user's entitlement, creating the free-tier default on first sight.

        Args:
            user_id: User ID

        Returns:
            Entitlement record
        """
        ...

    async def set_tier(self, user_id: UUID, tier: Tier) -> None:
        """Set a user's subscription tier."""
        ...

    async def set_payment_customer(self, user_id: UUID, customer_id: str) -> None:
        """Remember the payment-provider customer for a user."""
        ...

    async def find_by_payment_customer(self, customer_id: str) -> EntitlementRecord | None:
        """Find the entitlement owning a payment-provider customer."""
        ...

    async def consume_credit(self, user_id: UUID) -> int:
        """Decrement credits by one, never below zero.

        Returns:
            Remaining credits
        """
        ...


class DocumentRepository(Protocol):
    """Repository for documents."""

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
        ...

    async def get(self, document_id: UUID, ctx: RequestContext) -> DocumentRecord | None:
        """Get a document by ID.

        Args:
            document_id: Document ID
            ctx: Request context (enforces ownership)

        Returns:
            Document record or None if not found or not owned
        """
        ...

    async def list_for_user(self, ctx: RequestContext) -> list[DocumentRecord]:
        """List the caller's documents, newest first."""
        ...

    async def set_status(
        self, document_id: UUID, status: DocumentStatus, error_message: str | None = None
    ) -> None:
        """Move a document through its lifecycle."""
        ...


class AnalysisRepository(Protocol):
    """Repository for analyses (one active per document)."""

    async def save(self, document_id: UUID, result: dict[str, Any]) -> AnalysisRecord:
        """Store the analysis for a document, replacing any previous one."""
        ...

    async def get(self, document_id: UUID) -> AnalysisRecord | None:
        """Get the analysis for a document."""
        ...


class VersionStore(Protocol):
    """Append-only store of full-text document snapshots."""

    async def append(self, document_id: UUID, text: str) -> int:
        """Append a new version as one atomic read-max-then-insert step.

        Args:
            document_id: Owning document
            text: Full document text

        Returns:
            The new version number (1 for the first append)

        Raises:
            ConsistencyError: If the number was claimed concurrently
        """
        ...

    async def latest(self, document_id: UUID) -> VersionRecord | None:
        """Get the highest-numbered version, or None if there is none."""
        ...

    async def get(self, document_id: UUID, version_number: int) -> VersionRecord | None:
        """Get a specific version."""
        ...

    async def all_versions(self, document_id: UUID) -> list[VersionRecord]:
        """List all versions in ascending order."""
        ...


class ChatTurnRepository(Protocol):
    """Repository for chat turns."""

    async def append(
        self,
        ctx: RequestContext,
        *,
        document_id: UUID | None,
        user_message: str,
        ai_response: str,
    ) -> ChatTurnRecord:
        """Append a chat turn."""
        ...

    async def recent(
        self, ctx: RequestContext, document_id: UUID | None, limit: int
    ) -> list[ChatTurnRecord]:
        """Get the most recent turns, ordered oldest to newest.

        Args:
            ctx: Request context (enforces ownership)
            document_id: Document, or None for general chat
            limit: Window size

        Returns:
            Up to ``limit`` turns, oldest first
        """
        ...

    async def list_for_document(
        self, ctx: RequestContext, document_id: UUID
    ) -> list[ChatTurnRecord]:
        """List every turn for a document, oldest first."""
        ...


class AuditLogRepository(Protocol):
    """Repository for audit events."""

    async def record(self, user_id: UUID, action: str, details: dict[str, Any]) -> None:
        """Persist an audit event."""
        ...


@dataclass
class RetryAfter:
    """Rate limit retry-after information."""

    seconds: int


class RateLimiter(Protocol):
    """Rate limiter interface."""

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            RetryAfter if over quota, None if allowed
        """
        ...
