"""SQL implementations of repository interfaces."""

import logging
import uuid
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.context import RequestContext
from backend.app.db.models import (
    Analysis,
    AuditLog,
    ChatTurn,
    Document,
    DocumentVersion,
    Entitlement,
    utcnow,
)
from backend.app.db.queries import query_chat_turns, query_documents
from backend.app.db.repositories import (
    AnalysisRecord,
    ChatTurnRecord,
    DocumentRecord,
    EntitlementRecord,
    VersionRecord,
)
from backend.app.errors import ConsistencyError, PersistenceError
from backend.app.models.common import DocumentStatus, Tier

logger = logging.getLogger(__name__)


async def _commit(session: AsyncSession, what: str) -> None:
    """Commit, converting storage failures into PersistenceError."""
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to persist {what}: {e}")
        raise PersistenceError(f"Erro ao salvar {what}") from e


def _to_entitlement(row: Entitlement) -> EntitlementRecord:
    return EntitlementRecord(
        user_id=row.user_id,
        tier=Tier(row.tier),
        credits=row.credits,
        payment_customer_id=row.payment_customer_id,
        updated_at=row.updated_at,
    )


def _to_document(row: Document) -> DocumentRecord:
    return DocumentRecord(
        document_id=row.document_id,
        user_id=row.user_id,
        display_name=row.display_name,
        storage_path=row.storage_path,
        media_type=row.media_type,
        size_bytes=row.size_bytes,
        status=DocumentStatus(row.status),
        error_message=row.error_message,
        created_at=row.created_at,
    )


def _to_version(row: DocumentVersion) -> VersionRecord:
    return VersionRecord(
        document_id=row.document_id,
        version_number=row.version_number,
        content_text=row.content_text,
        created_at=row.created_at,
    )


def _to_chat_turn(row: ChatTurn) -> ChatTurnRecord:
    return ChatTurnRecord(
        turn_id=row.turn_id,
        document_id=row.document_id,
        user_id=row.user_id,
        user_message=row.user_message,
        ai_response=row.ai_response,
        created_at=row.created_at,
    )


class SqlEntitlementRepository:
    """SQL implementation of EntitlementRepository."""

    def __init__(self, session: AsyncSession, default_credits: int = 3) -> None:
        self._session = session
        self._default_credits = default_credits

    async def _get_or_create_row(self, user_id: uuid.UUID) -> Entitlement:
        row = await self._session.get(Entitlement, user_id)
        if row is not None:
            return row

        row = Entitlement(
            user_id=user_id,
            tier=Tier.free.value,
            credits=self._default_credits,
            payment_customer_id=None,
        )
        self._session.add(row)
        try:
            await self._session.commit()
        except IntegrityError:
            # Created by a concurrent request in the meantime
            await self._session.rollback()
            existing = await self._session.get(Entitlement, user_id)
            if existing is None:
                raise PersistenceError("Erro ao salvar entitlement") from None
            return existing
        return row

    async def get(self, user_id: uuid.UUID) -> EntitlementRecord | None:
        """Get a user's entitlement without creating one."""
        row = await self._session.get(Entitlement, user_id)
        return _to_entitlement(row) if row else None

    async def get_or_create(self, user_id: uuid.UUID) -> EntitlementRecord:
        """Get a user's entitlement, creating the default on first sight."""
        return _to_entitlement(await self._get_or_create_row(user_id))

    async def set_tier(self, user_id: uuid.UUID, tier: Tier) -> None:
        """Set a user's subscription tier."""
        row = await self._get_or_create_row(user_id)
        row.tier = tier.value
        await _commit(self._session, "entitlement")

    async def set_payment_customer(self, user_id: uuid.UUID, customer_id: str) -> None:
        """Remember the payment-provider customer for a user."""
        row = await self._get_or_create_row(user_id)
        row.payment_customer_id = customer_id
        await _commit(self._session, "entitlement")

    async def find_by_payment_customer(self, customer_id: str) -> EntitlementRecord | None:
        """Find the entitlement owning a payment-provider customer."""
        result = await self._session.execute(
            select(Entitlement).where(Entitlement.payment_customer_id == customer_id)
        )
        row = result.scalar_one_or_none()
        return _to_entitlement(row) if row else None

    async def consume_credit(self, user_id: uuid.UUID) -> int:
        """Decrement credits by one, never below zero.

        Single conditional UPDATE so concurrent analyses cannot overdraw.
        """
        row = await self._get_or_create_row(user_id)
        await self._session.execute(
            update(Entitlement)
            .where(Entitlement.user_id == user_id, Entitlement.credits > 0)
            .values(credits=Entitlement.credits - 1, updated_at=utcnow())
        )
        await _commit(self._session, "créditos")

        await self._session.refresh(row)
        return row.credits


class SqlDocumentRepository:
    """SQL implementation of DocumentRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

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
        row = Document(
            document_id=uuid.uuid4(),
            user_id=ctx.user_id,
            display_name=display_name,
            storage_path=storage_path,
            media_type=media_type,
            size_bytes=size_bytes,
            status=DocumentStatus.pending.value,
            created_at=utcnow(),
        )
        self._session.add(row)
        await _commit(self._session, "contrato")
        return _to_document(row)

    async def get(self, document_id: uuid.UUID, ctx: RequestContext) -> DocumentRecord | None:
        """Get a document by ID."""
        result = await self._session.execute(
            query_documents(ctx).where(Document.document_id == document_id)
        )
        row = result.scalar_one_or_none()
        return _to_document(row) if row else None

    async def list_for_user(self, ctx: RequestContext) -> list[DocumentRecord]:
        """List the caller's documents, newest first."""
        result = await self._session.execute(
            query_documents(ctx).order_by(Document.created_at.desc())
        )
        return [_to_document(row) for row in result.scalars().all()]

    async def set_status(
        self,
        document_id: uuid.UUID,
        status: DocumentStatus,
        error_message: str | None = None,
    ) -> None:
        """Move a document through its lifecycle."""
        await self._session.execute(
            update(Document)
            .where(Document.document_id == document_id)
            .values(status=status.value, error_message=error_message)
        )
        await _commit(self._session, "status do contrato")


class SqlAnalysisRepository:
    """SQL implementation of AnalysisRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save(self, document_id: uuid.UUID, result: dict[str, Any]) -> AnalysisRecord:
        """Store the analysis for a document, replacing any previous one."""
        existing = await self._session.execute(
            select(Analysis).where(Analysis.document_id == document_id)
        )
        row = existing.scalar_one_or_none()

        if row is None:
            row = Analysis(document_id=document_id, result=result, created_at=utcnow())
            self._session.add(row)
        else:
            row.result = result
            row.created_at = utcnow()

        await _commit(self._session, "análise")
        return AnalysisRecord(document_id=document_id, result=row.result, created_at=row.created_at)

    async def get(self, document_id: uuid.UUID) -> AnalysisRecord | None:
        """Get the analysis for a document."""
        result = await self._session.execute(
            select(Analysis).where(Analysis.document_id == document_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return AnalysisRecord(document_id=row.document_id, result=row.result, created_at=row.created_at)


class SqlVersionStore:
    """SQL implementation of VersionStore.

    The owning document row is locked (``SELECT ... FOR UPDATE`` on PostgreSQL)
    for the read-max-then-insert step, so appends for one document are
    serialized while other documents proceed. The unique
    (document_id, version_number) constraint rejects any collision that gets
    past the lock.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _max_version(self, document_id: uuid.UUID) -> int:
        result = await self._session.execute(
            select(func.max(DocumentVersion.version_number)).where(
                DocumentVersion.document_id == document_id
            )
        )
        return result.scalar_one_or_none() or 0

    async def append(self, document_id: uuid.UUID, text: str) -> int:
        """Append a new version."""
        locked = await self._session.execute(
            select(Document.document_id)
            .where(Document.document_id == document_id)
            .with_for_update()
        )
        if locked.scalar_one_or_none() is None:
            await self._session.rollback()
            raise ConsistencyError(f"Document {document_id} missing while appending version")

        next_number = await self._max_version(document_id) + 1
        self._session.add(
            DocumentVersion(
                document_id=document_id,
                version_number=next_number,
                content_text=text,
                created_at=utcnow(),
            )
        )

        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            logger.error(
                f"Version collision for document {document_id} at version {next_number}"
            )
            raise ConsistencyError(
                f"Version {next_number} of document {document_id} already exists"
            ) from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise PersistenceError("Erro ao salvar versão do contrato") from e

        return next_number

    async def latest(self, document_id: uuid.UUID) -> VersionRecord | None:
        """Get the highest-numbered version."""
        result = await self._session.execute(
            select(DocumentVersion)
            .where(DocumentVersion.document_id == document_id)
            .order_by(DocumentVersion.version_number.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return _to_version(row) if row else None

    async def get(self, document_id: uuid.UUID, version_number: int) -> VersionRecord | None:
        """Get a specific version."""
        result = await self._session.execute(
            select(DocumentVersion).where(
                DocumentVersion.document_id == document_id,
                DocumentVersion.version_number == version_number,
            )
        )
        row = result.scalar_one_or_none()
        return _to_version(row) if row else None

    async def all_versions(self, document_id: uuid.UUID) -> list[VersionRecord]:
        """List all versions in ascending order."""
        result = await self._session.execute(
            select(DocumentVersion)
            .where(DocumentVersion.document_id == document_id)
            .order_by(DocumentVersion.version_number.asc())
        )
        return [_to_version(row) for row in result.scalars().all()]


class SqlChatTurnRepository:
    """SQL implementation of ChatTurnRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(
        self,
        ctx: RequestContext,
        *,
        document_id: uuid.UUID | None,
        user_message: str,
        ai_response: str,
    ) -> ChatTurnRecord:
        """Append a chat turn."""
        row = ChatTurn(
            turn_id=uuid.uuid4(),
            document_id=document_id,
            user_id=ctx.user_id,
            user_message=user_message,
            ai_response=ai_response,
            created_at=utcnow(),
        )
        self._session.add(row)
        await _commit(self._session, "conversa")
        return _to_chat_turn(row)

    async def recent(
        self, ctx: RequestContext, document_id: uuid.UUID | None, limit: int
    ) -> list[ChatTurnRecord]:
        """Get the most recent turns, oldest first."""
        if limit <= 0:
            return []
        result = await self._session.execute(
            query_chat_turns(ctx, document_id).order_by(ChatTurn.created_at.desc()).limit(limit)
        )
        rows = list(result.scalars().all())
        rows.reverse()
        return [_to_chat_turn(row) for row in rows]

    async def list_for_document(
        self, ctx: RequestContext, document_id: uuid.UUID
    ) -> list[ChatTurnRecord]:
        """List every turn for a document, oldest first."""
        result = await self._session.execute(
            query_chat_turns(ctx, document_id).order_by(ChatTurn.created_at.asc())
        )
        return [_to_chat_turn(row) for row in result.scalars().all()]


class SqlAuditLogRepository:
    """SQL implementation of AuditLogRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(self, user_id: uuid.UUID, action: str, details: dict[str, Any]) -> None:
        """Persist an audit event."""
        self._session.add(
            AuditLog(user_id=user_id, action=action, details=details, created_at=utcnow())
        )
        await _commit(self._session, "auditoria")
