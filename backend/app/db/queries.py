"""Ownership-safe query helpers."""

from uuid import UUID

from sqlalchemy import Select, select

from backend.app.db.context import RequestContext
from backend.app.db.models import ChatTurn, Document


def query_documents(ctx: RequestContext) -> Select[tuple[Document]]:
    """Select documents with owner scoping enforced.

    Args:
        ctx: Request context with user_id

    Returns:
        Select filtered by user_id
    """
    return select(Document).where(Document.user_id == ctx.user_id)


def query_chat_turns(ctx: RequestContext, document_id: UUID | None) -> Select[tuple[ChatTurn]]:
    """Select chat turns for one document (or general chat) with owner scoping enforced.

    Args:
        ctx: Request context with user_id
        document_id: Document ID, or None for document-less turns

    Returns:
        Select filtered by user_id and document
    """
    if document_id is None:
        document_filter = ChatTurn.document_id.is_(None)
    else:
        document_filter = ChatTurn.document_id == document_id
    return select(ChatTurn).where(ChatTurn.user_id == ctx.user_id, document_filter)
