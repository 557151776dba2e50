"""Document endpoints - upload, analysis, versions and chat history."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile, status
from pydantic import BaseModel

from backend.app.api.auth import get_current_context
from backend.app.api.deps import get_analysis_pipeline, get_document_service
from backend.app.api.errors import raise_http_error
from backend.app.config import get_settings
from backend.app.db.context import RequestContext
from backend.app.db.repositories import ChatTurnRecord, VersionRecord
from backend.app.documents.service import AnalysisPipeline, DocumentService
from backend.app.errors import ServiceError
from backend.app.models.documents import (
    ChatTurnOut,
    DocumentDetail,
    DocumentOut,
    DocumentVersionOut,
)

router = APIRouter(prefix="/documents", tags=["documents"])

DEFAULT_MEDIA_TYPE = "application/octet-stream"


class DocumentListResponse(BaseModel):
    """Response for GET /documents."""

    documents: list[DocumentOut]


class VersionListResponse(BaseModel):
    """Response for GET /documents/{document_id}/versions."""

    versions: list[DocumentVersionOut]


class ChatHistoryResponse(BaseModel):
    """Response for GET /documents/{document_id}/chat."""

    turns: list[ChatTurnOut]


def _version_out(record: VersionRecord) -> DocumentVersionOut:
    return DocumentVersionOut(
        document_id=record.document_id,
        version_number=record.version_number,
        content_text=record.content_text,
        created_at=record.created_at,
    )


def _turn_out(record: ChatTurnRecord) -> ChatTurnOut:
    return ChatTurnOut(
        turn_id=record.turn_id,
        document_id=record.document_id,
        user_message=record.user_message,
        ai_response=record.ai_response,
        created_at=record.created_at,
    )


@router.post("", response_model=DocumentDetail, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: Annotated[UploadFile, File()],
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    service: Annotated[DocumentService, Depends(get_document_service)],
    analyze: Annotated[bool, Query()] = True,
) -> DocumentDetail:
    """Upload a contract and, by default, analyze it right away.

    Returns:
        The stored document with its resulting status (and analysis on success)
    """
    # One byte past the limit is enough for the validator to reject it
    data = await file.read(get_settings().max_upload_bytes + 1)

    try:
        return await service.upload(
            ctx,
            file_name=file.filename or "",
            media_type=file.content_type or DEFAULT_MEDIA_TYPE,
            data=data,
            analyze=analyze,
        )
    except ServiceError as e:
        raise_http_error(e)


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    service: Annotated[DocumentService, Depends(get_document_service)],
) -> DocumentListResponse:
    """List the caller's documents, newest first."""
    return DocumentListResponse(documents=await service.list_documents(ctx))


@router.get("/{document_id}", response_model=DocumentDetail)
async def get_document(
    document_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    service: Annotated[DocumentService, Depends(get_document_service)],
) -> DocumentDetail:
    """Get a document with its analysis."""
    try:
        return await service.get_detail(ctx, document_id)
    except ServiceError as e:
        raise_http_error(e)


@router.post("/{document_id}/analyze", response_model=DocumentDetail)
async def analyze_document(
    document_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    pipeline: Annotated[AnalysisPipeline, Depends(get_analysis_pipeline)],
    service: Annotated[DocumentService, Depends(get_document_service)],
) -> DocumentDetail:
    """Run (or re-run) the analysis for a stored document.

    Raises:
        HTTPException: 402 without credits, 404 if not found, 429 when
            throttled, 502 on upstream failure
    """
    try:
        await pipeline.run(ctx, document_id)
        return await service.get_detail(ctx, document_id)
    except ServiceError as e:
        raise_http_error(e)


@router.get("/{document_id}/versions", response_model=VersionListResponse)
async def list_versions(
    document_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    service: Annotated[DocumentService, Depends(get_document_service)],
) -> VersionListResponse:
    """List every version of a document, ascending."""
    try:
        versions = await service.list_versions(ctx, document_id)
    except ServiceError as e:
        raise_http_error(e)
    return VersionListResponse(versions=[_version_out(v) for v in versions])


@router.get("/{document_id}/versions/{version_number}", response_model=DocumentVersionOut)
async def get_version(
    document_id: UUID,
    version_number: Annotated[int, Path(ge=1)],
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    service: Annotated[DocumentService, Depends(get_document_service)],
) -> DocumentVersionOut:
    """Get one version of a document."""
    try:
        version = await service.get_version(ctx, document_id, version_number)
    except ServiceError as e:
        raise_http_error(e)
    return _version_out(version)


@router.get("/{document_id}/chat", response_model=ChatHistoryResponse)
async def chat_history(
    document_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    service: Annotated[DocumentService, Depends(get_document_service)],
) -> ChatHistoryResponse:
    """Chat history for a document, oldest first."""
    try:
        turns = await service.chat_history(ctx, document_id)
    except ServiceError as e:
        raise_http_error(e)
    return ChatHistoryResponse(turns=[_turn_out(t) for t in turns])
