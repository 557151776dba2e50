"""Document, analysis, version and chat domain models."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from backend.app.models.common import DocumentStatus, Tier


class AnalysisResult(BaseModel):
    """Normalized output of the extraction pipeline."""

    summary: str
    analyzed_at: datetime
    source_name: str
    status: Literal["completed"] = "completed"


class DocumentOut(BaseModel):
    """Document metadata as returned to its owner."""

    document_id: UUID
    display_name: str
    media_type: str
    size_bytes: int
    status: DocumentStatus
    error_message: str | None = None
    created_at: datetime


class DocumentDetail(DocumentOut):
    """Document metadata plus its most recent analysis."""

    analysis: AnalysisResult | None = None
    latest_version: int | None = None


class DocumentVersionOut(BaseModel):
    """One immutable full-text snapshot."""

    document_id: UUID
    version_number: int = Field(..., ge=1)
    content_text: str
    created_at: datetime


class ChatTurnOut(BaseModel):
    """One stored user/assistant exchange."""

    turn_id: UUID
    document_id: UUID | None
    user_message: str
    ai_response: str
    created_at: datetime


class EntitlementOut(BaseModel):
    """Caller's subscription tier and remaining analysis credits."""

    tier: Tier
    credits: int = Field(..., ge=0)
