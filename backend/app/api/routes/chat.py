"""Chat endpoint - POST /chat."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from backend.app.api.auth import get_current_context
from backend.app.api.deps import get_chat_coordinator
from backend.app.api.errors import raise_http_error
from backend.app.chat.coordinator import ChatCoordinator
from backend.app.db.context import RequestContext
from backend.app.errors import ServiceError

router = APIRouter(tags=["chat"])


class ChatRequest(BaseModel):
    """Request body for POST /chat."""

    document_id: UUID | None = Field(None, description="Target document; omit for general chat")
    message: str = Field(..., min_length=1, max_length=4000)


class ChatResponse(BaseModel):
    """Response for POST /chat."""

    ai_response: str
    document_id: UUID | None
    version_number: int | None = Field(
        None, description="New document version created by this turn, if any"
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    coordinator: Annotated[ChatCoordinator, Depends(get_chat_coordinator)],
) -> ChatResponse:
    """Send a chat message about a document, or a general question.

    Raises:
        HTTPException: 403 without pro for document chat, 404 if the document
            is not found, 429 when throttled, 502 on LLM failure, 409 on a
            version collision
    """
    try:
        reply = await coordinator.handle(ctx, request.document_id, request.message)
    except ServiceError as e:
        raise_http_error(e)

    return ChatResponse(
        ai_response=reply.ai_response,
        document_id=reply.document_id,
        version_number=reply.version_number,
    )
