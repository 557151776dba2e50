"""Conversation context assembly."""

import json
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from backend.app.db.context import RequestContext
from backend.app.db.repositories import (
    AnalysisRepository,
    ChatTurnRecord,
    ChatTurnRepository,
    DocumentRepository,
    VersionStore,
)
from backend.app.errors import DocumentNotFoundError


@dataclass(frozen=True)
class ContextBundle:
    """Everything a document chat prompt is built from."""

    document_id: UUID
    analysis: dict[str, Any]
    latest_text: str
    latest_version: int | None
    history: str

    @property
    def analysis_text(self) -> str:
        return json.dumps(self.analysis, ensure_ascii=False, default=str)


def render_history(turns: list[ChatTurnRecord]) -> str:
    """Render turns oldest first as alternating User/AI lines."""
    return "\n".join(f"User: {t.user_message}\nAI: {t.ai_response}" for t in turns)


class ContextAssembler:
    """Gathers analysis, latest version and recent turns for one document.

    Empty sources degrade to empty values; only an unresolvable or foreign
    document is an error.
    """

    def __init__(
        self,
        documents: DocumentRepository,
        analyses: AnalysisRepository,
        versions: VersionStore,
        chat_turns: ChatTurnRepository,
        window: int = 5,
    ) -> None:
        self._documents = documents
        self._analyses = analyses
        self._versions = versions
        self._chat_turns = chat_turns
        self._window = window

    @property
    def window(self) -> int:
        return self._window

    async def assemble(self, ctx: RequestContext, document_id: UUID) -> ContextBundle:
        """Build the context bundle.

        Raises:
            DocumentNotFoundError: If the document does not resolve to the caller
        """
        document = await self._documents.get(document_id, ctx)
        if document is None:
            raise DocumentNotFoundError()

        analysis = await self._analyses.get(document_id)
        latest = await self._versions.latest(document_id)
        turns = await self._chat_turns.recent(ctx, document_id, self._window)

        return ContextBundle(
            document_id=document_id,
            analysis=analysis.result if analysis else {},
            latest_text=latest.content_text if latest else "",
            latest_version=latest.version_number if latest else None,
            history=render_history(turns),
        )

    async def general_history(self, ctx: RequestContext) -> str:
        """Recent document-less turns for general chat."""
        return render_history(await self._chat_turns.recent(ctx, None, self._window))
