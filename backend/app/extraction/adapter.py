"""Content extraction adapter.

Dispatches a stored file, by source kind, to the text, vision or
speech-to-text-then-text path and normalizes the reply into an
``AnalysisResult``. Any upstream failure becomes an ``ExtractionError``
carrying the upstream status; partial output is never returned.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi.concurrency import run_in_threadpool

from backend.app.errors import ExtractionError
from backend.app.extraction.prompts import build_analysis_prompt, format_material
from backend.app.extraction.sources import classify, file_suffix, image_media_type
from backend.app.extraction.text import TextExtractionError, extract_raw_text
from backend.app.llm.client import LLMClient, LLMFailure, LLMResult
from backend.app.models.common import SourceKind
from backend.app.models.documents import AnalysisResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Extraction:
    """Analysis plus the raw text that seeds version 1 (None for images)."""

    kind: SourceKind
    result: AnalysisResult
    source_text: str | None


class ContentExtractor:
    """Runs one file through the matching analysis path."""

    def __init__(self, llm: LLMClient, temperature: float = 0.3) -> None:
        self._llm = llm
        self._temperature = temperature

    async def extract(self, data: bytes, file_name: str) -> Extraction:
        """Analyze a stored file.

        Args:
            data: File bytes, already size-bounded
            file_name: Original file name (suffix selects the path)

        Returns:
            Extraction with the normalized analysis

        Raises:
            UnsupportedFileTypeError: If the suffix maps to no path
            ExtractionError: If the file is unreadable or an upstream call fails
        """
        name = file_name.lower()
        kind = classify(name)

        if kind is SourceKind.text_document:
            summary, source_text = await self._analyze_text_document(data, name)
        elif kind is SourceKind.image:
            summary = await self._analyze_image(data, name)
            source_text = None
        else:
            summary, source_text = await self._analyze_audio(data, name)

        return Extraction(
            kind=kind,
            result=AnalysisResult(
                summary=summary,
                analyzed_at=datetime.now(timezone.utc),
                source_name=file_name,
            ),
            source_text=source_text,
        )

    async def _analyze_text_document(self, data: bytes, name: str) -> tuple[str, str | None]:
        try:
            raw_text = await run_in_threadpool(extract_raw_text, data, file_suffix(name))
        except TextExtractionError as e:
            raise ExtractionError("text_extraction", None, str(e)) from e

        # Scanned PDFs and legacy .doc files are described by name only
        source_text = raw_text or None

        reply = await self._llm.complete(
            system_prompt=build_analysis_prompt(SourceKind.text_document),
            user_prompt=format_material(SourceKind.text_document, source_text or name),
            temperature=self._temperature,
        )
        return _unwrap(reply, "text_analysis"), source_text

    async def _analyze_image(self, data: bytes, name: str) -> str:
        reply = await self._llm.complete_with_image(
            prompt=build_analysis_prompt(SourceKind.image),
            image=data,
            media_type=image_media_type(name),
            temperature=self._temperature,
        )
        return _unwrap(reply, "vision_analysis")

    async def _analyze_audio(self, data: bytes, name: str) -> tuple[str, str]:
        transcript = _unwrap(await self._llm.transcribe(audio=data, file_name=name), "transcription")

        reply = await self._llm.complete(
            system_prompt=build_analysis_prompt(SourceKind.audio),
            user_prompt=format_material(SourceKind.audio, transcript),
            temperature=self._temperature,
        )
        return _unwrap(reply, "transcript_analysis"), transcript


def _unwrap(reply: LLMResult, stage: str) -> str:
    if isinstance(reply, LLMFailure):
        logger.error(f"Extraction stage {stage} failed with upstream status {reply.status}")
        raise ExtractionError(stage, reply.status, reply.detail)
    return reply.text
