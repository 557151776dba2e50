"""Tests for upload ingress and the analysis pipeline."""

from dataclasses import dataclass, field

import pytest

from backend.app.db.context import RequestContext
from backend.app.db.inmemory import (
    InMemoryAnalysisRepository,
    InMemoryAuditLogRepository,
    InMemoryChatTurnRepository,
    InMemoryDocumentRepository,
    InMemoryEntitlementRepository,
    InMemoryRateLimiter,
    InMemoryVersionStore,
)
from backend.app.documents.service import AnalysisPipeline, DocumentService
from backend.app.errors import (
    DocumentNotFoundError,
    ExtractionError,
    InsufficientCreditsError,
    PersistenceError,
    RateLimitError,
    UploadRejectedError,
)
from backend.app.extraction.adapter import ContentExtractor
from backend.app.llm.client import LLMFailure, LLMResult, LLMSuccess
from backend.app.models.common import DocumentStatus
from backend.app.models.documents import DocumentDetail
from backend.app.ratelimit import Bucket, RequestThrottle
from backend.app.storage.blobs import InMemoryBlobStore
from backend.app.validation.upload import RejectionReason


@dataclass
class CountingLLM:
    """Succeeds (or fails) every call and counts them."""

    failure: LLMFailure | None = None
    calls: list[str] = field(default_factory=list)

    async def complete(self, *, system_prompt: str, user_prompt: str, temperature: float) -> LLMResult:
        self.calls.append("complete")
        return self.failure or LLMSuccess(text="**Resumo Executivo** contrato de locação")

    async def complete_with_image(
        self, *, prompt: str, image: bytes, media_type: str, temperature: float
    ) -> LLMResult:
        self.calls.append("image")
        return self.failure or LLMSuccess(text="análise da imagem")

    async def transcribe(self, *, audio: bytes, file_name: str) -> LLMResult:
        self.calls.append("transcribe")
        return self.failure or LLMSuccess(text="eu concordo com os termos")


class FailOnSuccessStatus(InMemoryDocumentRepository):
    """Document repository that cannot record a successful analysis."""

    async def set_status(self, document_id, status, error_message=None):  # type: ignore[no-untyped-def]
        if status is DocumentStatus.success:
            raise PersistenceError("Erro ao salvar contrato")
        await super().set_status(document_id, status, error_message)


class FailingCreditRepository(InMemoryEntitlementRepository):
    """Entitlement repository whose credit charge always fails."""

    async def consume_credit(self, user_id):  # type: ignore[no-untyped-def]
        raise PersistenceError("Erro ao salvar créditos")


@dataclass
class Harness:
    llm: CountingLLM
    entitlements: InMemoryEntitlementRepository
    documents: InMemoryDocumentRepository
    analyses: InMemoryAnalysisRepository
    versions: InMemoryVersionStore
    audit: InMemoryAuditLogRepository
    pipeline: AnalysisPipeline
    service: DocumentService


def _harness(
    llm: CountingLLM | None = None,
    credits: int = 3,
    throttle: RequestThrottle | None = None,
    documents: InMemoryDocumentRepository | None = None,
    entitlements: InMemoryEntitlementRepository | None = None,
) -> Harness:
    llm = llm or CountingLLM()
    entitlements = entitlements or InMemoryEntitlementRepository(default_credits=credits)
    documents = documents or InMemoryDocumentRepository()
    analyses = InMemoryAnalysisRepository()
    versions = InMemoryVersionStore()
    audit = InMemoryAuditLogRepository()
    blobs = InMemoryBlobStore()
    pipeline = AnalysisPipeline(
        documents=documents,
        analyses=analyses,
        versions=versions,
        entitlements=entitlements,
        audit=audit,
        blobs=blobs,
        extractor=ContentExtractor(llm),
        throttle=throttle,
    )
    service = DocumentService(
        documents=documents,
        analyses=analyses,
        versions=versions,
        chat_turns=InMemoryChatTurnRepository(),
        entitlements=entitlements,
        audit=audit,
        blobs=blobs,
        pipeline=pipeline,
    )
    return Harness(llm, entitlements, documents, analyses, versions, audit, pipeline, service)


def _actions(audit: InMemoryAuditLogRepository) -> list[str]:
    return [action for _, action, _ in audit.events]


class TestUpload:
    """Upload ingress."""

    @pytest.mark.asyncio
    async def test_audio_upload_is_analyzed_and_versioned(self, ctx: RequestContext) -> None:
        """Accepted upload ends in success with analysis, version 1 and one credit used."""
        h = _harness()

        detail = await h.service.upload(
            ctx, file_name="reuniao.mp3", media_type="audio/mpeg", data=b"ID3audio"
        )

        assert detail.status is DocumentStatus.success
        assert detail.analysis is not None
        assert detail.analysis.summary.startswith("**Resumo Executivo**")
        assert detail.analysis.source_name == "reuniao.mp3"
        assert detail.latest_version == 1

        version = await h.versions.latest(detail.document_id)
        assert version is not None and version.content_text == "eu concordo com os termos"
        assert (await h.entitlements.get_or_create(ctx.user_id)).credits == 2
        assert _actions(h.audit) == [
            "document_uploaded",
            "document_analysis_started",
            "document_analysis_completed",
        ]

    @pytest.mark.asyncio
    async def test_image_upload_has_no_version(self, ctx: RequestContext) -> None:
        """Images produce an analysis but no text version."""
        h = _harness()

        detail = await h.service.upload(
            ctx, file_name="foto.png", media_type="image/png", data=b"\x89PNG"
        )

        assert detail.status is DocumentStatus.success
        assert detail.latest_version is None
        assert h.llm.calls == ["image"]

    @pytest.mark.asyncio
    async def test_upload_without_analysis_stays_pending(self, ctx: RequestContext) -> None:
        """analyze=False stores the document and calls nothing."""
        h = _harness()

        detail = await h.service.upload(
            ctx, file_name="a.mp3", media_type="audio/mpeg", data=b"x", analyze=False
        )

        assert detail.status is DocumentStatus.pending
        assert detail.analysis is None
        assert h.llm.calls == []

    @pytest.mark.asyncio
    async def test_rejected_upload_stores_nothing(self, ctx: RequestContext) -> None:
        """Validation failure reports the reason and creates no document."""
        h = _harness()

        with pytest.raises(UploadRejectedError) as exc_info:
            await h.service.upload(
                ctx, file_name="../../evil.pdf", media_type="application/pdf", data=b"%PDF"
            )

        assert exc_info.value.reason is RejectionReason.suspicious_name
        assert exc_info.value.status_code == 400
        assert await h.service.list_documents(ctx) == []

    @pytest.mark.asyncio
    async def test_empty_upload_rejected(self, ctx: RequestContext) -> None:
        """Zero bytes is an empty-file rejection."""
        h = _harness()

        with pytest.raises(UploadRejectedError) as exc_info:
            await h.service.upload(
                ctx, file_name="a.pdf", media_type="application/pdf", data=b""
            )

        assert exc_info.value.reason is RejectionReason.empty

    @pytest.mark.asyncio
    async def test_upload_without_credits_rejected(self, ctx: RequestContext) -> None:
        """No credits: refused before storage or any LLM call."""
        h = _harness(credits=0)

        with pytest.raises(InsufficientCreditsError):
            await h.service.upload(ctx, file_name="a.mp3", media_type="audio/mpeg", data=b"x")

        assert h.llm.calls == []
        assert await h.service.list_documents(ctx) == []

    @pytest.mark.asyncio
    async def test_inline_failure_is_reported_through_status(self, ctx: RequestContext) -> None:
        """Upstream failure leaves the document in error and credits untouched."""
        h = _harness(CountingLLM(failure=LLMFailure(status=500, detail="boom")))

        detail = await h.service.upload(
            ctx, file_name="a.mp3", media_type="audio/mpeg", data=b"x"
        )

        assert detail.status is DocumentStatus.error
        assert detail.error_message
        assert detail.analysis is None
        assert (await h.entitlements.get_or_create(ctx.user_id)).credits == 3
        assert "document_analysis_failed" in _actions(h.audit)


class TestAnalysisPipeline:
    """Explicit analysis runs."""

    async def _stored(self, h: Harness, ctx: RequestContext) -> DocumentDetail:
        return await h.service.upload(
            ctx, file_name="a.mp3", media_type="audio/mpeg", data=b"x", analyze=False
        )

    @pytest.mark.asyncio
    async def test_credits_floor_at_zero(self, ctx: RequestContext) -> None:
        """Credits go 1 -> 0, then the next run is refused before the LLM."""
        h = _harness(credits=1)
        document = await self._stored(h, ctx)

        await h.pipeline.run(ctx, document.document_id)
        assert (await h.entitlements.get_or_create(ctx.user_id)).credits == 0
        calls_after_first = len(h.llm.calls)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await h.pipeline.run(ctx, document.document_id)

        assert exc_info.value.status_code == 402
        assert len(h.llm.calls) == calls_after_first
        assert (await h.entitlements.get_or_create(ctx.user_id)).credits == 0

    @pytest.mark.asyncio
    async def test_reanalysis_keeps_history(self, ctx: RequestContext) -> None:
        """A second run replaces the analysis but does not add a version."""
        h = _harness()
        document = await self._stored(h, ctx)

        await h.pipeline.run(ctx, document.document_id)
        await h.pipeline.run(ctx, document.document_id)

        assert [v.version_number for v in await h.versions.all_versions(document.document_id)] == [1]
        assert (await h.entitlements.get_or_create(ctx.user_id)).credits == 1

    @pytest.mark.asyncio
    async def test_failure_sets_error_status(self, ctx: RequestContext) -> None:
        """Failure flips status to error and re-raises the typed error."""
        h = _harness(CountingLLM(failure=LLMFailure(status=503, detail="down")))
        document = await self._stored(h, ctx)

        with pytest.raises(ExtractionError) as exc_info:
            await h.pipeline.run(ctx, document.document_id)

        assert exc_info.value.status == 503
        record = await h.documents.get(document.document_id, ctx)
        assert record is not None
        assert record.status is DocumentStatus.error
        assert record.error_message == exc_info.value.message
        assert await h.analyses.get(document.document_id) is None

    @pytest.mark.asyncio
    async def test_failed_success_write_costs_no_credit(self, ctx: RequestContext) -> None:
        """If the success status cannot be stored the document ends in error, credits intact."""
        h = _harness(documents=FailOnSuccessStatus())
        document = await self._stored(h, ctx)

        with pytest.raises(PersistenceError):
            await h.pipeline.run(ctx, document.document_id)

        record = await h.documents.get(document.document_id, ctx)
        assert record is not None
        assert record.status is DocumentStatus.error
        assert (await h.entitlements.get_or_create(ctx.user_id)).credits == 3

    @pytest.mark.asyncio
    async def test_failed_charge_marks_error(self, ctx: RequestContext) -> None:
        """A credit charge that fails leaves the document in error, not success."""
        h = _harness(entitlements=FailingCreditRepository(default_credits=3))
        document = await self._stored(h, ctx)

        with pytest.raises(PersistenceError):
            await h.pipeline.run(ctx, document.document_id)

        record = await h.documents.get(document.document_id, ctx)
        assert record is not None
        assert record.status is DocumentStatus.error
        assert (await h.entitlements.get_or_create(ctx.user_id)).credits == 3
        assert _actions(h.audit)[-1] == "document_analysis_failed"

    @pytest.mark.asyncio
    async def test_foreign_document_not_found(
        self, ctx: RequestContext, other_ctx: RequestContext
    ) -> None:
        """Another user's document cannot be analyzed."""
        h = _harness()
        document = await self._stored(h, other_ctx)

        with pytest.raises(DocumentNotFoundError):
            await h.pipeline.run(ctx, document.document_id)

    @pytest.mark.asyncio
    async def test_analysis_throttle(self, ctx: RequestContext) -> None:
        """Analysis attempts are throttled per user."""
        throttle = RequestThrottle({Bucket.analysis: InMemoryRateLimiter(max_requests=1)})
        h = _harness(throttle=throttle)
        document = await self._stored(h, ctx)

        await h.pipeline.run(ctx, document.document_id)
        with pytest.raises(RateLimitError):
            await h.pipeline.run(ctx, document.document_id)


class TestReads:
    """Document read operations."""

    @pytest.mark.asyncio
    async def test_versions_and_missing_version(self, ctx: RequestContext) -> None:
        """Versions are listed ascending; unknown numbers are not found."""
        h = _harness()
        detail = await h.service.upload(
            ctx, file_name="a.mp3", media_type="audio/mpeg", data=b"x"
        )
        await h.versions.append(detail.document_id, "corrigido")

        versions = await h.service.list_versions(ctx, detail.document_id)
        assert [v.version_number for v in versions] == [1, 2]
        assert (await h.service.get_version(ctx, detail.document_id, 2)).content_text == "corrigido"

        with pytest.raises(DocumentNotFoundError):
            await h.service.get_version(ctx, detail.document_id, 3)

    @pytest.mark.asyncio
    async def test_reads_are_owner_scoped(
        self, ctx: RequestContext, other_ctx: RequestContext
    ) -> None:
        """Another user sees neither the document nor its versions."""
        h = _harness()
        detail = await h.service.upload(
            ctx, file_name="a.mp3", media_type="audio/mpeg", data=b"x"
        )

        assert await h.service.list_documents(other_ctx) == []
        with pytest.raises(DocumentNotFoundError):
            await h.service.get_detail(other_ctx, detail.document_id)
        with pytest.raises(DocumentNotFoundError):
            await h.service.list_versions(other_ctx, detail.document_id)
        with pytest.raises(DocumentNotFoundError):
            await h.service.chat_history(other_ctx, detail.document_id)
