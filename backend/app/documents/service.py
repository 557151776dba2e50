"""Document upload, analysis pipeline and read operations."""

import logging
import time
from uuid import UUID

from backend.app.db.context import RequestContext
from backend.app.db.repositories import (
    AnalysisRepository,
    AuditLogRepository,
    ChatTurnRecord,
    ChatTurnRepository,
    DocumentRecord,
    DocumentRepository,
    EntitlementRepository,
    VersionRecord,
    VersionStore,
)
from backend.app.errors import (
    DocumentNotFoundError,
    InsufficientCreditsError,
    PersistenceError,
    ServiceError,
    UploadRejectedError,
)
from backend.app.extraction.adapter import ContentExtractor
from backend.app.extraction.sources import classify
from backend.app.models.common import DocumentStatus
from backend.app.models.documents import AnalysisResult, DocumentDetail, DocumentOut
from backend.app.ratelimit import Bucket, RequestThrottle
from backend.app.storage.blobs import BlobNotFoundError, BlobStore, build_storage_path
from backend.app.utils.audit import record_audit_event
from backend.app.utils.logging import FlowContext, StructuredFlowLogger
from backend.app.utils.metrics import PrometheusDomainMetrics
from backend.app.validation.upload import (
    MAX_FILE_NAME_LENGTH,
    MAX_UPLOAD_BYTES,
    UploadCandidate,
    validate_upload,
)

logger = logging.getLogger(__name__)


def to_document_out(record: DocumentRecord) -> DocumentOut:
    return DocumentOut(
        document_id=record.document_id,
        display_name=record.display_name,
        media_type=record.media_type,
        size_bytes=record.size_bytes,
        status=record.status,
        error_message=record.error_message,
        created_at=record.created_at,
    )


class AnalysisPipeline:
    """Runs extraction for one document and records the outcome.

    Credits are checked before any LLM call and consumed only after the
    analysis is stored. Any failure flips the document to ``error`` with a
    caller-safe message and leaves credits untouched.
    """

    def __init__(
        self,
        *,
        documents: DocumentRepository,
        analyses: AnalysisRepository,
        versions: VersionStore,
        entitlements: EntitlementRepository,
        audit: AuditLogRepository,
        blobs: BlobStore,
        extractor: ContentExtractor,
        throttle: RequestThrottle | None = None,
    ) -> None:
        self._documents = documents
        self._analyses = analyses
        self._versions = versions
        self._entitlements = entitlements
        self._audit = audit
        self._blobs = blobs
        self._extractor = extractor
        self._throttle = throttle
        self._flow_logger = StructuredFlowLogger()
        self._metrics = PrometheusDomainMetrics()

    async def run(self, ctx: RequestContext, document_id: UUID) -> AnalysisResult:
        """Analyze a stored document.

        Raises:
            RateLimitError: Caller is over the analysis quota
            DocumentNotFoundError: Document is missing or not the caller's
            InsufficientCreditsError: No credits left
            UnsupportedFileTypeError: Suffix maps to no extraction path
            ExtractionError: Upstream call failed
            PersistenceError: Stored bytes or a primary write failed
        """
        if self._throttle is not None:
            self._throttle.check(ctx, Bucket.analysis)

        document = await self._documents.get(document_id, ctx)
        if document is None:
            raise DocumentNotFoundError()

        entitlement = await self._entitlements.get_or_create(ctx.user_id)
        if entitlement.credits <= 0:
            raise InsufficientCreditsError()

        flow = FlowContext(flow="analysis", user_id=ctx.user_id, document_id=document_id)
        start = time.perf_counter()

        await record_audit_event(
            self._audit,
            ctx.user_id,
            "document_analysis_started",
            {"document_id": str(document_id), "file_name": document.display_name},
        )
        await self._documents.set_status(document_id, DocumentStatus.processing)

        try:
            result = await self._analyze(document)
        except ServiceError as e:
            await self._record_failure(ctx, document, e)
            self._flow_logger.log_transition(
                flow, "analyzing", "error", _elapsed_ms(start), type(e).__name__
            )
            raise

        self._flow_logger.log_transition(flow, "analyzing", "success", _elapsed_ms(start))
        await record_audit_event(
            self._audit,
            ctx.user_id,
            "document_analysis_completed",
            {
                "document_id": str(document_id),
                "file_name": document.display_name,
                "analysis_length": len(result.summary),
            },
        )
        return result

    async def _analyze(self, document: DocumentRecord) -> AnalysisResult:
        try:
            data = await self._blobs.get(document.storage_path)
        except BlobNotFoundError as e:
            raise PersistenceError("Erro ao acessar arquivo do contrato") from e

        extraction = await self._extractor.extract(data, document.display_name)

        await self._analyses.save(document.document_id, extraction.result.model_dump(mode="json"))

        # Raw text seeds version 1; re-analysis never rewrites history
        if extraction.source_text and await self._versions.latest(document.document_id) is None:
            await self._versions.append(document.document_id, extraction.source_text)
            self._metrics.inc_version("extraction")

        # Charge last: a failed status write must not cost a credit, and a failed
        # charge rolls back and flips the document to error
        await self._documents.set_status(document.document_id, DocumentStatus.success)
        remaining = await self._entitlements.consume_credit(document.user_id)

        self._metrics.inc_analysis(extraction.kind.value, "success")
        logger.info(
            f"Analysis completed for document {document.document_id}",
            extra={"structured": {"credits_remaining": remaining, "kind": extraction.kind.value}},
        )
        return extraction.result

    async def _record_failure(
        self, ctx: RequestContext, document: DocumentRecord, error: ServiceError
    ) -> None:
        try:
            kind = classify(document.display_name).value
        except ServiceError:
            kind = "unsupported"
        self._metrics.inc_analysis(kind, "error")

        try:
            await self._documents.set_status(
                document.document_id, DocumentStatus.error, error.message
            )
        except PersistenceError:
            logger.error(f"Could not mark document {document.document_id} as failed")

        await record_audit_event(
            self._audit,
            ctx.user_id,
            "document_analysis_failed",
            {
                "document_id": str(document.document_id),
                "error": type(error).__name__,
                "detail": getattr(error, "detail", error.message),
            },
        )


class DocumentService:
    """Upload ingress and document read operations."""

    def __init__(
        self,
        *,
        documents: DocumentRepository,
        analyses: AnalysisRepository,
        versions: VersionStore,
        chat_turns: ChatTurnRepository,
        entitlements: EntitlementRepository,
        audit: AuditLogRepository,
        blobs: BlobStore,
        pipeline: AnalysisPipeline,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        max_file_name_length: int = MAX_FILE_NAME_LENGTH,
    ) -> None:
        self._documents = documents
        self._analyses = analyses
        self._versions = versions
        self._chat_turns = chat_turns
        self._entitlements = entitlements
        self._audit = audit
        self._blobs = blobs
        self._pipeline = pipeline
        self._max_upload_bytes = max_upload_bytes
        self._max_file_name_length = max_file_name_length

    async def upload(
        self,
        ctx: RequestContext,
        *,
        file_name: str,
        media_type: str,
        data: bytes,
        analyze: bool = True,
    ) -> DocumentDetail:
        """Validate, store and optionally analyze an upload.

        Inline analysis failures are reported through the returned document's
        status, not raised.

        Raises:
            UploadRejectedError: The file failed validation
            UnsupportedFileTypeError: Suffix maps to no extraction path
            InsufficientCreditsError: No credits left
            PersistenceError: Storing the bytes or the document failed
        """
        reason = validate_upload(
            UploadCandidate(name=file_name, media_type=media_type, size=len(data)),
            max_bytes=self._max_upload_bytes,
            max_name_length=self._max_file_name_length,
        )
        if reason is not None:
            logger.info(f"Upload rejected: {reason.value}")
            raise UploadRejectedError(reason)

        classify(file_name)

        entitlement = await self._entitlements.get_or_create(ctx.user_id)
        if entitlement.credits <= 0:
            raise InsufficientCreditsError()

        storage_path = build_storage_path(ctx.user_id, file_name)
        try:
            await self._blobs.put(storage_path, data, media_type)
        except OSError as e:
            logger.error(f"Blob write failed for {storage_path}: {e}")
            raise PersistenceError("Erro ao salvar arquivo do contrato") from e

        document = await self._documents.create(
            ctx,
            display_name=file_name,
            storage_path=storage_path,
            media_type=media_type,
            size_bytes=len(data),
        )
        await record_audit_event(
            self._audit,
            ctx.user_id,
            "document_uploaded",
            {"document_id": str(document.document_id), "file_name": file_name},
        )

        if analyze:
            try:
                await self._pipeline.run(ctx, document.document_id)
            except ServiceError as e:
                logger.warning(
                    f"Inline analysis failed for document {document.document_id}: "
                    f"{type(e).__name__}"
                )

        return await self.get_detail(ctx, document.document_id)

    async def list_documents(self, ctx: RequestContext) -> list[DocumentOut]:
        """The caller's documents, newest first."""
        return [to_document_out(r) for r in await self._documents.list_for_user(ctx)]

    async def get_detail(self, ctx: RequestContext, document_id: UUID) -> DocumentDetail:
        """Document metadata with its analysis and latest version number."""
        record = await self._require(ctx, document_id)
        analysis = await self._analyses.get(document_id)
        latest = await self._versions.latest(document_id)

        return DocumentDetail(
            **to_document_out(record).model_dump(),
            analysis=AnalysisResult.model_validate(analysis.result) if analysis else None,
            latest_version=latest.version_number if latest else None,
        )

    async def list_versions(self, ctx: RequestContext, document_id: UUID) -> list[VersionRecord]:
        """Every version of a document, ascending."""
        await self._require(ctx, document_id)
        return await self._versions.all_versions(document_id)

    async def get_version(
        self, ctx: RequestContext, document_id: UUID, version_number: int
    ) -> VersionRecord:
        """One version of a document.

        Raises:
            DocumentNotFoundError: Document or version does not exist
        """
        await self._require(ctx, document_id)
        version = await self._versions.get(document_id, version_number)
        if version is None:
            raise DocumentNotFoundError("Versão do contrato não encontrada.")
        return version

    async def chat_history(self, ctx: RequestContext, document_id: UUID) -> list[ChatTurnRecord]:
        """Chat turns for a document, oldest first."""
        await self._require(ctx, document_id)
        return await self._chat_turns.list_for_document(ctx, document_id)

    async def _require(self, ctx: RequestContext, document_id: UUID) -> DocumentRecord:
        record = await self._documents.get(document_id, ctx)
        if record is None:
            raise DocumentNotFoundError()
        return record


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
