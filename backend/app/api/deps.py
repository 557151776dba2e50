"""FastAPI dependencies wiring repositories and services to a session."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.billing.gateway import PaymentGateway, StripeGateway
from backend.app.billing.service import BillingService
from backend.app.chat.context import ContextAssembler
from backend.app.chat.coordinator import ChatCoordinator
from backend.app.config import get_settings
from backend.app.db.engine import get_session
from backend.app.db.sql_repositories import (
    SqlAnalysisRepository,
    SqlAuditLogRepository,
    SqlChatTurnRepository,
    SqlDocumentRepository,
    SqlEntitlementRepository,
    SqlVersionStore,
)
from backend.app.documents.service import AnalysisPipeline, DocumentService
from backend.app.extraction.adapter import ContentExtractor
from backend.app.llm.client import LLMClient, get_llm_client
from backend.app.ratelimit import RequestThrottle, create_throttle
from backend.app.storage.blobs import BlobStore, InMemoryBlobStore, LocalBlobStore

SessionDep = Annotated[AsyncSession, Depends(get_session)]


@lru_cache
def get_blob_store() -> BlobStore:
    """Process-wide blob store; on disk when BLOB_STORAGE_DIR is set."""
    settings = get_settings()
    if settings.blob_storage_dir:
        return LocalBlobStore(settings.blob_storage_dir)
    return InMemoryBlobStore()


@lru_cache
def get_throttle() -> RequestThrottle:
    """Process-wide per-user throttle."""
    return create_throttle(get_settings())


def get_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    return StripeGateway(
        secret_key=settings.stripe_secret_key.get_secret_value()
        if settings.stripe_secret_key
        else "",
        webhook_secret=settings.stripe_webhook_secret.get_secret_value()
        if settings.stripe_webhook_secret
        else None,
        webhook_tolerance_seconds=settings.stripe_webhook_tolerance_seconds,
        plan_name=settings.pro_plan_name,
        plan_description=settings.pro_plan_description,
        amount_cents=settings.pro_plan_amount_cents,
        currency=settings.pro_plan_currency,
    )


def get_analysis_pipeline(
    session: SessionDep,
    llm: Annotated[LLMClient, Depends(get_llm_client)],
    blobs: Annotated[BlobStore, Depends(get_blob_store)],
    throttle: Annotated[RequestThrottle, Depends(get_throttle)],
) -> AnalysisPipeline:
    settings = get_settings()
    return AnalysisPipeline(
        documents=SqlDocumentRepository(session),
        analyses=SqlAnalysisRepository(session),
        versions=SqlVersionStore(session),
        entitlements=SqlEntitlementRepository(session, settings.default_credits),
        audit=SqlAuditLogRepository(session),
        blobs=blobs,
        extractor=ContentExtractor(llm, temperature=settings.llm_temperature_analysis),
        throttle=throttle,
    )


def get_document_service(
    session: SessionDep,
    blobs: Annotated[BlobStore, Depends(get_blob_store)],
    pipeline: Annotated[AnalysisPipeline, Depends(get_analysis_pipeline)],
) -> DocumentService:
    settings = get_settings()
    return DocumentService(
        documents=SqlDocumentRepository(session),
        analyses=SqlAnalysisRepository(session),
        versions=SqlVersionStore(session),
        chat_turns=SqlChatTurnRepository(session),
        entitlements=SqlEntitlementRepository(session, settings.default_credits),
        audit=SqlAuditLogRepository(session),
        blobs=blobs,
        pipeline=pipeline,
        max_upload_bytes=settings.max_upload_bytes,
        max_file_name_length=settings.max_file_name_length,
    )


def get_chat_coordinator(
    session: SessionDep,
    llm: Annotated[LLMClient, Depends(get_llm_client)],
    throttle: Annotated[RequestThrottle, Depends(get_throttle)],
) -> ChatCoordinator:
    settings = get_settings()
    versions = SqlVersionStore(session)
    chat_turns = SqlChatTurnRepository(session)
    return ChatCoordinator(
        entitlements=SqlEntitlementRepository(session, settings.default_credits),
        assembler=ContextAssembler(
            SqlDocumentRepository(session),
            SqlAnalysisRepository(session),
            versions,
            chat_turns,
            window=settings.chat_history_window,
        ),
        versions=versions,
        chat_turns=chat_turns,
        llm=llm,
        throttle=throttle,
        temperature=settings.llm_temperature_chat,
    )


def get_billing_service(
    session: SessionDep,
    gateway: Annotated[PaymentGateway, Depends(get_payment_gateway)],
) -> BillingService:
    settings = get_settings()
    return BillingService(
        entitlements=SqlEntitlementRepository(session, settings.default_credits),
        gateway=gateway,
        audit=SqlAuditLogRepository(session),
        app_base_url=settings.app_base_url,
    )
