"""Billing endpoints - entitlement, checkout and payment webhook."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, Field

from backend.app.api.auth import get_current_context
from backend.app.api.deps import get_billing_service
from backend.app.api.errors import raise_http_error
from backend.app.billing.service import BillingService
from backend.app.db.context import RequestContext
from backend.app.errors import ServiceError
from backend.app.models.documents import EntitlementOut

router = APIRouter(prefix="/billing", tags=["billing"])


class CheckoutRequest(BaseModel):
    """Request body for POST /billing/checkout."""

    plan: str = Field(..., min_length=1, max_length=32)


class CheckoutResponse(BaseModel):
    """Response for POST /billing/checkout."""

    url: str


class WebhookResponse(BaseModel):
    """Response for POST /billing/webhook."""

    received: bool = True
    event_type: str


@router.get("/entitlement", response_model=EntitlementOut)
async def get_entitlement(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    service: Annotated[BillingService, Depends(get_billing_service)],
) -> EntitlementOut:
    """The caller's tier and remaining analysis credits."""
    try:
        record = await service.entitlement(ctx)
    except ServiceError as e:
        raise_http_error(e)
    return EntitlementOut(tier=record.tier, credits=record.credits)


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    request: CheckoutRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    service: Annotated[BillingService, Depends(get_billing_service)],
) -> CheckoutResponse:
    """Create a hosted checkout session and return its URL."""
    try:
        url = await service.create_checkout(ctx, request.plan)
    except ServiceError as e:
        raise_http_error(e)
    return CheckoutResponse(url=url)


@router.post("/webhook", response_model=WebhookResponse)
async def payment_webhook(
    request: Request,
    service: Annotated[BillingService, Depends(get_billing_service)],
    stripe_signature: Annotated[str | None, Header()] = None,
) -> WebhookResponse:
    """Receive a signed payment event.

    Unauthenticated; the signature is the credential. Verification failure
    is a 400 with no state change.
    """
    payload = await request.body()
    try:
        event_type = await service.handle_webhook(payload, stripe_signature)
    except ServiceError as e:
        raise_http_error(e)
    return WebhookResponse(event_type=event_type)
