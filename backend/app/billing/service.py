"""Entitlement view, checkout and payment webhook handling."""

import logging
from typing import Any
from uuid import UUID

from backend.app.billing.gateway import PaymentGateway
from backend.app.db.context import RequestContext
from backend.app.db.repositories import AuditLogRepository, EntitlementRecord, EntitlementRepository
from backend.app.errors import InvalidPlanError, WebhookSignatureError
from backend.app.models.common import Tier
from backend.app.utils.audit import record_audit_event

logger = logging.getLogger(__name__)

PLANS = frozenset({"pro"})

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
PAYMENT_FAILED = "invoice.payment_failed"


class BillingService:
    """Moves users between tiers in response to the payment provider."""

    def __init__(
        self,
        *,
        entitlements: EntitlementRepository,
        gateway: PaymentGateway,
        audit: AuditLogRepository,
        app_base_url: str,
    ) -> None:
        self._entitlements = entitlements
        self._gateway = gateway
        self._audit = audit
        self._app_base_url = app_base_url.rstrip("/")

    async def entitlement(self, ctx: RequestContext) -> EntitlementRecord:
        return await self._entitlements.get_or_create(ctx.user_id)

    async def create_checkout(self, ctx: RequestContext, plan: str) -> str:
        """Create a hosted checkout for a plan, reusing the caller's customer.

        Raises:
            InvalidPlanError: Unknown plan
            PaymentProviderError: Provider call failed
        """
        if plan not in PLANS:
            raise InvalidPlanError(plan)

        entitlement = await self._entitlements.get_or_create(ctx.user_id)
        customer_id = entitlement.payment_customer_id
        if customer_id is None:
            customer_id = await self._gateway.create_customer(ctx.user_id)
            await self._entitlements.set_payment_customer(ctx.user_id, customer_id)
            logger.info(f"Created payment customer for user {ctx.user_id}")

        return await self._gateway.create_checkout_session(
            customer_id=customer_id,
            user_id=ctx.user_id,
            plan=plan,
            success_url=f"{self._app_base_url}/dashboard?upgrade=success",
            cancel_url=f"{self._app_base_url}/dashboard?upgrade=cancelled",
        )

    async def handle_webhook(self, payload: bytes, signature: str | None) -> str:
        """Verify and apply one payment event.

        Returns:
            The event type

        Raises:
            WebhookSignatureError: Missing or invalid signature; nothing is changed
        """
        if not signature:
            raise WebhookSignatureError()

        event = self._gateway.verify_event(payload, signature)
        event_type = str(event.get("type", ""))
        obj: dict[str, Any] = event.get("data", {}).get("object", {}) or {}

        logger.info(f"Payment event received: {event_type} ({event.get('id')})")

        if event_type == CHECKOUT_COMPLETED:
            await self._on_checkout_completed(obj)
        elif event_type in (SUBSCRIPTION_DELETED, PAYMENT_FAILED):
            await self._downgrade(obj.get("customer"), event_type)
        else:
            logger.info(f"Unhandled payment event: {event_type}")

        return event_type

    async def _on_checkout_completed(self, session: dict[str, Any]) -> None:
        metadata = session.get("metadata") or {}
        if session.get("mode") != "subscription" or not metadata.get("user_id"):
            return

        user_id = _parse_user_id(metadata["user_id"])
        if user_id is None:
            logger.warning(f"Checkout session {session.get('id')} has a malformed user_id")
            return

        await self._entitlements.set_tier(user_id, Tier.pro)
        customer_id = session.get("customer")
        if customer_id:
            await self._entitlements.set_payment_customer(user_id, str(customer_id))

        logger.info(f"User {user_id} upgraded to pro")
        await record_audit_event(
            self._audit, user_id, "subscription_activated", {"session_id": session.get("id")}
        )

    async def _downgrade(self, customer_id: str | None, reason: str) -> None:
        if not customer_id:
            return

        entitlement = await self._entitlements.find_by_payment_customer(customer_id)
        if entitlement is not None:
            user_id: UUID | None = entitlement.user_id
        else:
            user_id = await self._gateway.customer_user_id(customer_id)

        if user_id is None:
            logger.warning(f"No user owns payment customer {customer_id}")
            return

        await self._entitlements.set_tier(user_id, Tier.free)
        logger.info(f"User {user_id} downgraded to free ({reason})")
        await record_audit_event(
            self._audit, user_id, "subscription_deactivated", {"reason": reason}
        )


def _parse_user_id(raw: str) -> UUID | None:
    try:
        return UUID(str(raw))
    except ValueError:
        return None
