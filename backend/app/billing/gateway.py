"""Payment provider gateway."""

import json
import logging
from typing import Any, Protocol
from uuid import UUID

import stripe
from fastapi.concurrency import run_in_threadpool

from backend.app.errors import PaymentProviderError, WebhookSignatureError

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    """Hosted checkout, customers and signed events."""

    async def create_customer(self, user_id: UUID) -> str:
        """Create a provider customer for a user.

        Returns:
            Provider customer ID
        """
        ...

    async def customer_user_id(self, customer_id: str) -> UUID | None:
        """User recorded on a provider customer, if any."""
        ...

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        user_id: UUID,
        plan: str,
        success_url: str,
        cancel_url: str,
    ) -> str:
        """Create a hosted subscription checkout.

        Returns:
            Redirect URL of the hosted payment page
        """
        ...

    def verify_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify a webhook signature and decode the event.

        Raises:
            WebhookSignatureError: If the signature does not verify
        """
        ...


class StripeGateway:
    """Stripe implementation of PaymentGateway.

    The Stripe SDK is synchronous; calls run in the threadpool.
    """

    def __init__(
        self,
        *,
        secret_key: str,
        webhook_secret: str | None,
        webhook_tolerance_seconds: int = 300,
        plan_name: str,
        plan_description: str,
        amount_cents: int,
        currency: str,
    ) -> None:
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._tolerance = webhook_tolerance_seconds
        self._plan_name = plan_name
        self._plan_description = plan_description
        self._amount_cents = amount_cents
        self._currency = currency

    def _require_key(self) -> None:
        if not self._secret_key:
            raise PaymentProviderError("Stripe secret key not configured")

    async def create_customer(self, user_id: UUID) -> str:
        """Create a Stripe customer tagged with the user ID."""
        self._require_key()
        try:
            customer = await run_in_threadpool(
                stripe.Customer.create,
                api_key=self._secret_key,
                metadata={"user_id": str(user_id)},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe customer creation failed: {e}")
            raise PaymentProviderError(str(e), status=e.http_status) from e
        return str(customer.id)

    async def customer_user_id(self, customer_id: str) -> UUID | None:
        """Read the user ID back from customer metadata."""
        self._require_key()
        try:
            customer = await run_in_threadpool(
                stripe.Customer.retrieve, customer_id, api_key=self._secret_key
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe customer lookup failed for {customer_id}: {e}")
            raise PaymentProviderError(str(e), status=e.http_status) from e

        if getattr(customer, "deleted", False):
            return None
        raw = (customer.get("metadata") or {}).get("user_id")
        try:
            return UUID(raw) if raw else None
        except ValueError:
            return None

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        user_id: UUID,
        plan: str,
        success_url: str,
        cancel_url: str,
    ) -> str:
        """Create a monthly subscription Checkout Session."""
        self._require_key()
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create,
                api_key=self._secret_key,
                customer=customer_id,
                line_items=[
                    {
                        "price_data": {
                            "currency": self._currency,
                            "product_data": {
                                "name": self._plan_name,
                                "description": self._plan_description,
                            },
                            "unit_amount": self._amount_cents,
                            "recurring": {"interval": "month"},
                        },
                        "quantity": 1,
                    }
                ],
                mode="subscription",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={"user_id": str(user_id), "plan": plan},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session creation failed: {e}")
            raise PaymentProviderError(str(e), status=e.http_status) from e

        if not session.url:
            raise PaymentProviderError("Checkout session has no URL")
        return str(session.url)

    def verify_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify the Stripe-Signature header and decode the event body."""
        if not self._webhook_secret:
            raise PaymentProviderError("Webhook secret not configured")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body, signature, self._webhook_secret, self._tolerance
            )
            event: dict[str, Any] = json.loads(body)
        except (stripe.SignatureVerificationError, UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise WebhookSignatureError() from e

        return event
