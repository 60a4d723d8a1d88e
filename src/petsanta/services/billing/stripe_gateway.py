"""Stripe client wrapper for customers, checkout sessions and webhook verification."""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, TypeVar

import stripe

from petsanta.services.exceptions import InvalidSignatureError, PaymentProcessorError

T = TypeVar("T")


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


class StripeGateway:
    """Payment processor gateway.

    API calls use the SDK's async methods over its httpx transport. The transport
    timeout bounds each HTTP request and the overall wait bounds the whole call.
    """

    def __init__(self, secret_key: str, webhook_secret: str, timeout: float = 30.0):
        """Initialize Stripe gateway.

        Args:
            secret_key: Stripe secret API key (from STRIPE_SECRET_KEY env var)
            webhook_secret: Endpoint signing secret (from STRIPE_WEBHOOK_SECRET env var)
            timeout: Maximum seconds to wait for a Stripe API call
        """
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        self.client = stripe.StripeClient(
            secret_key, http_client=stripe.HTTPXClient(timeout=timeout)
        )

    async def create_customer(self, user_id: str) -> str:
        """Create a Stripe customer tagged with the user id.

        Returns:
            Stripe customer id

        Raises:
            PaymentProcessorError: Stripe API failure or timeout
        """
        customer = await self._call(
            self.client.v1.customers.create_async(params={"metadata": {"userId": user_id}})
        )
        return customer.id

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Create a hosted checkout session for one unit of price_id.

        Raises:
            PaymentProcessorError: Stripe API failure or timeout
        """
        session = await self._call(
            self.client.v1.checkout.sessions.create_async(
                params={
                    "customer": customer_id,
                    "payment_method_types": ["card"],
                    "line_items": [{"price": price_id, "quantity": 1}],
                    "mode": "payment",
                    "success_url": success_url,
                    "cancel_url": cancel_url,
                    "metadata": metadata,
                }
            )
        )
        return CheckoutSession(id=session.id, url=session.url)

    def verify_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify the Stripe-Signature header and decode the event.

        The signature is checked against the raw body before any parsing.

        Args:
            payload: Raw request body bytes
            signature: Value of the Stripe-Signature header

        Returns:
            Decoded event dictionary

        Raises:
            InvalidSignatureError: Missing/invalid signature or undecodable body
        """
        if not signature:
            raise InvalidSignatureError("Missing Stripe-Signature header")

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), signature, self.webhook_secret
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            raise InvalidSignatureError("Invalid signature") from e

        try:
            event = json.loads(payload)
        except json.JSONDecodeError as e:
            raise InvalidSignatureError(f"Invalid event payload: {str(e)}") from e
        if not isinstance(event, dict):
            raise InvalidSignatureError("Invalid event payload")
        return event

    async def _call(self, request: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(request, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise PaymentProcessorError(f"Stripe request timeout after {self.timeout}s") from e
        except stripe.StripeError as e:
            raise PaymentProcessorError(f"Stripe error: {e.user_message or str(e)}") from e
