"""Credit pack purchases: checkout creation and Stripe confirmation webhooks."""

from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from petsanta.core.config import Settings
from petsanta.models.credit_usage import CreditUsage
from petsanta.models.stripe_payment import PaymentStatus, StripePayment
from petsanta.services.billing import ledger
from petsanta.services.billing.stripe_gateway import CheckoutSession
from petsanta.services.exceptions import MissingMetadataError

logger = structlog.get_logger()

CHECKOUT_COMPLETED = "checkout.session.completed"


class PaymentGateway(Protocol):
    async def create_customer(self, user_id: str) -> str: ...

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession: ...

    def verify_event(self, payload: bytes, signature: str | None) -> dict[str, Any]: ...


@dataclass(frozen=True)
class BillingOverview:
    credits: int
    payments: list[StripePayment]
    usage_history: list[CreditUsage]


def _parse_credits(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class PaymentService:
    """Payment orchestrator: Stripe checkout in, ledger credits out."""

    def __init__(self, uow_factory, gateway: PaymentGateway, settings: Settings):
        self.uow_factory = uow_factory
        self.gateway = gateway
        self.settings = settings

    async def create_checkout(self, user_id: str) -> str:
        """Start a hosted checkout for one credit pack.

        A pending payment record is written only after Stripe created the session.

        Returns:
            Checkout URL to redirect the user to

        Raises:
            PaymentProcessorError: Stripe failed (nothing is written)
        """
        async with await self.uow_factory() as uow:
            customer_id = await uow.payments.get_latest_customer_id(user_id)

        if not customer_id:
            customer_id = await self.gateway.create_customer(user_id)
            logger.info("payment.customer_created", user_id=user_id, customer_id=customer_id)

        checkout = await self.gateway.create_checkout_session(
            customer_id=customer_id,
            price_id=self.settings.stripe_price_id,
            metadata={
                "userId": user_id,
                "creditsAmount": str(self.settings.credit_pack_credits),
            },
            success_url=self.settings.checkout_success_url,
            cancel_url=self.settings.checkout_cancel_url,
        )

        async with await self.uow_factory() as uow:
            await uow.payments.add(
                StripePayment(
                    user_id=user_id,
                    stripe_session_id=checkout.id,
                    stripe_customer_id=customer_id,
                    amount=self.settings.credit_pack_amount,
                    currency=self.settings.credit_pack_currency,
                    status=PaymentStatus.PENDING,
                    payment_method="card",
                    credits_added=self.settings.credit_pack_credits,
                )
            )

        logger.info("payment.checkout_created", user_id=user_id, session_id=checkout.id)
        return checkout.url

    async def handle_confirmation(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Process a Stripe webhook delivery.

        For checkout.session.completed, the payment record transition, balance
        credit and ledger entry commit in one transaction. A repeated delivery
        for an already completed payment changes nothing. Other event types are
        acknowledged and ignored.

        Raises:
            InvalidSignatureError: Signature check failed (nothing parsed or written)
            MissingMetadataError: userId or creditsAmount missing from session metadata
            NotFoundError: Metadata references an unknown user
        """
        event = self.gateway.verify_event(payload, signature)
        event_type = event.get("type")

        if event_type != CHECKOUT_COMPLETED:
            logger.info("payment.event_ignored", event_type=event_type, event_id=event.get("id"))
            return {"received": True}

        session = (event.get("data") or {}).get("object") or {}
        metadata = session.get("metadata") or {}
        user_id = metadata.get("userId")
        credits_amount = _parse_credits(metadata.get("creditsAmount"))

        if not user_id or credits_amount <= 0:
            logger.error(
                "payment.missing_metadata",
                session_id=session.get("id"),
                has_user_id=bool(user_id),
                credits_amount=credits_amount,
            )
            raise MissingMetadataError("Missing required metadata")

        session_id = session.get("id")
        if not session_id:
            raise MissingMetadataError("Missing checkout session id")

        async with await self.uow_factory() as uow:
            completed = await uow.payments.complete_pending(session_id)

            if not completed:
                existing = await uow.payments.get_by_session_id(session_id)
                if existing is not None:
                    # Already completed by an earlier delivery
                    logger.info(
                        "payment.duplicate_confirmation", session_id=session_id, user_id=user_id
                    )
                    return {"received": True, "duplicate": True}

                logger.warning("payment.record_missing", session_id=session_id, user_id=user_id)
                await uow.payments.add(
                    StripePayment(
                        user_id=user_id,
                        stripe_session_id=session_id,
                        stripe_customer_id=session.get("customer"),
                        amount=session.get("amount_total") or 0,
                        currency=session.get("currency") or self.settings.credit_pack_currency,
                        status=PaymentStatus.COMPLETED,
                        credits_added=credits_amount,
                    )
                )

            balance = await ledger.credit_purchase(
                uow, user_id, credits_amount, f"Purchase: {credits_amount} credits"
            )

        logger.info(
            "payment.credits_added",
            user_id=user_id,
            session_id=session_id,
            credits=credits_amount,
            balance=balance,
        )
        return {"received": True}

    async def get_billing_overview(self, user_id: str) -> BillingOverview:
        """Balance, payments and ledger history of a user (newest first)."""
        async with await self.uow_factory() as uow:
            return BillingOverview(
                credits=await ledger.get_balance(uow, user_id),
                payments=await uow.payments.list_for_user(user_id),
                usage_history=await uow.credit_usage.list_for_user(user_id),
            )
