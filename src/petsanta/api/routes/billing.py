"""Billing API endpoints.

- POST /api/checkout - Create a Stripe checkout session for one credit pack
- GET /api/billing - Current balance, payments and ledger history
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from petsanta.api.dependencies import get_current_user_id, get_payment_service
from petsanta.services.billing.service import PaymentService

router = APIRouter(prefix="/api", tags=["billing"])


class CheckoutResponse(BaseModel):
    url: str = Field(..., description="Stripe hosted checkout URL")


class PaymentDTO(BaseModel):
    id: UUID
    stripe_session_id: str
    amount: int = Field(..., description="Amount in minor currency units")
    currency: str
    status: str
    credits_added: int
    created_at: datetime


class UsageDTO(BaseModel):
    id: UUID
    credits_used: int
    credits_added: int
    remaining_credits: int
    description: str
    created_at: datetime


class BillingResponse(BaseModel):
    credits: int
    payments: list[PaymentDTO]
    usage_history: list[UsageDTO]


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    user_id: str = Depends(get_current_user_id),
    service: PaymentService = Depends(get_payment_service),
) -> CheckoutResponse:
    """Create a checkout session.

    HTTP Status Codes:
        200: Checkout URL returned (pending payment recorded)
        401: No session
        502: Stripe error (nothing recorded)
    """
    url = await service.create_checkout(user_id)
    return CheckoutResponse(url=url)


@router.get("/billing", response_model=BillingResponse)
async def get_billing(
    user_id: str = Depends(get_current_user_id),
    service: PaymentService = Depends(get_payment_service),
) -> BillingResponse:
    overview = await service.get_billing_overview(user_id)
    return BillingResponse(
        credits=overview.credits,
        payments=[
            PaymentDTO(
                id=p.id,
                stripe_session_id=p.stripe_session_id,
                amount=p.amount,
                currency=p.currency,
                status=p.status.value,
                credits_added=p.credits_added,
                created_at=p.created_at,
            )
            for p in overview.payments
        ],
        usage_history=[
            UsageDTO(
                id=u.id,
                credits_used=u.credits_used,
                credits_added=u.credits_added,
                remaining_credits=u.remaining_credits,
                description=u.description,
                created_at=u.created_at,
            )
            for u in overview.usage_history
        ],
    )
