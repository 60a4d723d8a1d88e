"""StripePayment entity - credit pack purchase record."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from petsanta.core.timezone import utcnow


class PaymentStatus(str, Enum):
    """Purchase lifecycle status (pending -> completed, never backward)."""

    PENDING = "pending"
    COMPLETED = "completed"


class StripePayment(SQLModel, table=True):
    """StripePayment tracks one checkout session and the credits it grants."""

    __tablename__ = "stripe_payments"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    stripe_session_id: str = Field(max_length=255, unique=True, index=True)
    stripe_customer_id: Optional[str] = Field(default=None, max_length=255)
    amount: int = Field(ge=0)  # minor currency units
    currency: str = Field(max_length=10)
    status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    payment_method: Optional[str] = Field(default="card", max_length=50)
    credits_added: int = Field(ge=0)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
