"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from petsanta.models.credit_usage import CreditUsage
from petsanta.models.generation_task import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    GenerationTask,
    InvalidStateTransition,
    TaskStatus,
)
from petsanta.models.stripe_payment import PaymentStatus, StripePayment
from petsanta.models.user import User, UserSession

__all__ = [
    "User",
    "UserSession",
    "GenerationTask",
    "TaskStatus",
    "InvalidStateTransition",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "CreditUsage",
    "StripePayment",
    "PaymentStatus",
]
