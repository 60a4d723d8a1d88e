"""Repository layer for Pets Santa backend.

Provides data access abstractions for all domain entities.
No base classes - each repository is self-contained.
"""

from petsanta.repositories.credit_usage import CreditUsageRepository
from petsanta.repositories.generation_task import GenerationTaskRepository
from petsanta.repositories.stripe_payment import StripePaymentRepository
from petsanta.repositories.user import UserRepository, UserSessionRepository

__all__ = [
    "UserRepository",
    "UserSessionRepository",
    "GenerationTaskRepository",
    "CreditUsageRepository",
    "StripePaymentRepository",
]
