"""Credit ledger operations.

Every function here runs inside a caller-owned UnitOfWork so the balance
change and its ledger entry commit (or roll back) together with whatever else
the caller writes in the same transaction.
"""

import structlog

from petsanta.models.credit_usage import CreditUsage
from petsanta.services.exceptions import InsufficientCreditsError, NotFoundError
from petsanta.uow import UnitOfWork

logger = structlog.get_logger()


async def get_balance(uow: UnitOfWork, user_id: str) -> int:
    """Current credit balance of a user (0 for unknown users)."""
    balance = await uow.users.get_balance(user_id)
    return balance or 0


async def debit_for_generation(
    uow: UnitOfWork, user_id: str, amount: int, description: str
) -> int:
    """Debit credits and append the matching ledger entry.

    Args:
        uow: Open unit of work (transaction owner)
        user_id: Account to debit
        amount: Credits to subtract
        description: Ledger entry description

    Returns:
        Balance after the debit

    Raises:
        InsufficientCreditsError: Balance below amount (nothing is written)
    """
    new_balance = await uow.users.debit_credits(user_id, amount)
    if new_balance is None:
        current = await get_balance(uow, user_id)
        logger.info(
            "ledger.insufficient_credits", user_id=user_id, required=amount, current=current
        )
        raise InsufficientCreditsError(required=amount, current=current)

    await uow.credit_usage.add(
        CreditUsage(
            user_id=user_id,
            credits_used=amount,
            remaining_credits=new_balance,
            description=description,
        )
    )
    logger.info("ledger.debited", user_id=user_id, amount=amount, balance=new_balance)
    return new_balance


async def credit_purchase(uow: UnitOfWork, user_id: str, amount: int, description: str) -> int:
    """Credit purchased credits and append the matching ledger entry.

    Returns:
        Balance after the credit

    Raises:
        NotFoundError: User does not exist
    """
    new_balance = await uow.users.credit(user_id, amount)
    if new_balance is None:
        raise NotFoundError(f"User not found: {user_id}")

    await uow.credit_usage.add(
        CreditUsage(
            user_id=user_id,
            credits_added=amount,
            remaining_credits=new_balance,
            description=description,
        )
    )
    logger.info("ledger.credited", user_id=user_id, amount=amount, balance=new_balance)
    return new_balance
