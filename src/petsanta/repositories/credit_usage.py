"""CreditUsage repository for Pets Santa backend.

Ledger entries are append-only: no update or delete methods are provided.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from petsanta.models.credit_usage import CreditUsage


class CreditUsageRepository:
    """Repository for CreditUsage ledger entries."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, entry: CreditUsage) -> CreditUsage:
        """Append ledger entry."""
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_for_user(self, user_id: str) -> list[CreditUsage]:
        """Retrieve ledger history of a user (newest first)."""
        result = await self.session.execute(
            select(CreditUsage)
            .where(CreditUsage.user_id == user_id)  # type: ignore[arg-type]
            .order_by(CreditUsage.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())
