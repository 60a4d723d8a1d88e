"""StripePayment repository for Pets Santa backend.

Provides data access methods for purchase records, including the
pending -> completed compare-and-set that makes webhook delivery exactly-once.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from petsanta.core.timezone import utcnow
from petsanta.models.stripe_payment import PaymentStatus, StripePayment


class StripePaymentRepository:
    """Repository for StripePayment entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, payment: StripePayment) -> StripePayment:
        """Persist new payment record."""
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def get_by_session_id(self, stripe_session_id: str) -> StripePayment | None:
        """Retrieve payment by Stripe checkout session id."""
        result = await self.session.execute(
            select(StripePayment)
            .where(StripePayment.stripe_session_id == stripe_session_id)  # type: ignore[arg-type]
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_latest_customer_id(self, user_id: str) -> str | None:
        """Return the Stripe customer id from the user's most recent payment record."""
        result = await self.session.execute(
            select(StripePayment.stripe_customer_id)
            .where(
                StripePayment.user_id == user_id,  # type: ignore[arg-type]
                StripePayment.stripe_customer_id.is_not(None),  # type: ignore[union-attr]
            )
            .order_by(StripePayment.created_at.desc())  # type: ignore[attr-defined]
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[StripePayment]:
        """Retrieve payments of a user (newest first)."""
        result = await self.session.execute(
            select(StripePayment)
            .where(StripePayment.user_id == user_id)  # type: ignore[arg-type]
            .order_by(StripePayment.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def complete_pending(self, stripe_session_id: str) -> bool:
        """Mark a pending payment completed.

        Query explanation:
        - UPDATE stripe_payments SET status = 'completed'
        - WHERE stripe_session_id = :id AND status = 'pending'

        Returns:
            True if this call performed the transition, False if the record is
            missing or already completed
        """
        result = await self.session.execute(
            update(StripePayment)
            .where(
                StripePayment.stripe_session_id == stripe_session_id,  # type: ignore[arg-type]
                StripePayment.status == PaymentStatus.PENDING,  # type: ignore[arg-type]
            )
            .values(status=PaymentStatus.COMPLETED, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0
