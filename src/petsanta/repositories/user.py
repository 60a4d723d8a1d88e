"""User repository for Pets Santa backend.

Provides data access for users (credit balances) and their auth sessions.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from petsanta.core.timezone import utcnow
from petsanta.models.user import User, UserSession


class UserRepository:
    """Repository for User entities.

    Balance changes are single UPDATE statements so concurrent debits cannot
    drive a balance negative.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, user: User) -> User:
        """Persist new user to database."""
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: str) -> User | None:
        """Retrieve user by id.

        Args:
            user_id: Auth provider user identifier

        Returns:
            User if found, None otherwise
        """
        result = await self.session.execute(select(User).where(User.id == user_id))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def get_balance(self, user_id: str) -> int | None:
        """Read current credit balance (None if user does not exist)."""
        result = await self.session.execute(select(User.credits).where(User.id == user_id))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def debit_credits(self, user_id: str, amount: int) -> int | None:
        """Atomically subtract credits if the balance covers the amount.

        Query explanation:
        - UPDATE users SET credits = credits - :amount
        - WHERE id = :user_id AND credits >= :amount

        Args:
            user_id: Account to debit
            amount: Credits to subtract (positive)

        Returns:
            New balance, or None if the balance was insufficient (no change made)
        """
        result = await self.session.execute(
            update(User)
            .where(User.id == user_id, User.credits >= amount)  # type: ignore[arg-type]
            .values(credits=User.credits - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return await self._refreshed_balance(user_id)

    async def credit(self, user_id: str, amount: int) -> int | None:
        """Atomically add credits.

        Returns:
            New balance, or None if the user does not exist
        """
        result = await self.session.execute(
            update(User)
            .where(User.id == user_id)  # type: ignore[arg-type]
            .values(credits=User.credits + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return await self._refreshed_balance(user_id)

    async def _refreshed_balance(self, user_id: str) -> int:
        result = await self.session.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)  # type: ignore[arg-type]
        )
        return result.scalar_one().credits


class UserSessionRepository:
    """Repository for auth sessions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, user_session: UserSession) -> UserSession:
        self.session.add(user_session)
        await self.session.flush()
        return user_session

    async def get_active_by_token(self, token: str) -> UserSession | None:
        """Retrieve a session by token if it has not expired."""
        result = await self.session.execute(
            select(UserSession).where(
                UserSession.token == token,  # type: ignore[arg-type]
                UserSession.expires_at > utcnow(),  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()
