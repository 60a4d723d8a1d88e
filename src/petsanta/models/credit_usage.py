"""CreditUsage entity - append-only ledger history."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from petsanta.core.timezone import utcnow

MAX_DESCRIPTION_LENGTH = 255


class CreditUsage(SQLModel, table=True):
    """One immutable ledger entry: a generation debit or a purchase credit.

    remaining_credits is the account balance right after this entry was applied.
    """

    __tablename__ = "credit_usage"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    credits_used: int = Field(default=0, ge=0)
    credits_added: int = Field(default=0, ge=0)
    remaining_credits: int = Field(ge=0)
    description: str = Field(max_length=MAX_DESCRIPTION_LENGTH)
    created_at: datetime = Field(default_factory=utcnow, index=True)
