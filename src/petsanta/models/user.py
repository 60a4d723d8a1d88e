"""User and UserSession entities - credit account and auth sessions."""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from petsanta.core.timezone import utcnow


class User(SQLModel, table=True):
    """User owns a credit balance that generations debit and purchases credit."""

    __tablename__ = "users"  # type: ignore[assignment]

    id: str = Field(primary_key=True, max_length=64)
    email: str = Field(max_length=255, unique=True, index=True)
    name: Optional[str] = Field(default=None, max_length=255)
    credits: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)


class UserSession(SQLModel, table=True):
    """Authenticated session issued by the auth provider."""

    __tablename__ = "sessions"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    token: str = Field(max_length=255, unique=True, index=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow)
