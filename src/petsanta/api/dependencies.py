"""FastAPI dependencies for request validation and common operations.

This module provides reusable FastAPI dependencies for:
- Settings and Unit of Work access
- Session authentication
- Service construction from process-wide clients stored on app.state
"""

from typing import Annotated, Awaitable, Callable

from fastapi import Cookie, Depends, Header, Request

from petsanta.core.config import Settings
from petsanta.services.billing.service import PaymentService
from petsanta.services.exceptions import UnauthenticatedError
from petsanta.services.image_generation.service import GenerationService
from petsanta.uow import UnitOfWork

SESSION_COOKIE = "session_token"


def get_settings(request: Request) -> Settings:
    """Get application settings instance.

    Uses the instance loaded at startup when available.
    """
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = Settings()  # type: ignore[call-arg]  # Pydantic loads from env vars
        request.app.state.settings = settings
    return settings


def get_uow_factory(request: Request) -> Callable[[], Awaitable[UnitOfWork]]:
    """Get UnitOfWork factory from app state.

    Example:
        >>> @router.get("/endpoint")
        >>> async def endpoint(uow_factory=Depends(get_uow_factory)):
        ...     async with await uow_factory() as uow:
        ...         await uow.users.get_by_id(user_id)
    """
    return request.app.state.uow_factory


def _extract_token(authorization: str | None, cookie_token: str | None) -> str | None:
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    if cookie_token:
        # Signed cookies carry "<token>.<signature>"
        return cookie_token.split(".", 1)[0]
    return None


async def get_current_user_id(
    uow_factory: Callable[[], Awaitable[UnitOfWork]] = Depends(get_uow_factory),
    authorization: Annotated[str | None, Header()] = None,
    session_token: Annotated[str | None, Cookie(alias=SESSION_COOKIE)] = None,
) -> str:
    """Resolve the authenticated user from the session token.

    The token is read from `Authorization: Bearer <token>` or the session cookie
    and must match a non-expired session.

    Raises:
        UnauthenticatedError: No token or no active session
    """
    token = _extract_token(authorization, session_token)
    if not token:
        raise UnauthenticatedError("Unauthorized")

    async with await uow_factory() as uow:
        user_session = await uow.user_sessions.get_active_by_token(token)

    if user_session is None:
        raise UnauthenticatedError("Unauthorized")
    return user_session.user_id


def get_generation_service(
    request: Request,
    settings: Settings = Depends(get_settings),
    uow_factory: Callable[[], Awaitable[UnitOfWork]] = Depends(get_uow_factory),
) -> GenerationService:
    """Build the generation service from the clients created at startup."""
    return GenerationService(
        uow_factory=uow_factory,
        provider=request.app.state.kie_client,
        storage=request.app.state.blob_client,
        settings=settings,
    )


def get_payment_service(
    request: Request,
    settings: Settings = Depends(get_settings),
    uow_factory: Callable[[], Awaitable[UnitOfWork]] = Depends(get_uow_factory),
) -> PaymentService:
    """Build the payment service from the clients created at startup."""
    return PaymentService(
        uow_factory=uow_factory,
        gateway=request.app.state.stripe_gateway,
        settings=settings,
    )
