"""FastAPI application factory."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from petsanta.api.routes import billing, generation, webhooks
from petsanta.core import timezone  # noqa: F401
from petsanta.core.config import Settings, configure_logging
from petsanta.core.database import setup_db_session
from petsanta.services.billing.stripe_gateway import StripeGateway
from petsanta.services.exceptions import ServiceError
from petsanta.services.image_generation.kie_client import KieClient
from petsanta.services.storage.blob_client import BlobStorageClient
from petsanta.uow import create_uow_factory

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Startup: configure logging, create the database session factory and the
    process-wide provider, storage and payment clients (immutable after init).
    Shutdown: dispose of the database engine.
    """
    settings = app.state.settings

    configure_logging(settings)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)

    # Store in app.state for access in routes
    app.state.session_factory = session_factory
    app.state.uow_factory = create_uow_factory(session_factory)
    app.state.kie_client = KieClient(
        api_key=settings.kie_ai_api_key,
        base_url=settings.kie_ai_base_url,
        model=settings.kie_ai_model,
        timeout=settings.http_timeout_seconds,
    )
    app.state.blob_client = BlobStorageClient(
        token=settings.blob_read_write_token,
        api_url=settings.blob_api_url,
        timeout=settings.http_timeout_seconds,
    )
    app.state.stripe_gateway = StripeGateway(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        timeout=settings.http_timeout_seconds,
    )

    logger.info("application.startup", db_url=settings.database_url.split("@")[-1])

    yield

    logger.info("application.shutdown")
    await session_factory.kw["bind"].dispose()


async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    """Map service errors to JSON responses ({"error": message, ...extra})."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request.service_error",
        path=request.url.path,
        error=exc.message,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code, content={"error": exc.message, **exc.extra}
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures and return a generic error without internals."""
    logger.error(
        "request.unhandled_error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Optional settings (loaded from environment when omitted)

    Returns:
        Configured FastAPI application instance
    """
    if settings is None:
        settings = Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="Pets Santa API",
        description="AI pet portrait generation with credit billing",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ServiceError, handle_service_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)

    # Register API routers
    app.include_router(generation.router)
    app.include_router(billing.router)
    app.include_router(webhooks.router)

    # Health check endpoint with database validation
    @app.get("/health")
    async def health_check(response: Response):
        """Health check endpoint with database connectivity test.

        Returns:
            200: {"status": "healthy"} if database connection succeeds
            503: {"status": "unhealthy", "error": {...}} if database connection fails
        """
        try:
            async with app.state.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()

            logger.debug("health_check.success")
            return {"status": "healthy"}

        except Exception as e:
            logger.error(
                "health_check.failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {
                "status": "unhealthy",
                "error": {
                    "type": type(e).__name__,
                },
            }

    return app


# Create app instance for uvicorn
app = create_app()
