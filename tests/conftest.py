"""pytest fixtures for Pets Santa backend tests.

Provides:
- utc_timezone: Autouse fixture enforcing UTC timezone
- engine: Function-scoped SQLite database (tables created from SQLModel metadata)
- uow_factory: Function-scoped UnitOfWork factory
- settings: Test settings (no external services configured)
- fake_provider / fake_storage / fake_gateway: in-memory collaborators
- create_user / create_session: seeding helpers
- stripe_signature: builds Stripe-Signature headers
"""

import hashlib
import hmac
import os
import time
from datetime import timedelta

# The app module builds Settings at import time
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from petsanta import models  # noqa: E402, F401
from petsanta.core.config import Settings  # noqa: E402
from petsanta.core.timezone import utcnow  # noqa: E402
from petsanta.models.user import User, UserSession  # noqa: E402
from petsanta.services.billing.stripe_gateway import CheckoutSession, StripeGateway  # noqa: E402
from petsanta.services.exceptions import StorageError  # noqa: E402
from petsanta.services.image_generation.kie_client import (  # noqa: E402
    ProviderPending,
    ProviderResult,
    ProviderUpdate,
)
from petsanta.uow import create_uow_factory  # noqa: E402

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture(scope="session", autouse=True)
def utc_timezone():
    """Enforce UTC timezone for all tests."""
    os.environ["TZ"] = "UTC"
    yield


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Provide a fresh SQLite database per test with all tables created."""
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield db_engine

    await db_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def uow_factory(engine):
    """Provide function-scoped UnitOfWork factory bound to the test database."""
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    return create_uow_factory(session_factory)


@pytest.fixture
def settings() -> Settings:
    """Test settings: callback and checkout URLs under a fixed public base URL."""
    return Settings(  # type: ignore[call-arg]
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        APP_ENV="test",
        PUBLIC_BASE_URL="https://petsanta.test",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        STRIPE_PRICE_ID="price_test_pack",
        CREDIT_PACK_CREDITS=200,
        CREDIT_PACK_AMOUNT=1000,
    )


class FakeProvider:
    """In-memory generation provider.

    Submissions get sequential provider task ids. Poll results default to
    pending unless set in poll_results.
    """

    def __init__(self):
        self.submissions: list[dict] = []
        self.polls: list[str] = []
        self.poll_results: dict[str, ProviderResult] = {}
        self.submit_error: Exception | None = None
        self.poll_error: Exception | None = None
        self._counter = 0

    async def submit(
        self,
        prompt: str,
        image_urls: list[str],
        aspect_ratio: str,
        resolution: str,
        output_format: str,
        callback_url: str | None = None,
    ) -> str:
        self.submissions.append(
            {
                "prompt": prompt,
                "image_urls": image_urls,
                "aspect_ratio": aspect_ratio,
                "resolution": resolution,
                "output_format": output_format,
                "callback_url": callback_url,
            }
        )
        if self.submit_error is not None:
            raise self.submit_error
        self._counter += 1
        return f"kie_task_{self._counter}"

    async def poll(self, provider_task_id: str) -> ProviderUpdate:
        self.polls.append(provider_task_id)
        if self.poll_error is not None:
            raise self.poll_error
        result = self.poll_results.get(provider_task_id, ProviderPending(state="generating"))
        return ProviderUpdate(
            provider_task_id=provider_task_id,
            result=result,
            raw={"taskId": provider_task_id, "source": "poll"},
        )


class FakeStorage:
    """In-memory artifact store."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.downloads: list[str] = []
        self.fail_download = False

    async def download(self, url: str) -> bytes:
        self.downloads.append(url)
        if self.fail_download:
            raise StorageError("Download failed: 404 Not Found")
        return b"\x89PNG generated"

    async def put(self, pathname: str, data: bytes, content_type: str = "image/png") -> str:
        self.objects[pathname] = (data, content_type)
        return f"https://blob.test/{pathname}"


class FakeStripeGateway(StripeGateway):
    """Stripe gateway with in-memory customers and sessions.

    Webhook verification is the real implementation.
    """

    def __init__(self, webhook_secret: str = WEBHOOK_SECRET):
        super().__init__(secret_key="sk_test_fake", webhook_secret=webhook_secret)
        self.customers: list[str] = []
        self.sessions: list[dict] = []
        self.checkout_error: Exception | None = None

    async def create_customer(self, user_id: str) -> str:
        customer_id = f"cus_{len(self.customers) + 1}"
        self.customers.append(user_id)
        return customer_id

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        if self.checkout_error is not None:
            raise self.checkout_error
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append(
            {
                "id": session_id,
                "customer_id": customer_id,
                "price_id": price_id,
                "metadata": metadata,
                "success_url": success_url,
                "cancel_url": cancel_url,
            }
        )
        return CheckoutSession(id=session_id, url=f"https://checkout.stripe.test/{session_id}")


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def fake_gateway() -> FakeStripeGateway:
    return FakeStripeGateway()


@pytest.fixture
def create_user(uow_factory):
    """Return an async helper that inserts a user with the given balance."""

    async def _create_user(user_id: str = "user_1", credits: int = 0) -> User:
        async with await uow_factory() as uow:
            return await uow.users.add(
                User(id=user_id, email=f"{user_id}@example.com", name=user_id, credits=credits)
            )

    return _create_user


@pytest.fixture
def create_session(uow_factory):
    """Return an async helper that issues a session token for a user."""

    async def _create_session(
        user_id: str, token: str | None = None, expires_in: timedelta = timedelta(days=7)
    ) -> str:
        token = token or f"token_{user_id}"
        async with await uow_factory() as uow:
            await uow.user_sessions.add(
                UserSession(token=token, user_id=user_id, expires_at=utcnow() + expires_in)
            )
        return token

    return _create_session


def sign_stripe_payload(
    payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None
) -> str:
    """Build a Stripe-Signature header (t=<ts>,v1=<hmac-sha256 of "<ts>.<payload>">)."""
    timestamp = timestamp if timestamp is not None else int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def stripe_signature():
    """Return the Stripe-Signature header builder."""
    return sign_stripe_payload
