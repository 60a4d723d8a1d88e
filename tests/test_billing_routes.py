"""Integration tests for billing API endpoints.

- POST /api/checkout - Create checkout session
- POST /api/webhook - Stripe event delivery
- GET /api/billing - Balance, payments and ledger history
"""

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from petsanta.app import app
from petsanta.services.exceptions import PaymentProcessorError


@pytest_asyncio.fixture
async def test_client(uow_factory, settings, fake_provider, fake_storage, fake_gateway):
    """Provide AsyncClient for testing API endpoints with database access."""
    app.state.settings = settings
    app.state.uow_factory = uow_factory
    app.state.kie_client = fake_provider
    app.state.blob_client = fake_storage
    app.state.stripe_gateway = fake_gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def auth_headers(create_user, create_session):
    await create_user("user_1", credits=0)
    token = await create_session("user_1")
    return {"Authorization": f"Bearer {token}"}


def completed_event(session_id: str, user_id: str = "user_1", credits: str = "200") -> bytes:
    return json.dumps(
        {
            "id": "evt_1",
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": session_id,
                    "customer": "cus_1",
                    "amount_total": 1000,
                    "currency": "usd",
                    "metadata": {"userId": user_id, "creditsAmount": credits},
                }
            },
        }
    ).encode("utf-8")


@pytest.mark.asyncio
class TestCheckoutEndpoint:
    async def test_checkout_returns_url(self, test_client, auth_headers, fake_gateway):
        response = await test_client.post("/api/checkout", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.test/cs_test_1"}
        assert fake_gateway.sessions[0]["metadata"]["userId"] == "user_1"

    async def test_checkout_requires_session(self, test_client):
        response = await test_client.post("/api/checkout")

        assert response.status_code == 401

    async def test_checkout_processor_failure(self, test_client, auth_headers, fake_gateway):
        fake_gateway.checkout_error = PaymentProcessorError("Stripe error: unavailable")

        response = await test_client.post("/api/checkout", headers=auth_headers)

        assert response.status_code == 502
        assert response.json() == {"error": "Stripe error: unavailable"}


@pytest.mark.asyncio
class TestWebhookEndpoint:
    async def test_purchase_flow_credits_once(self, test_client, auth_headers, stripe_signature):
        await test_client.post("/api/checkout", headers=auth_headers)
        payload = completed_event("cs_test_1")
        headers = {
            "Stripe-Signature": stripe_signature(payload),
            "Content-Type": "application/json",
        }

        first = await test_client.post("/api/webhook", content=payload, headers=headers)
        second = await test_client.post("/api/webhook", content=payload, headers=headers)

        assert first.status_code == 200
        assert first.json() == {"received": True}
        assert second.status_code == 200
        assert second.json() == {"received": True, "duplicate": True}

        billing = await test_client.get("/api/billing", headers=auth_headers)
        data = billing.json()
        assert data["credits"] == 200
        assert len(data["payments"]) == 1
        assert data["payments"][0]["status"] == "completed"
        assert data["payments"][0]["stripe_session_id"] == "cs_test_1"
        assert [entry["credits_added"] for entry in data["usage_history"]] == [200]

    async def test_invalid_signature(self, test_client, auth_headers, stripe_signature):
        payload = completed_event("cs_test_1")

        response = await test_client.post(
            "/api/webhook",
            content=payload,
            headers={"Stripe-Signature": stripe_signature(payload, secret="whsec_wrong")},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid signature"}

    async def test_missing_signature(self, test_client):
        response = await test_client.post("/api/webhook", content=completed_event("cs_test_1"))

        assert response.status_code == 400

    async def test_missing_metadata(self, test_client, auth_headers, stripe_signature):
        payload = completed_event("cs_test_1", user_id="")

        response = await test_client.post(
            "/api/webhook", content=payload, headers={"Stripe-Signature": stripe_signature(payload)}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required metadata"}


@pytest.mark.asyncio
async def test_billing_overview_empty(test_client, auth_headers):
    response = await test_client.get("/api/billing", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"credits": 0, "payments": [], "usage_history": []}
