"""Tests for the billing API: checkout and status."""

import pytest

from billing_sync.api.deps import get_billing_client
from billing_sync.core.exceptions import UpstreamError

pytestmark = pytest.mark.integration


class FakeBillingClient:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sessions: list[dict] = []

    async def create_customer(self, email, metadata):
        return "cus_api_1"

    async def create_checkout_session(self, *, customer_id, price_id, success_url, cancel_url, metadata):
        if self.fail:
            raise UpstreamError("Stripe checkout session creation failed: card_declined")
        self.sessions.append(
            {"customer_id": customer_id, "price_id": price_id, "success_url": success_url, "cancel_url": cancel_url}
        )
        return "https://checkout.stripe.test/cs_1"


@pytest.fixture
def fake_client(app) -> FakeBillingClient:
    fake = FakeBillingClient()
    app.dependency_overrides[get_billing_client] = lambda: fake
    return fake


async def _deliver(client, sign_payload, encode_event, payload):
    body = encode_event(payload)
    return await client.post(
        "/api/webhooks/stripe",
        content=body,
        headers={"stripe-signature": sign_payload(body), "content-type": "application/json"},
    )


async def test_checkout_returns_redirect_url(client, fake_client):
    response = await client.post(
        "/api/billing/checkout",
        json={"identity": {"email": "buyer@example.com"}, "planId": "pro"},
    )

    assert response.status_code == 200
    assert response.json() == {"redirectUrl": "https://checkout.stripe.test/cs_1"}
    session = fake_client.sessions[0]
    assert session["price_id"] == "price_pro"
    assert session["customer_id"] == "cus_api_1"
    assert session["success_url"].endswith("/billing?checkout_success=true")


async def test_checkout_unknown_plan_is_configuration_error(client, fake_client):
    response = await client.post(
        "/api/billing/checkout",
        json={"identity": {"email": "buyer@example.com"}, "planId": "platinum"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "configuration_error"
    assert fake_client.sessions == []


async def test_checkout_upstream_failure_is_4xx(app, client):
    app.dependency_overrides[get_billing_client] = lambda: FakeBillingClient(fail=True)

    response = await client.post(
        "/api/billing/checkout",
        json={"identity": {"email": "buyer@example.com"}, "planId": "pro"},
    )

    assert response.status_code == 424
    assert response.json()["code"] == "upstream_error"


async def test_checkout_requires_identity(client, fake_client):
    response = await client.post("/api/billing/checkout", json={"identity": {}, "planId": "pro"})

    assert response.status_code == 422


async def test_status_defaults_to_free(client):
    response = await client.get("/api/billing/status", params={"email": "nobody@example.com"})

    assert response.status_code == 200
    assert response.json() == {
        "subscribed": False,
        "plan": "free",
        "status": None,
        "cancelAtPeriodEnd": False,
        "periodEnd": None,
    }


async def test_status_requires_identity(client):
    response = await client.get("/api/billing/status")

    assert response.status_code == 400


async def test_subscription_lifecycle_through_webhooks(
    client, sign_payload, encode_event, make_event, make_subscription
):
    await _deliver(
        client,
        sign_payload,
        encode_event,
        make_event(
            "evt_1",
            "checkout.session.completed",
            {"id": "cs_1", "customer": "cus_1", "customer_details": {"email": "buyer@example.com"}},
        ),
    )
    await _deliver(
        client,
        sign_payload,
        encode_event,
        make_event("evt_2", "customer.subscription.created", make_subscription(current_period_end=1700000000)),
    )

    response = await client.get("/api/billing/status", params={"email": "buyer@example.com"})
    body = response.json()
    assert body["subscribed"] is True
    assert body["plan"] == "pro"
    assert body["periodEnd"] == 1700000000000

    await _deliver(
        client,
        sign_payload,
        encode_event,
        make_event("evt_3", "customer.subscription.deleted", make_subscription()),
    )

    response = await client.get("/api/billing/status", params={"email": "buyer@example.com"})
    assert response.json()["subscribed"] is False
    assert response.json()["plan"] == "free"
