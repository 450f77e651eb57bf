"""Shared test fixtures for all test groups.

Tests run against a throwaway SQLite file by default; set TEST_DATABASE_URL
to run the same suite against PostgreSQL.
"""

import hashlib
import hmac
import json
import os
import time

import pytest

# Environment must be in place before billing_sync settings are first cached
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_PRICE_PRO"] = "price_pro"
os.environ["STRIPE_PRICE_ENTERPRISE"] = "price_enterprise"
os.environ["METRICS_ENABLED"] = "false"
os.environ["DEBUG"] = "false"

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker  # noqa: E402

from billing_sync.core.config import get_settings  # noqa: E402
from billing_sync.db.base import Base, create_engine_for  # noqa: E402
from billing_sync.domain.plans import PlanCatalog  # noqa: E402
from billing_sync.services.customers import CustomerResolver  # noqa: E402
from billing_sync.services.subscriptions import SubscriptionStateMachine  # noqa: E402

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
async def engine(tmp_path) -> AsyncEngine:
    """Create a test engine, create all tables, and install the global session factory."""
    import billing_sync.db.base as db_mod
    import billing_sync.db.models  # noqa: F401

    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}"
    engine = create_engine_for(url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    db_mod._engine = engine
    db_mod._session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    db_mod._engine = None
    db_mod._session_factory = None
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
def catalog() -> PlanCatalog:
    return PlanCatalog({"pro": "price_pro", "enterprise": "price_enterprise"})


@pytest.fixture
def resolver() -> CustomerResolver:
    return CustomerResolver()


@pytest.fixture
def state_machine(catalog, resolver) -> SubscriptionStateMachine:
    return SubscriptionStateMachine(catalog, resolver)


@pytest.fixture
def make_event():
    """Factory for Stripe-shaped event payloads."""

    def _make(event_id: str, event_type: str, obj: dict) -> dict:
        return {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": 1700000000,
            "livemode": False,
            "data": {"object": obj},
        }

    return _make


@pytest.fixture
def make_subscription():
    """Factory for Stripe subscription objects."""

    def _make(
        subscription_id: str = "sub_1",
        customer: str | None = "cus_1",
        status: str = "active",
        price_id: str | None = "price_pro",
        current_period_end: int | None = 1700000000,
        cancel_at_period_end: bool = False,
        metadata: dict | None = None,
    ) -> dict:
        items = [{"id": f"si_{subscription_id}", "price": {"id": price_id}}] if price_id else []
        return {
            "id": subscription_id,
            "object": "subscription",
            "customer": customer,
            "status": status,
            "cancel_at_period_end": cancel_at_period_end,
            "current_period_end": current_period_end,
            "items": {"object": "list", "data": items},
            "metadata": metadata or {},
        }

    return _make


@pytest.fixture
def sign_payload():
    """Build a Stripe-Signature header for a raw body (t=<ts>,v1=<hmac>)."""

    def _sign(body: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
        ts = int(time.time()) if timestamp is None else timestamp
        signed = f"{ts}.".encode() + body
        digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
        return f"t={ts},v1={digest}"

    return _sign


@pytest.fixture
def encode_event():
    def _encode(payload: dict) -> bytes:
        return json.dumps(payload, separators=(",", ":")).encode()

    return _encode
