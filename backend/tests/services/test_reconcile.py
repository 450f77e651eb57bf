"""Tests for reconcile_customer."""

import pytest
from sqlalchemy import select

from billing_sync.db.models.processed_event import ProcessedEvent
from billing_sync.db.models.subscription import Subscription
from billing_sync.services.reconcile import reconcile_customer

pytestmark = pytest.mark.integration


class FakeListingClient:
    def __init__(self, subscriptions: list[dict]):
        self.subscriptions = subscriptions

    async def list_subscriptions(self, customer_id: str) -> list[dict]:
        return [s for s in self.subscriptions if s["customer"] == customer_id]


async def test_reconcile_upserts_current_state(state_machine, session_factory, make_subscription):
    client = FakeListingClient([
        make_subscription(subscription_id="sub_1", status="active"),
        make_subscription(subscription_id="sub_2", status="canceled", price_id="price_enterprise"),
    ])

    applied = await reconcile_customer(client, state_machine, session_factory, "cus_1")

    assert applied == 2
    async with session_factory() as session:
        rows = {s.external_subscription_id: s for s in (await session.scalars(select(Subscription))).all()}
        ledger = (await session.scalars(select(ProcessedEvent))).all()
    assert rows["sub_1"].status == "active"
    assert rows["sub_2"].status == "canceled"
    # Reconciliation never writes to the ledger
    assert ledger == []


async def test_reconcile_does_not_revive_canceled(state_machine, session_factory, make_subscription):
    await reconcile_customer(
        FakeListingClient([make_subscription(status="canceled")]), state_machine, session_factory, "cus_1"
    )

    applied = await reconcile_customer(
        FakeListingClient([make_subscription(status="active")]), state_machine, session_factory, "cus_1"
    )

    assert applied == 0
    async with session_factory() as session:
        row = await session.scalar(select(Subscription))
    assert row.status == "canceled"
