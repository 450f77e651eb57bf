"""Reconciliation: re-applies Stripe's current subscription state.

Covers events that were lost or rejected upstream of the ledger and manual
backfills. Goes straight to the state machine; the ledger is not consulted
because no webhook event is being admitted.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from billing_sync.domain.events import EventKind, parse_event
from billing_sync.services.billing_client import BillingClient
from billing_sync.services.subscriptions import SubscriptionStateMachine

logger = structlog.get_logger(__name__)


async def reconcile_customer(
    client: BillingClient,
    state_machine: SubscriptionStateMachine,
    session_factory: async_sessionmaker[AsyncSession],
    customer_id: str,
) -> int:
    """Upsert every subscription Stripe reports for ``customer_id``. Returns the count applied."""
    subscriptions = await client.list_subscriptions(customer_id)
    applied = 0
    for subscription in subscriptions:
        event = parse_event({
            "id": f"reconcile:{subscription['id']}",
            "type": EventKind.SUBSCRIPTION_UPDATED.value,
            "data": {"object": subscription},
        })
        async with session_factory() as session:
            async with session.begin():
                result = await state_machine.apply(session, event)
        if result.action != "ignored":
            applied += 1
        logger.info(
            "subscription_reconciled",
            customer_id=customer_id,
            subscription_id=subscription["id"],
            action=result.action,
        )
    return applied
