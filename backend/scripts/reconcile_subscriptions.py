"""Re-sync local subscription rows from Stripe for the given customers.

Usage:
    python scripts/reconcile_subscriptions.py cus_123 [cus_456 ...]
"""

import asyncio
import sys

from billing_sync.core.config import get_settings
from billing_sync.core.logging import configure_structlog
from billing_sync.db import close_db, get_session_factory, init_db
from billing_sync.domain.plans import PlanCatalog
from billing_sync.services.billing_client import BillingClient
from billing_sync.services.customers import CustomerResolver
from billing_sync.services.reconcile import reconcile_customer
from billing_sync.services.subscriptions import SubscriptionStateMachine


async def main(customer_ids: list[str]) -> None:
    settings = get_settings()
    configure_structlog(log_level=settings.log_level, json_logs=False)
    await init_db()

    client = BillingClient(api_key=settings.stripe_secret_key)
    state_machine = SubscriptionStateMachine(PlanCatalog.from_settings(settings), CustomerResolver())

    try:
        for customer_id in customer_ids:
            applied = await reconcile_customer(client, state_machine, get_session_factory(), customer_id)
            print(f"{customer_id}: {applied} subscription(s) applied")
    finally:
        await close_db()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(sys.argv[1:]))
