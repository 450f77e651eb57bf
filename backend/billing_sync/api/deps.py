"""FastAPI dependencies: per-request collaborators for the billing routes."""

from billing_sync.core.config import get_settings
from billing_sync.domain.plans import PlanCatalog
from billing_sync.services.billing_client import BillingClient
from billing_sync.services.customers import CustomerResolver
from billing_sync.services.ledger import IdempotencyLedger
from billing_sync.services.status import StatusQueryService


def get_billing_client() -> BillingClient:
    """A fresh Stripe client per request; no module-level API key."""
    return BillingClient(api_key=get_settings().stripe_secret_key)


def get_plan_catalog() -> PlanCatalog:
    return PlanCatalog.from_settings(get_settings())


def get_customer_resolver() -> CustomerResolver:
    return CustomerResolver()


def get_ledger() -> IdempotencyLedger:
    return IdempotencyLedger()


def get_status_service() -> StatusQueryService:
    return StatusQueryService()
