"""Billing routes: Stripe Checkout and subscription status."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from billing_sync.api.deps import (
    get_billing_client,
    get_customer_resolver,
    get_plan_catalog,
    get_status_service,
)
from billing_sync.core.config import get_settings
from billing_sync.db.base import get_session_factory
from billing_sync.domain.plans import PlanCatalog
from billing_sync.schemas.billing import BillingStatusResponse, CheckoutRequest, CheckoutResponse
from billing_sync.services.billing_client import BillingClient
from billing_sync.services.checkout import CheckoutIdentity, CheckoutOrchestrator
from billing_sync.services.customers import CustomerResolver
from billing_sync.services.status import StatusQueryService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/billing/checkout", response_model=CheckoutResponse)
async def create_checkout_session(
    body: CheckoutRequest,
    client: BillingClient = Depends(get_billing_client),
    catalog: PlanCatalog = Depends(get_plan_catalog),
    resolver: CustomerResolver = Depends(get_customer_resolver),
):
    """Create a Stripe Checkout session and return the redirect URL."""
    settings = get_settings()
    orchestrator = CheckoutOrchestrator(
        client=client,
        catalog=catalog,
        resolver=resolver,
        session_factory=get_session_factory(),
        success_url=f"{settings.frontend_url}{settings.checkout_success_path}",
        cancel_url=f"{settings.frontend_url}{settings.checkout_cancel_path}",
    )
    identity = CheckoutIdentity(user_id=body.identity.user_id, email=body.identity.email)
    redirect_url = await orchestrator.create_session(identity, body.plan_id)
    return CheckoutResponse(redirect_url=redirect_url)


@router.get("/billing/status", response_model=BillingStatusResponse)
async def get_billing_status(
    email: str | None = Query(default=None),
    user_id: int | None = Query(default=None, alias="userId"),
    service: StatusQueryService = Depends(get_status_service),
):
    """Return whether the user is subscribed, to which plan, and until when."""
    if user_id is None and not email:
        raise HTTPException(status_code=400, detail="email or userId is required")

    async with get_session_factory()() as session:
        view = await service.status(session, user_id=user_id, email=email)

    return BillingStatusResponse(
        subscribed=view.subscribed,
        plan=view.plan,
        status=view.status,
        cancel_at_period_end=view.cancel_at_period_end,
        period_end=view.period_end,
    )
