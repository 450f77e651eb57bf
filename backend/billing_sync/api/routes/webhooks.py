"""Stripe webhook endpoint."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from billing_sync.api.deps import get_customer_resolver, get_ledger, get_plan_catalog
from billing_sync.core.config import get_settings
from billing_sync.core.logging import bind_event_context, clear_event_context
from billing_sync.db.base import get_session_factory
from billing_sync.domain.plans import PlanCatalog
from billing_sync.schemas.billing import WebhookAck
from billing_sync.services.customers import CustomerResolver
from billing_sync.services.ledger import IdempotencyLedger
from billing_sync.services.signature import SignatureVerifier
from billing_sync.services.subscriptions import SubscriptionStateMachine
from billing_sync.services.webhooks import WebhookProcessor

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    ledger: IdempotencyLedger = Depends(get_ledger),
    catalog: PlanCatalog = Depends(get_plan_catalog),
    resolver: CustomerResolver = Depends(get_customer_resolver),
):
    """Handle Stripe webhook events with signature verification.

    200 for processed, duplicate, and unhandled event types; 400 for bad
    signatures or bodies; 409 for customer conflicts (rolled back so Stripe
    redelivers once resolved).
    """
    settings = get_settings()
    if not settings.stripe_webhook_secret:
        logger.error("stripe_webhook_secret_missing")
        raise HTTPException(status_code=503, detail="Stripe webhook endpoint is not configured")

    # Raw bytes first: the signature covers the body exactly as sent
    body = await request.body()
    verifier = SignatureVerifier(
        settings.stripe_webhook_secret,
        settings.stripe_webhook_tolerance,
        expected_livemode=settings.stripe_livemode,
    )
    event = verifier.verify(body, request.headers.get("stripe-signature"))

    bind_event_context(event.event_id, event.event_type)
    try:
        logger.info("stripe_webhook_received", livemode=event.livemode, created=event.created)
        processor = WebhookProcessor(
            ledger=ledger,
            state_machine=SubscriptionStateMachine(catalog, resolver),
            session_factory=get_session_factory(),
        )
        outcome = await processor.process(event)
    finally:
        clear_event_context()
    return WebhookAck(status=outcome.value)
