"""WebhookProcessor: ledger admission and state application in one transaction."""

from enum import StrEnum

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from billing_sync.core.exceptions import CustomerConflict, UnknownEventKind
from billing_sync.domain.events import BillingEvent
from billing_sync.metrics.cloudwatch import BusinessEvent, emit_business_event, emit_webhook_delivery
from billing_sync.services.ledger import Admission, IdempotencyLedger
from billing_sync.services.subscriptions import ApplyResult, SubscriptionStateMachine

logger = structlog.get_logger(__name__)


class WebhookOutcome(StrEnum):
    PROCESSED = "ok"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


class WebhookProcessor:
    """Processes one verified event.

    The ledger row and the state change commit together. If applying the
    event fails, both roll back and the error propagates, so Stripe's retry
    is admitted and applied again; an event is never recorded as processed
    without its effect.
    """

    def __init__(
        self,
        ledger: IdempotencyLedger,
        state_machine: SubscriptionStateMachine,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.ledger = ledger
        self.state_machine = state_machine
        self.session_factory = session_factory

    async def process(self, event: BillingEvent) -> WebhookOutcome:
        try:
            outcome, result = await self._apply_once(event)
        except CustomerConflict as e:
            await emit_business_event(BusinessEvent.CUSTOMER_CONFLICT, user_id=e.user_id)
            raise

        if result is not None:
            for name in result.business_events:
                await emit_business_event(name, user_id=result.user_id)
            logger.info(
                "stripe_event_processed",
                event_id=event.event_id,
                event_type=event.event_type,
                action=result.action,
                user_id=result.user_id,
            )

        await emit_webhook_delivery(event.event_type, outcome.value)
        return outcome

    async def _apply_once(self, event: BillingEvent) -> tuple[WebhookOutcome, ApplyResult | None]:
        async with self.session_factory() as session:
            async with session.begin():
                admission = await self.ledger.admit(session, event.event_id, event.event_type)
                if admission == Admission.ALREADY_PROCESSED:
                    return WebhookOutcome.DUPLICATE, None
                try:
                    result = await self.state_machine.apply(session, event)
                except UnknownEventKind:
                    # Ledger row still commits so redeliveries short-circuit
                    logger.info(
                        "stripe_unknown_event_acknowledged",
                        event_id=event.event_id,
                        event_type=event.event_type,
                    )
                    return WebhookOutcome.IGNORED, None

        if result.action == "ignored":
            return WebhookOutcome.IGNORED, result
        return WebhookOutcome.PROCESSED, result
