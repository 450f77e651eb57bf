"""SubscriptionStateMachine: applies admitted billing events to subscription rows."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from billing_sync.core.exceptions import InvalidPayloadError, UnknownEventKind
from billing_sync.db.dialects import supports_native_upsert, upsert_insert
from billing_sync.db.models.subscription import Subscription
from billing_sync.domain.events import (
    BillingEvent,
    CheckoutCompleted,
    EventKind,
    InvoiceEvent,
    SubscriptionChanged,
)
from billing_sync.domain.plans import PlanCatalog
from billing_sync.domain.subscriptions import ENTITLED_STATUSES, SubscriptionStatus
from billing_sync.metrics.cloudwatch import BusinessEvent
from billing_sync.services.customers import CustomerResolver

logger = structlog.get_logger(__name__)


@dataclass
class ApplyResult:
    """Outcome of applying one event; business_events are emitted after commit."""

    action: str
    user_id: int | None = None
    subscription_id: str | None = None
    business_events: list[BusinessEvent] = field(default_factory=list)


class SubscriptionStateMachine:
    """Derives canonical subscription state from Stripe events.

    Only ever called for events the IdempotencyLedger admitted, inside the
    same transaction. Subscription events carry the provider's full current
    state, so rows are upserted last-received-wins; a canceled row is
    terminal and later create/update events for it are ignored.
    """

    def __init__(self, catalog: PlanCatalog, resolver: CustomerResolver):
        self.catalog = catalog
        self.resolver = resolver

    async def apply(self, session: AsyncSession, event: BillingEvent) -> ApplyResult:
        """Apply an admitted event.

        Raises:
            UnknownEventKind: event type has no defined effect
            CustomerConflict: propagated from customer resolution
            InvalidPayloadError: subscription event with no way to identify its user
        """
        if isinstance(event, CheckoutCompleted):
            return await self._on_checkout_completed(session, event)
        if isinstance(event, SubscriptionChanged):
            return await self._on_subscription_changed(session, event)
        if isinstance(event, InvoiceEvent):
            return self._on_invoice(event)
        raise UnknownEventKind(event.event_type)

    async def _on_checkout_completed(self, session: AsyncSession, event: CheckoutCompleted) -> ApplyResult:
        # The subscription row itself comes from customer.subscription.created
        if not event.customer_id and not event.email:
            logger.warning("checkout_completed_missing_identity", event_id=event.event_id)
            return ApplyResult(action="ignored")

        user_id = await self.resolver.resolve(session, event.customer_id, event.email)
        logger.info(
            "checkout_completed",
            user_id=user_id,
            customer_id=event.customer_id,
            subscription_id=event.subscription_id,
            session_id=event.session_id,
        )
        return ApplyResult(action="user_resolved", user_id=user_id, subscription_id=event.subscription_id)

    async def _on_subscription_changed(self, session: AsyncSession, event: SubscriptionChanged) -> ApplyResult:
        email = event.metadata.get("email")
        if not event.customer_id and not email:
            logger.error(
                "subscription_event_missing_customer",
                event_id=event.event_id,
                subscription_id=event.subscription_id,
            )
            raise InvalidPayloadError(
                f"Subscription {event.subscription_id} event carries no customer id or metadata email"
            )

        user_id = await self.resolver.resolve(session, event.customer_id, email)
        result = ApplyResult(action="subscription_upserted", user_id=user_id, subscription_id=event.subscription_id)

        lookup = self.catalog.plan_for(event.price_id)
        if not lookup.mapped:
            logger.warning(
                "unmapped_price",
                price_id=event.price_id,
                subscription_id=event.subscription_id,
                fallback_plan=lookup.plan,
            )
            result.business_events.append(BusinessEvent.UNMAPPED_PRICE)

        now = datetime.now(UTC)
        values = {
            "user_id": user_id,
            "external_customer_id": event.customer_id,
            "external_subscription_id": event.subscription_id,
            "external_price_id": event.price_id,
            "plan": lookup.plan,
            "status": event.status.value,
            "cancel_at_period_end": event.cancel_at_period_end,
            "current_period_end": event.current_period_end_ms,
            "created_at": now,
            "updated_at": now,
        }

        if supports_native_upsert(session):
            applied = await self._upsert(session, values, revive=event.is_deletion)
        else:
            applied = await self._upsert_fallback(session, values, revive=event.is_deletion)

        if not applied:
            logger.info(
                "subscription_terminal_event_ignored",
                subscription_id=event.subscription_id,
                event_type=event.event_type,
                status=event.status.value,
            )
            result.action = "ignored"
            return result

        logger.info(
            "subscription_upserted",
            subscription_id=event.subscription_id,
            user_id=user_id,
            status=event.status.value,
            plan=lookup.plan,
            event_type=event.event_type,
        )

        if event.is_deletion:
            result.action = "subscription_canceled"
            result.business_events.append(BusinessEvent.SUBSCRIPTION_CANCELED)
        elif event.event_type == EventKind.SUBSCRIPTION_CREATED and event.status in ENTITLED_STATUSES:
            result.business_events.append(BusinessEvent.SUBSCRIPTION_STARTED)
        return result

    def _on_invoice(self, event: InvoiceEvent) -> ApplyResult:
        # Payment failures escalate to past_due via customer.subscription.updated
        logger.info(
            "invoice_event_recorded",
            event_type=event.event_type,
            invoice_id=event.invoice_id,
            customer_id=event.customer_id,
            subscription_id=event.subscription_id,
            invoice_status=event.invoice_status,
            amount_due=event.amount_due,
        )
        return ApplyResult(action="recorded", subscription_id=event.subscription_id)

    async def _upsert(self, session: AsyncSession, values: dict, revive: bool) -> bool:
        """INSERT ... ON CONFLICT (external_subscription_id) DO UPDATE.

        Returns False when the existing row is canceled and the event may not revive it.
        """
        mutable = {
            key: values[key]
            for key in (
                "external_customer_id",
                "external_price_id",
                "plan",
                "status",
                "cancel_at_period_end",
                "current_period_end",
                "updated_at",
            )
        }
        stmt = upsert_insert(session, Subscription).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["external_subscription_id"],
            set_=mutable,
            where=None if revive else Subscription.status != SubscriptionStatus.CANCELED.value,
        ).returning(Subscription.id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def _upsert_fallback(self, session: AsyncSession, values: dict, revive: bool) -> bool:
        """Read-then-write upsert for dialects without ON CONFLICT; retries once on a unique violation."""
        for attempt in range(2):
            try:
                async with session.begin_nested():
                    existing = (
                        await session.execute(
                            select(Subscription)
                            .where(Subscription.external_subscription_id == values["external_subscription_id"])
                            .with_for_update()
                        )
                    ).scalar_one_or_none()
                    if existing is None:
                        session.add(Subscription(**values))
                        return True
                    if existing.status == SubscriptionStatus.CANCELED.value and not revive:
                        return False
                    for key, value in values.items():
                        if key not in ("user_id", "external_subscription_id", "created_at"):
                            setattr(existing, key, value)
                    return True
            except IntegrityError:
                if attempt == 1:
                    raise
                logger.info("subscription_upsert_retry", subscription_id=values["external_subscription_id"])
        return False
