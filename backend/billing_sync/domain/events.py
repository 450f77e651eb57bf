"""Typed billing events parsed from verified Stripe webhook payloads.

Each Stripe event type the engine understands maps to one frozen dataclass;
everything else becomes UnknownEvent. parse_event() is pure: no DB access,
no network.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from billing_sync.core.exceptions import InvalidPayloadError
from billing_sync.domain.subscriptions import SubscriptionStatus, normalize_status, seconds_to_millis


class EventKind(StrEnum):
    """Stripe event types with a defined effect on local state."""

    CHECKOUT_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"


INVOICE_PREFIX = "invoice."


@dataclass(frozen=True, kw_only=True)
class BillingEvent:
    event_id: str
    event_type: str
    created: int | None = None
    livemode: bool = False


@dataclass(frozen=True, kw_only=True)
class CheckoutCompleted(BillingEvent):
    session_id: str | None
    customer_id: str | None
    email: str | None
    subscription_id: str | None
    metadata: dict[str, str]


@dataclass(frozen=True, kw_only=True)
class SubscriptionChanged(BillingEvent):
    """Full current state of a subscription (created, updated, or deleted)."""

    subscription_id: str
    customer_id: str | None
    status: SubscriptionStatus
    price_id: str | None
    cancel_at_period_end: bool
    current_period_end_ms: int | None
    metadata: dict[str, str]

    @property
    def is_deletion(self) -> bool:
        return self.event_type == EventKind.SUBSCRIPTION_DELETED


@dataclass(frozen=True, kw_only=True)
class InvoiceEvent(BillingEvent):
    invoice_id: str | None
    customer_id: str | None
    subscription_id: str | None
    invoice_status: str | None
    amount_due: int | None


@dataclass(frozen=True, kw_only=True)
class UnknownEvent(BillingEvent):
    pass


def _object_id(value: Any) -> str | None:
    """Stripe references are either an ID string or an expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value or None


def _metadata(obj: dict) -> dict[str, str]:
    metadata = obj.get("metadata") or {}
    return {str(k): str(v) for k, v in metadata.items()} if isinstance(metadata, dict) else {}


def _first_item(subscription: dict) -> dict:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _parse_subscription(base: dict, obj: dict) -> SubscriptionChanged:
    subscription_id = obj.get("id")
    if not subscription_id:
        raise InvalidPayloadError("Subscription event without subscription id")

    item = _first_item(obj)
    price_id = _object_id(item.get("price")) or _object_id(obj.get("plan"))

    # Newer API versions moved current_period_end onto the subscription item
    period_end = obj.get("current_period_end")
    if period_end is None:
        period_end = item.get("current_period_end")

    status = normalize_status(obj.get("status"))
    if base["event_type"] == EventKind.SUBSCRIPTION_DELETED:
        status = SubscriptionStatus.CANCELED

    return SubscriptionChanged(
        **base,
        subscription_id=subscription_id,
        customer_id=_object_id(obj.get("customer")),
        status=status,
        price_id=price_id,
        cancel_at_period_end=bool(obj.get("cancel_at_period_end", False)),
        current_period_end_ms=seconds_to_millis(period_end),
        metadata=_metadata(obj),
    )


def _parse_checkout(base: dict, obj: dict) -> CheckoutCompleted:
    details = obj.get("customer_details") or {}
    metadata = _metadata(obj)
    email = details.get("email") or obj.get("customer_email") or metadata.get("email")
    return CheckoutCompleted(
        **base,
        session_id=obj.get("id"),
        customer_id=_object_id(obj.get("customer")),
        email=email,
        subscription_id=_object_id(obj.get("subscription")),
        metadata=metadata,
    )


def _parse_invoice(base: dict, obj: dict) -> InvoiceEvent:
    return InvoiceEvent(
        **base,
        invoice_id=obj.get("id"),
        customer_id=_object_id(obj.get("customer")),
        subscription_id=_object_id(obj.get("subscription")),
        invoice_status=obj.get("status"),
        amount_due=obj.get("amount_due"),
    )


def parse_event(payload: Any) -> BillingEvent:
    """Build a typed event from a decoded Stripe event payload.

    Raises:
        InvalidPayloadError: payload is not a Stripe event object
    """
    if not isinstance(payload, dict):
        raise InvalidPayloadError("Event payload must be a JSON object")

    event_id = payload.get("id")
    event_type = payload.get("type")
    if not event_id or not event_type:
        raise InvalidPayloadError("Event payload missing id or type")

    obj = (payload.get("data") or {}).get("object")
    if not isinstance(obj, dict):
        raise InvalidPayloadError("Event payload missing data.object")

    event_type = str(event_type)
    base = {
        "event_id": str(event_id),
        "event_type": event_type,
        "created": payload.get("created"),
        "livemode": bool(payload.get("livemode", False)),
    }

    if event_type == EventKind.CHECKOUT_COMPLETED:
        return _parse_checkout(base, obj)
    if event_type in (
        EventKind.SUBSCRIPTION_CREATED,
        EventKind.SUBSCRIPTION_UPDATED,
        EventKind.SUBSCRIPTION_DELETED,
    ):
        return _parse_subscription(base, obj)
    if event_type.startswith(INVOICE_PREFIX):
        return _parse_invoice(base, obj)
    return UnknownEvent(**base)
