"""Subscription status rules.

Pure domain functions. No DB access, fully deterministic.
"""

from enum import StrEnum

import structlog

logger = structlog.get_logger(__name__)


class SubscriptionStatus(StrEnum):
    """Canonical subscription lifecycle states.

    incomplete -> trialing | active -> past_due <-> active -> canceled
    """

    INCOMPLETE = "incomplete"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


# Statuses that count as "subscribed" for status queries
ENTITLED_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})

# canceled is terminal for a subscription ID; a new ID starts a fresh instance
TERMINAL_STATUSES = frozenset({SubscriptionStatus.CANCELED})

# Stripe statuses outside the canonical set
_PROVIDER_ALIASES = {
    "unpaid": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.PAST_DUE,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}


def normalize_status(raw: str | None) -> SubscriptionStatus:
    """Map a Stripe subscription status onto the canonical enumeration.

    Unrecognised values map to INCOMPLETE so they never grant access.
    """
    if raw is None:
        return SubscriptionStatus.INCOMPLETE
    try:
        return SubscriptionStatus(raw)
    except ValueError:
        pass
    if raw in _PROVIDER_ALIASES:
        return _PROVIDER_ALIASES[raw]
    logger.warning("subscription_status_unrecognized", status=raw)
    return SubscriptionStatus.INCOMPLETE


def seconds_to_millis(seconds: int | float | None) -> int | None:
    """Convert a Stripe epoch-seconds timestamp to epoch milliseconds."""
    if seconds is None:
        return None
    return int(seconds) * 1000
