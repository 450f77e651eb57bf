"""Re-export all models so Base.metadata sees them."""

from billing_sync.db.models.processed_event import ProcessedEvent
from billing_sync.db.models.subscription import Subscription
from billing_sync.db.models.user import User

__all__ = [
    "ProcessedEvent",
    "Subscription",
    "User",
]
