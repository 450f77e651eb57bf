"""Subscription model: one row per Stripe subscription ID."""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String

from billing_sync.db.base import Base


class Subscription(Base):
    """Local mirror of a Stripe subscription.

    Mutated only by SubscriptionStateMachine. Rows are never deleted; a
    cancelled subscription keeps its row with status "canceled".
    """

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    external_customer_id = Column(String(255), nullable=True)
    external_subscription_id = Column(String(255), unique=True, nullable=False)
    external_price_id = Column(String(255), nullable=True)
    plan = Column(String(50), nullable=False)
    status = Column(String(32), nullable=False, index=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)

    # Epoch milliseconds (Stripe sends seconds)
    current_period_end = Column(BigInteger, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
