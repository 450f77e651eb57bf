"""ProcessedEvent model for webhook idempotency tracking."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, String

from billing_sync.db.base import Base


class ProcessedEvent(Base):
    """Append-only ledger of Stripe event IDs that have been admitted for processing."""

    __tablename__ = "processed_events"

    event_id = Column(String(255), primary_key=True)
    event_type = Column(String(255), nullable=False)
    processed_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
