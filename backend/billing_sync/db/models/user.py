"""User model: local identity bound to at most one Stripe customer."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Integer, String

from billing_sync.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(320), unique=True, nullable=True, index=True)

    # Written only by CustomerResolver; first write wins
    external_customer_id = Column(String(255), unique=True, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
