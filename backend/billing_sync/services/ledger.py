"""IdempotencyLedger: gates webhook processing on first sight of an event ID."""

from enum import StrEnum

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from billing_sync.db.dialects import supports_native_upsert, upsert_insert
from billing_sync.db.models.processed_event import ProcessedEvent

logger = structlog.get_logger(__name__)


class Admission(StrEnum):
    ADMITTED = "admitted"
    ALREADY_PROCESSED = "already_processed"


class IdempotencyLedger:
    """Append-only set of processed Stripe event IDs.

    admit() is a single atomic check-and-insert on the event_id unique key,
    so two concurrent deliveries of the same event resolve to exactly one
    ADMITTED. The insert joins the caller's transaction: if the caller rolls
    back, the event is no longer recorded and a provider retry is admitted again.
    """

    async def admit(self, session: AsyncSession, event_id: str, event_type: str) -> Admission:
        if supports_native_upsert(session):
            stmt = (
                upsert_insert(session, ProcessedEvent)
                .values(event_id=event_id, event_type=event_type)
                .on_conflict_do_nothing(index_elements=["event_id"])
                .returning(ProcessedEvent.event_id)
            )
            result = await session.execute(stmt)
            admitted = result.scalar_one_or_none() is not None
        else:
            admitted = await self._admit_with_savepoint(session, event_id, event_type)

        if not admitted:
            logger.info("stripe_duplicate_event_ignored", event_id=event_id, event_type=event_type)
            return Admission.ALREADY_PROCESSED
        return Admission.ADMITTED

    async def _admit_with_savepoint(self, session: AsyncSession, event_id: str, event_type: str) -> bool:
        try:
            async with session.begin_nested():
                session.add(ProcessedEvent(event_id=event_id, event_type=event_type))
            return True
        except IntegrityError:
            return False
