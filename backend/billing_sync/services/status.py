"""StatusQueryService: read-only view of a user's current subscription."""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billing_sync.db.models.subscription import Subscription
from billing_sync.db.models.user import User
from billing_sync.domain.plans import FREE_PLAN
from billing_sync.domain.subscriptions import ENTITLED_STATUSES
from billing_sync.services.customers import normalize_email


@dataclass(frozen=True)
class SubscriptionStatusView:
    subscribed: bool
    plan: str
    status: str | None = None
    cancel_at_period_end: bool = False
    period_end: int | None = None  # epoch milliseconds


NOT_SUBSCRIBED = SubscriptionStatusView(subscribed=False, plan=FREE_PLAN)


class StatusQueryService:
    """Answers "is this user subscribed, to what, until when".

    The current subscription is the most recently created active/trialing
    row. A single SELECT; never writes, never locks.
    """

    async def status(
        self,
        session: AsyncSession,
        user_id: int | None = None,
        email: str | None = None,
    ) -> SubscriptionStatusView:
        stmt = (
            select(Subscription)
            .where(Subscription.status.in_([s.value for s in ENTITLED_STATUSES]))
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .limit(1)
        )
        if user_id is not None:
            stmt = stmt.where(Subscription.user_id == user_id)
        else:
            email = normalize_email(email)
            if not email:
                return NOT_SUBSCRIBED
            stmt = stmt.join(User, User.id == Subscription.user_id).where(User.email == email)

        current = (await session.execute(stmt)).scalar_one_or_none()
        if current is None:
            return NOT_SUBSCRIBED

        return SubscriptionStatusView(
            subscribed=True,
            plan=current.plan,
            status=current.status,
            cancel_at_period_end=current.cancel_at_period_end,
            period_end=current.current_period_end,
        )
