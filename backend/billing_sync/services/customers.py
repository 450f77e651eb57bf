"""CustomerResolver: maps Stripe customers and emails to local users."""

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from billing_sync.core.exceptions import CustomerConflict, InvalidPayloadError
from billing_sync.db.dialects import supports_native_upsert, upsert_insert
from billing_sync.db.models.user import User

logger = structlog.get_logger(__name__)


def normalize_email(email: str | None) -> str | None:
    if not email:
        return None
    email = email.strip().lower()
    return email or None


class CustomerResolver:
    """Sole writer of the user <-> external customer ID binding.

    Lookup order is external customer ID, then email; unknown identities
    create a user with whatever fields are available. Every write is a
    conditional statement so concurrent requests converge on one user row.
    """

    async def resolve(
        self,
        session: AsyncSession,
        external_customer_id: str | None,
        email: str | None,
    ) -> int:
        """Return the local user ID for a Stripe customer and/or email.

        Raises:
            InvalidPayloadError: neither identifier supplied
            CustomerConflict: the customer ID is bound, or the email's user is
                bound, to a different party
        """
        email = normalize_email(email)
        if not external_customer_id and not email:
            raise InvalidPayloadError("Customer resolution needs a customer id or an email")

        user_id = await self._lookup(session, external_customer_id, email)
        if user_id is not None:
            return user_id

        user_id = await self._create(session, external_customer_id, email)
        if user_id is not None:
            logger.info("user_created", user_id=user_id, customer_id=external_customer_id)
            return user_id

        # Lost a creation race; the winner's row is committed and visible now
        user_id = await self._lookup(session, external_customer_id, email)
        if user_id is None:
            raise CustomerConflict(
                external_customer_id,
                None,
                "User creation conflicted but no matching user was found",
            )
        return user_id

    async def bind(self, session: AsyncSession, user_id: int, external_customer_id: str) -> str:
        """Attach a Stripe customer ID to a user that has none (first write wins).

        Returns the customer ID bound to the user after the call, which is the
        existing one if another writer got there first.

        Raises:
            CustomerConflict: the customer ID already belongs to another user
        """
        stmt = (
            update(User)
            .where(User.id == user_id, User.external_customer_id.is_(None))
            .values(external_customer_id=external_customer_id)
            .execution_options(synchronize_session=False)
        )
        try:
            async with session.begin_nested():
                result = await session.execute(stmt)
        except IntegrityError:
            owner = await self._find(session, User.external_customer_id == external_customer_id)
            logger.error(
                "customer_conflict",
                customer_id=external_customer_id,
                user_id=user_id,
                bound_user_id=owner.id if owner else None,
            )
            raise CustomerConflict(
                external_customer_id,
                user_id,
                f"Customer {external_customer_id} is already bound to another user",
            ) from None

        if result.rowcount == 1:
            logger.info("customer_bound", user_id=user_id, customer_id=external_customer_id)
            return external_customer_id

        user = await self._find(session, User.id == user_id)
        if user is None:
            raise InvalidPayloadError(f"Unknown user {user_id}")
        return user.external_customer_id

    async def get_user(
        self,
        session: AsyncSession,
        user_id: int | None = None,
        email: str | None = None,
    ) -> User | None:
        if user_id is not None:
            return await self._find(session, User.id == user_id)
        email = normalize_email(email)
        if email:
            return await self._find(session, User.email == email)
        return None

    # ── internals ──────────────────────────────────────────────────

    async def _find(self, session: AsyncSession, criterion) -> User | None:
        result = await session.execute(
            select(User).where(criterion).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _lookup(
        self,
        session: AsyncSession,
        external_customer_id: str | None,
        email: str | None,
    ) -> int | None:
        if external_customer_id:
            user = await self._find(session, User.external_customer_id == external_customer_id)
            if user is not None:
                if email and user.email is None:
                    await self._fill_email(session, user.id, email)
                return user.id

        if email:
            user = await self._find(session, User.email == email)
            if user is not None:
                if external_customer_id:
                    bound = await self.bind(session, user.id, external_customer_id)
                    if bound != external_customer_id:
                        logger.error(
                            "customer_conflict",
                            customer_id=external_customer_id,
                            user_id=user.id,
                            bound_customer_id=bound,
                        )
                        raise CustomerConflict(
                            external_customer_id,
                            user.id,
                            f"User {user.id} is already bound to customer {bound}",
                        )
                return user.id

        return None

    async def _create(
        self,
        session: AsyncSession,
        external_customer_id: str | None,
        email: str | None,
    ) -> int | None:
        """Insert a user; returns None when a concurrent writer created it first."""
        if supports_native_upsert(session):
            stmt = (
                upsert_insert(session, User)
                .values(email=email, external_customer_id=external_customer_id)
                .on_conflict_do_nothing()
                .returning(User.id)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

        user = User(email=email, external_customer_id=external_customer_id)
        try:
            async with session.begin_nested():
                session.add(user)
        except IntegrityError:
            return None
        return user.id

    async def _fill_email(self, session: AsyncSession, user_id: int, email: str) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id, User.email.is_(None))
            .values(email=email)
            .execution_options(synchronize_session=False)
        )
        try:
            async with session.begin_nested():
                await session.execute(stmt)
        except IntegrityError:
            logger.warning("customer_email_owned_by_other_user", user_id=user_id)
