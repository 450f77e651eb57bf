"""CheckoutOrchestrator: starts a Stripe Checkout purchase for a local user."""

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from billing_sync.core.exceptions import ConfigurationError, InvalidPayloadError
from billing_sync.domain.plans import PlanCatalog
from billing_sync.metrics.cloudwatch import BusinessEvent, emit_business_event
from billing_sync.services.billing_client import BillingClient
from billing_sync.services.customers import CustomerResolver

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckoutIdentity:
    user_id: int | None = None
    email: str | None = None


class CheckoutOrchestrator:
    """Resolves the buyer and their Stripe customer, then opens a Checkout Session.

    The customer is created (once) before the session so repeated checkout
    attempts by the same user reuse one Stripe customer. Stripe failures are
    surfaced as UpstreamError without retrying; retry is the caller's choice.
    """

    def __init__(
        self,
        client: BillingClient,
        catalog: PlanCatalog,
        resolver: CustomerResolver,
        session_factory: async_sessionmaker[AsyncSession],
        success_url: str,
        cancel_url: str,
    ):
        self.client = client
        self.catalog = catalog
        self.resolver = resolver
        self.session_factory = session_factory
        self.success_url = success_url
        self.cancel_url = cancel_url

    async def create_session(self, identity: CheckoutIdentity, plan_id: str) -> str:
        """Return the Checkout redirect URL for ``plan_id``.

        Raises:
            ConfigurationError: plan has no configured price ID
            InvalidPayloadError: identity missing or unknown user ID
            UpstreamError: Stripe API call failed
        """
        price_id = self.catalog.price_for(plan_id)
        if not price_id:
            logger.error("checkout_plan_not_configured", plan_id=plan_id)
            raise ConfigurationError(f"No Stripe price configured for plan '{plan_id}'")

        user_id, email, customer_id = await self._ensure_customer(identity)

        metadata = {"user_id": str(user_id), "plan_id": plan_id}
        if email:
            metadata["email"] = email

        url = await self.client.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            success_url=self.success_url,
            cancel_url=self.cancel_url,
            metadata=metadata,
        )
        logger.info("checkout_session_created", user_id=user_id, plan_id=plan_id, customer_id=customer_id)
        await emit_business_event(BusinessEvent.CHECKOUT_SESSION_CREATED, user_id=user_id)
        return url

    async def _ensure_customer(self, identity: CheckoutIdentity) -> tuple[int, str | None, str]:
        async with self.session_factory() as session:
            async with session.begin():
                if identity.user_id is not None:
                    user = await self.resolver.get_user(session, user_id=identity.user_id)
                    if user is None:
                        raise InvalidPayloadError(f"Unknown user {identity.user_id}")
                elif identity.email:
                    resolved_id = await self.resolver.resolve(session, None, identity.email)
                    user = await self.resolver.get_user(session, user_id=resolved_id)
                else:
                    raise InvalidPayloadError("Checkout identity needs a user id or an email")
                user_id, email, customer_id = user.id, user.email, user.external_customer_id

        if customer_id:
            return user_id, email, customer_id

        # Stripe call happens outside any open transaction
        created_id = await self.client.create_customer(email=email, metadata={"user_id": str(user_id)})

        async with self.session_factory() as session:
            async with session.begin():
                bound_id = await self.resolver.bind(session, user_id, created_id)

        if bound_id != created_id:
            logger.warning(
                "checkout_customer_race_lost",
                user_id=user_id,
                orphan_customer_id=created_id,
                customer_id=bound_id,
            )
        return user_id, email, bound_id
