"""BillingClient: thin async wrapper over the Stripe SDK.

Constructed per request (see api.deps) with its own API key; the key is
passed on every call instead of being set on the stripe module.
"""

import stripe
import structlog

from billing_sync.core.exceptions import ConfigurationError, UpstreamError

logger = structlog.get_logger(__name__)


class BillingClient:
    def __init__(self, api_key: str):
        self.api_key = api_key

    def _require_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("Stripe secret key is not configured")
        return self.api_key

    async def create_customer(self, email: str | None, metadata: dict[str, str]) -> str:
        """Create a Stripe customer and return its ID."""
        api_key = self._require_key()
        try:
            customer = await stripe.Customer.create_async(
                api_key=api_key,
                email=email,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error("stripe_customer_create_failed", error=str(e), error_type=type(e).__name__)
            raise UpstreamError(f"Stripe customer creation failed: {e.user_message or e}") from e
        return customer.id

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> str:
        """Create a subscription-mode Checkout Session and return its hosted URL."""
        api_key = self._require_key()
        try:
            session = await stripe.checkout.Session.create_async(
                api_key=api_key,
                customer=customer_id,
                mode="subscription",
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=success_url,
                cancel_url=cancel_url,
                client_reference_id=metadata.get("user_id"),
                metadata=metadata,
                subscription_data={"metadata": metadata},
            )
        except stripe.StripeError as e:
            logger.error("stripe_checkout_create_failed", error=str(e), error_type=type(e).__name__)
            raise UpstreamError(f"Stripe checkout session creation failed: {e.user_message or e}") from e
        return session.url

    async def list_subscriptions(self, customer_id: str) -> list[dict]:
        """Return every subscription of a customer (any status) as plain dicts."""
        api_key = self._require_key()
        try:
            page = await stripe.Subscription.list_async(
                api_key=api_key,
                customer=customer_id,
                status="all",
                limit=100,
            )
            # Follows has_more across pages; fetches use the same api_key
            subscriptions = [subscription.to_dict() async for subscription in page.auto_paging_iter()]
        except stripe.StripeError as e:
            logger.error("stripe_subscription_list_failed", error=str(e), customer_id=customer_id)
            raise UpstreamError(f"Stripe subscription listing failed: {e.user_message or e}") from e
        return subscriptions
