"""SignatureVerifier: authenticates raw Stripe webhook bodies."""

import json

import stripe
import structlog

from billing_sync.core.exceptions import AuthenticationError, InvalidPayloadError
from billing_sync.domain.events import BillingEvent, parse_event

logger = structlog.get_logger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


class SignatureVerifier:
    """Verifies the Stripe-Signature header against the literal request body.

    The HMAC is computed over the raw bytes as received; the body is only
    decoded after the signature checks out, never re-serialized.
    """

    def __init__(
        self,
        webhook_secret: str,
        tolerance: int = DEFAULT_TOLERANCE_SECONDS,
        expected_livemode: bool | None = None,
    ):
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance
        self.expected_livemode = expected_livemode

    def verify(self, raw_body: bytes, signature_header: str | None) -> BillingEvent:
        """Return the typed event for an authentic body.

        Raises:
            AuthenticationError: header missing, signature mismatch, or stale timestamp
            InvalidPayloadError: authentic body that is not a Stripe event, or an
                event from the other mode (test vs live) than the API key
        """
        if not signature_header:
            raise AuthenticationError("Missing Stripe-Signature header")

        try:
            payload = raw_body.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidPayloadError("Webhook body is not valid UTF-8") from None

        try:
            stripe.WebhookSignature.verify_header(
                payload,
                signature_header,
                self.webhook_secret,
                self.tolerance,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("stripe_signature_rejected", reason=str(e))
            raise AuthenticationError("Invalid signature") from e

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            raise InvalidPayloadError("Webhook body is not valid JSON") from None

        event = parse_event(data)
        if self.expected_livemode is not None and event.livemode != self.expected_livemode:
            logger.error(
                "stripe_event_mode_mismatch",
                event_id=event.event_id,
                event_livemode=event.livemode,
                expected_livemode=self.expected_livemode,
            )
            raise InvalidPayloadError(
                f"Event {event.event_id} has livemode={event.livemode}; this endpoint expects "
                f"livemode={self.expected_livemode}"
            )
        return event
