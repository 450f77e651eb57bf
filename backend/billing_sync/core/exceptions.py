class BillingSyncError(Exception):
    """Base exception for the billing sync engine.

    Carries the HTTP status and machine-readable code the API layer renders.
    """

    status_code: int = 500
    code: str = "billing_sync_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthenticationError(BillingSyncError):
    """Raised when a webhook signature is missing, invalid, or outside the tolerance window."""

    status_code = 400
    code = "invalid_signature"


class InvalidPayloadError(BillingSyncError):
    """Raised when a webhook body or request carries no usable data."""

    status_code = 400
    code = "invalid_payload"


class UnknownEventKind(BillingSyncError):
    """Raised for event types the engine does not act on. Acknowledged, never surfaced."""

    status_code = 200
    code = "unknown_event_kind"

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"Unhandled event type '{event_type}'")


class CustomerConflict(BillingSyncError):
    """Raised when an external customer ID would be bound to a second user."""

    status_code = 409
    code = "customer_conflict"

    def __init__(self, external_customer_id: str | None, user_id: int | None, message: str):
        self.external_customer_id = external_customer_id
        self.user_id = user_id
        super().__init__(message)


class ConfigurationError(BillingSyncError):
    """Raised when a plan has no configured Stripe price ID."""

    status_code = 400
    code = "configuration_error"


class UpstreamError(BillingSyncError):
    """Raised when a Stripe API call fails. Not retried internally."""

    status_code = 424
    code = "upstream_error"
