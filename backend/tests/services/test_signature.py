"""Tests for SignatureVerifier against real Stripe-Signature headers."""

import time

import pytest

from billing_sync.core.exceptions import AuthenticationError, InvalidPayloadError
from billing_sync.domain.events import SubscriptionChanged
from billing_sync.services.signature import SignatureVerifier

pytestmark = pytest.mark.unit

SECRET = "whsec_test_secret"


@pytest.fixture
def verifier() -> SignatureVerifier:
    return SignatureVerifier(SECRET, tolerance=300)


def test_valid_signature_returns_typed_event(verifier, make_event, make_subscription, encode_event, sign_payload):
    body = encode_event(make_event("evt_1", "customer.subscription.created", make_subscription()))

    event = verifier.verify(body, sign_payload(body))

    assert isinstance(event, SubscriptionChanged)
    assert event.event_id == "evt_1"


def test_missing_header_rejected(verifier, encode_event, make_event):
    body = encode_event(make_event("evt_1", "customer.created", {"id": "cus_1"}))

    with pytest.raises(AuthenticationError):
        verifier.verify(body, None)


def test_wrong_secret_rejected(verifier, make_event, encode_event, sign_payload):
    body = encode_event(make_event("evt_1", "customer.created", {"id": "cus_1"}))

    with pytest.raises(AuthenticationError):
        verifier.verify(body, sign_payload(body, secret="whsec_other"))


def test_signature_covers_literal_bytes(verifier, make_event, encode_event, sign_payload):
    body = encode_event(make_event("evt_1", "customer.created", {"id": "cus_1"}))
    header = sign_payload(body)
    # Same JSON document, different bytes
    reformatted = body.replace(b",", b", ")

    with pytest.raises(AuthenticationError):
        verifier.verify(reformatted, header)


def test_stale_timestamp_rejected(verifier, make_event, encode_event, sign_payload):
    body = encode_event(make_event("evt_1", "customer.created", {"id": "cus_1"}))
    header = sign_payload(body, timestamp=int(time.time()) - 3600)

    with pytest.raises(AuthenticationError):
        verifier.verify(body, header)


def test_authentic_non_json_body_is_invalid_payload(verifier, sign_payload):
    body = b"not json"

    with pytest.raises(InvalidPayloadError):
        verifier.verify(body, sign_payload(body))


def test_authentic_body_without_event_fields_is_invalid_payload(verifier, sign_payload):
    body = b'{"hello":"world"}'

    with pytest.raises(InvalidPayloadError):
        verifier.verify(body, sign_payload(body))


def test_event_from_other_mode_rejected(make_event, encode_event, sign_payload):
    payload = make_event("evt_live", "customer.created", {"id": "cus_1"})
    payload["livemode"] = True
    body = encode_event(payload)

    with pytest.raises(InvalidPayloadError):
        SignatureVerifier(SECRET, expected_livemode=False).verify(body, sign_payload(body))


def test_mode_not_checked_when_unknown(make_event, encode_event, sign_payload):
    payload = make_event("evt_live", "customer.created", {"id": "cus_1"})
    payload["livemode"] = True
    body = encode_event(payload)

    event = SignatureVerifier(SECRET, expected_livemode=None).verify(body, sign_payload(body))

    assert event.livemode is True
