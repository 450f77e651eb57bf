"""Tests for the structlog processors."""

import pytest
import structlog

from billing_sync.core.logging import bind_event_context, clear_event_context, redact_secrets

pytestmark = pytest.mark.unit


def test_secrets_are_redacted():
    event = redact_secrets(None, "info", {"event": "x", "api_key": "sk_live_123", "user_id": 7})

    assert event["api_key"] == "[redacted]"
    assert event["user_id"] == 7


def test_event_context_bound_and_cleared():
    bind_event_context("evt_1", "customer.subscription.created")
    assert structlog.contextvars.get_contextvars()["stripe_event_id"] == "evt_1"

    clear_event_context()
    assert "stripe_event_id" not in structlog.contextvars.get_contextvars()
