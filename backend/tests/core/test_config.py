"""Tests for settings and startup validation."""

import pytest

from billing_sync.core.config import Settings, get_settings
from billing_sync.main import validate_billing_config

pytestmark = pytest.mark.unit


def test_plan_price_map_from_environment():
    assert get_settings().plan_price_map == {"pro": "price_pro", "enterprise": "price_enterprise"}


def test_extra_prices_parsed_from_json_env(monkeypatch):
    monkeypatch.setenv("STRIPE_EXTRA_PRICES", '{"team": "price_team"}')

    assert Settings().plan_price_map["team"] == "price_team"


def test_startup_validation_passes_when_configured():
    validate_billing_config()


def test_startup_validation_fails_fast_on_missing_price(monkeypatch):
    monkeypatch.setattr(get_settings(), "stripe_price_enterprise", "")

    with pytest.raises(RuntimeError, match="stripe_price_enterprise"):
        validate_billing_config()


def test_startup_validation_skipped_in_debug(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "debug", True)
    monkeypatch.setattr(settings, "stripe_webhook_secret", "")

    validate_billing_config()


@pytest.mark.parametrize(
    "key,expected",
    [("sk_live_abc", True), ("rk_live_abc", True), ("sk_test_abc", False), ("", None), ("whatever", None)],
)
def test_livemode_from_secret_key(key, expected):
    assert Settings(stripe_secret_key=key).stripe_livemode is expected
