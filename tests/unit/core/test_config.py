"""Unit tests for settings validation."""

from decimal import Decimal

from pydantic import ValidationError
import pytest

from moveup.core.config import Settings


def test_defaults_build_standard_fee_schedule():
    settings = Settings(_env_file=None)
    schedule = settings.fee_schedule()
    assert schedule.rate == Decimal("0.015")
    assert schedule.fixed_fee_cents == 25


def test_fee_schedule_from_overrides():
    settings = Settings(
        _env_file=None, platform_fee_rate=Decimal("0.02"), platform_fee_fixed=Decimal("0.30")
    )
    schedule = settings.fee_schedule()
    assert schedule.rate == Decimal("0.02")
    assert schedule.fixed_fee_cents == 30


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("MOVEUP_CURRENCY", "usd")
    monkeypatch.setenv("MOVEUP_QR_VALIDATION_EARLY_MINUTES", "15")
    settings = Settings(_env_file=None)
    assert settings.currency == "USD"
    assert settings.qr_validation_early_minutes == 15


@pytest.mark.parametrize("rate", ["-0.01", "1", "1.2"])
def test_rejects_bad_fee_rate(rate):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, platform_fee_rate=Decimal(rate))


def test_rejects_negative_fixed_fee():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, platform_fee_fixed=Decimal("-0.25"))


def test_stripe_gateway_requires_key():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, payment_gateway="stripe")


def test_stripe_gateway_with_key():
    settings = Settings(_env_file=None, payment_gateway="stripe", stripe_secret_key="sk_test_123")
    assert settings.stripe_secret_key.get_secret_value() == "sk_test_123"
