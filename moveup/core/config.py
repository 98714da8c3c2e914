# moveup/core/config.py
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_CURRENCY

if TYPE_CHECKING:
    from ..domain.fees import FeeSchedule

logger = logging.getLogger(__name__)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development", description="Deployment environment name"
    )
    log_level: str = Field(default="INFO", description="Root log level")

    database_url: str = Field(
        default="sqlite:///./moveup.db",
        description="SQLAlchemy database URL",
    )
    sql_echo: bool = Field(default=False, description="Echo SQL statements to the log")

    currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=3)

    # Stripe standard EU pricing: 1.5% + 0.25 per transaction
    platform_fee_rate: Decimal = Field(
        default=Decimal("0.015"), description="Percentage component of the platform fee"
    )
    platform_fee_fixed: Decimal = Field(
        default=Decimal("0.25"), description="Fixed platform fee per lesson in currency units"
    )

    qr_validation_early_minutes: int = Field(
        default=0,
        ge=0,
        le=120,
        description="Minutes before the scheduled start a QR scan is accepted",
    )

    lock_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Max wait for a per-entity lock"
    )
    lock_ttl_seconds: int = Field(
        default=90, gt=0, description="Expiry of distributed entity locks held in Redis"
    )
    redis_url: Optional[str] = Field(
        default=None, description="Redis URL for cross-process entity locks (optional)"
    )

    payment_gateway: Literal["fake", "stripe"] = Field(
        default="fake", description="Which payment gateway adapter to wire in"
    )
    stripe_secret_key: Optional[SecretStr] = Field(default=None)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        env_prefix="MOVEUP_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("platform_fee_rate")
    @classmethod
    def _validate_fee_rate(cls, value: Decimal) -> Decimal:
        if value < 0 or value >= 1:
            raise ValueError("platform_fee_rate must be in [0, 1)")
        return value

    @field_validator("platform_fee_fixed")
    @classmethod
    def _validate_fee_fixed(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("platform_fee_fixed must be non-negative")
        return value

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def _require_stripe_key(self) -> "Settings":
        if self.payment_gateway == "stripe" and not self.stripe_secret_key:
            raise ValueError("stripe_secret_key is required when payment_gateway=stripe")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def fee_schedule(self) -> "FeeSchedule":
        """Build the platform fee schedule from configuration."""
        from ..domain.fees import FeeSchedule, to_cents

        return FeeSchedule(
            rate=self.platform_fee_rate, fixed_fee_cents=to_cents(self.platform_fee_fixed)
        )


settings = Settings()
logger.info(
    "[CONFIG] environment=%s gateway=%s fee=%s+%s",
    settings.environment,
    settings.payment_gateway,
    settings.platform_fee_rate,
    settings.platform_fee_fixed,
)
