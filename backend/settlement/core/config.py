# backend/settlement/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


def secret_or_plain(value: SecretStr | str | None) -> str:
    """Return the raw string behind a SecretStr (or plain str)."""
    if value is None:
        return ""
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return str(value)


class Settings(BaseSettings):
    """Runtime configuration for the settlement engine."""

    environment: str = Field(default="development", description="Deployment environment")
    is_testing: bool = Field(default=False, description="Set by the test suite")

    database_url: str = Field(
        default="sqlite:///./settlement.db",
        description="SQLAlchemy database URL",
    )
    redis_url: Optional[str] = Field(default="redis://localhost:6379", description="Celery broker")

    # Trigger authentication
    cron_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Shared secret expected in the scheduler's bearer header",
    )
    dev_tools_token: SecretStr = Field(
        default=SecretStr(""),
        description="Token accepted by the manual trigger endpoints outside production",
    )

    # Payment processor
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_currency: str = Field(default="nok", description="Default currency for payments")
    platform_fee_percentage: float = Field(
        default=0.20, description="Platform fee as a fraction of the final amount (0.20 = 20%)"
    )

    # Email
    email_provider: Literal["console", "resend"] = Field(
        default="console",
        alias="EMAIL_PROVIDER",
        description="Email provider name",
    )
    resend_api_key: str | None = Field(
        default=None,
        alias="RESEND_API_KEY",
        description="API key for Resend provider (optional)",
    )
    from_email: str = "Nabostylisten <no-reply@nabostylisten.no>"
    default_service_name: str = "Skjønnhetstjeneste"

    # Batch windows
    capture_window_start_hours: int = Field(
        default=24, description="Capture bookings starting at least this many hours from now"
    )
    capture_window_end_hours: int = Field(
        default=27, description="...and strictly fewer than this many hours from now"
    )
    payout_settle_delay_hours: int = Field(
        default=1, description="Hours after a booking ends before its payout is released"
    )
    auto_complete_grace_hours: int = Field(
        default=1, description="Hours after a booking ends before it is auto-completed"
    )

    # Monitoring
    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN for cron monitors")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("platform_fee_percentage")
    @classmethod
    def _validate_fee_percentage(cls, value: float) -> float:
        if not 0 <= value <= 1:
            raise ValueError("platform_fee_percentage must be between 0 and 1")
        return value

    @field_validator("capture_window_end_hours")
    @classmethod
    def _validate_capture_window(cls, value: int, info) -> int:
        start = info.data.get("capture_window_start_hours")
        if start is not None and value <= start:
            raise ValueError("capture_window_end_hours must be greater than capture_window_start_hours")
        return value

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
