# backend/homebridge/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

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


class Settings(BaseSettings):
    """Application settings resolved from the environment and backend/.env."""

    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(
        default="sqlite:///./homebridge.db",
        alias="DATABASE_URL",
        description="SQLAlchemy URL; PostgreSQL in deployed environments",
    )
    sql_echo: bool = Field(default=False, alias="SQL_ECHO")

    # Bearer token verification (issuance lives in the auth service)
    secret_key: SecretStr = Field(default=SecretStr("change-me"), alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Stripe Configuration
    stripe_publishable_key: str = Field(
        default="", description="Stripe publishable key for frontend"
    )
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Platform events webhook secret",
    )
    stripe_webhook_secret_connect: SecretStr = Field(
        default=SecretStr(""),
        description="Connect events webhook secret",
    )
    stripe_currency: str = Field(default="usd", description="Default currency for payments")
    stripe_timeout_seconds: int = Field(default=8, ge=1)

    # Fees
    student_app_fee_cents: int = Field(
        default=2500, ge=0, description="Application fee when a booking carries no override"
    )
    agent_onboarding_fee_cents: int = Field(default=5000, ge=0)
    payout_fee_flat_cents: int = Field(default=0, ge=0)
    payout_fee_percentage: float = Field(
        default=0.0, ge=0, le=100, description="Payout fee percentage (2.5 = 2.5%)"
    )

    # Email settings
    email_enabled: bool = Field(default=True, description="Flag to enable/disable email sending")
    resend_api_key: str | None = Field(
        default=None,
        alias="RESEND_API_KEY",
        description="API key for Resend provider (optional)",
    )
    from_email: str = "HomeBridge <no-reply@homebridge.app>"
    admin_email: str = Field(default="admin@homebridge.app", alias="ADMIN_EMAIL")

    # Frontend URL used for Checkout redirects and email links
    frontend_url: str = "http://localhost:3000"

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("stripe_currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return (value or "usd").strip().lower()

    @field_validator("frontend_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key.get_secret_value())

    @property
    def webhook_secrets(self) -> list[str]:
        """Build list of webhook secrets to try in order."""
        secrets = []
        for secret in (self.stripe_webhook_secret, self.stripe_webhook_secret_connect):
            secret_str = secret.get_secret_value() if secret else ""
            if secret_str:
                secrets.append(secret_str)
        return secrets


settings = Settings()
