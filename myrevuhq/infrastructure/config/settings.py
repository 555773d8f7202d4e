"""
Settings Module - Centralized Configuration Management
=======================================================

ARCHITECTURAL DECISION:
- All configuration is loaded from environment variables (no hardcoded secrets)
- Settings are immutable dataclasses, grouped per external service
- Single source of truth for all configurable values

EXTENSIBILITY:
- To add a provider: add a frozen settings group and hang it off Settings
- Tests build Settings(...) directly instead of touching the environment
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv

# Load .env file if present (development convenience)
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class AppSettings:
    """Web server, cron and scheduler settings."""

    environment: str = field(default_factory=lambda: os.getenv("APP_ENV", "development"))
    frontend_url: str = field(default_factory=lambda: os.getenv("FRONTEND_URL", ""))
    public_base_url: str = "https://myrevuhq.com"
    cron_secret: str = field(default_factory=lambda: os.getenv("CRON_SECRET", ""))
    database_file: Path = field(
        default_factory=lambda: Path(os.getenv("DATABASE_FILE", "myrevuhq.db"))
    )

    # Scheduled SMS dispatcher
    scheduler_batch_size: int = field(default_factory=lambda: _env_int("SCHEDULER_BATCH_SIZE", 50))
    scheduler_interval_seconds: int = field(
        default_factory=lambda: _env_int("SCHEDULER_INTERVAL_SECONDS", 60)
    )
    scheduler_max_workers: int = field(
        default_factory=lambda: _env_int("SCHEDULER_MAX_WORKERS", 10)
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cors_origin(self) -> str:
        return self.frontend_url or "http://localhost:5173"

    @property
    def callback_base_url(self) -> str:
        """Base URL Twilio posts delivery status updates to."""
        return (self.frontend_url or self.public_base_url).rstrip("/")


@dataclass(frozen=True)
class SupabaseSettings:
    """Hosted auth provider settings (tokens are verified server side)."""

    url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    service_role_key: str = field(
        default_factory=lambda: os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
    )
    timeout_seconds: int = 10


@dataclass(frozen=True)
class TwilioSettings:
    """SMS provider settings."""

    # "twilio" sends for real; "console" only logs the payload
    backend: str = field(default_factory=lambda: os.getenv("SMS_BACKEND", "twilio"))
    account_sid: str = field(default_factory=lambda: os.getenv("TWILIO_ACCOUNT_SID", ""))
    auth_token: str = field(default_factory=lambda: os.getenv("TWILIO_AUTH_TOKEN", ""))
    phone_number: str = field(default_factory=lambda: os.getenv("TWILIO_PHONE_NUMBER", ""))
    alphanumeric_sender_id: str = field(
        default_factory=lambda: os.getenv("TWILIO_ALPHANUMERIC_SENDER_ID", "")
    )
    timeout_seconds: int = 15

    @property
    def sender(self) -> str:
        return self.alphanumeric_sender_id or self.phone_number or "myrevuhq"


@dataclass(frozen=True)
class StripeSettings:
    """Payment provider settings."""

    secret_key: str = field(default_factory=lambda: os.getenv("STRIPE_SECRET_KEY", ""))
    webhook_secret: str = field(default_factory=lambda: os.getenv("STRIPE_WEBHOOK_SECRET", ""))
    default_price_id: str = field(default_factory=lambda: os.getenv("STRIPE_PRICE_ID", ""))
    price_ids: Dict[str, str] = field(
        default_factory=lambda: {
            "GBP": os.getenv("STRIPE_PRICE_ID_GBP", ""),
            "EUR": os.getenv("STRIPE_PRICE_ID_EUR", ""),
            "USD": os.getenv("STRIPE_PRICE_ID_USD", ""),
        }
    )
    # TESTING ONLY: accept webhook events whose signature cannot be verified
    allow_unverified_webhooks: bool = field(
        default_factory=lambda: _env_bool("ALLOW_UNVERIFIED_WEBHOOKS")
    )
    webhook_tolerance_seconds: int = 300

    def price_id_for(self, currency: str) -> str:
        """Price id for a currency, falling back to the default price."""
        return self.price_ids.get(currency.upper(), "") or self.default_price_id


@dataclass(frozen=True)
class EmailSettings:
    """Transactional email (admin notifications) settings."""

    resend_api_key: str = field(default_factory=lambda: os.getenv("RESEND_API_KEY", ""))
    from_email: str = field(
        default_factory=lambda: os.getenv(
            "RESEND_FROM_EMAIL", "MyRevuHQ <onboarding@resend.dev>"
        )
    )
    admin_email: str = field(
        default_factory=lambda: os.getenv("ADMIN_EMAIL", "myrevuhq@gmail.com")
    )
    timeout_seconds: int = 10


@dataclass(frozen=True)
class Settings:
    """
    Root settings container - Single source of truth for all configuration.

    Usage:
        from myrevuhq.infrastructure.config import get_settings
        settings = get_settings()
        print(settings.twilio.sender)
    """

    app: AppSettings = field(default_factory=AppSettings)
    supabase: SupabaseSettings = field(default_factory=SupabaseSettings)
    twilio: TwilioSettings = field(default_factory=TwilioSettings)
    stripe: StripeSettings = field(default_factory=StripeSettings)
    email: EmailSettings = field(default_factory=EmailSettings)

    def validate(self) -> list[str]:
        """
        Validate settings and return list of warnings/errors.
        Returns empty list if all settings are valid.
        """
        issues = []

        if not self.supabase.url or not self.supabase.service_role_key:
            issues.append(
                "WARNING: SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not set. "
                "Every authenticated request will be rejected."
            )

        if self.twilio.backend == "twilio" and not (
            self.twilio.account_sid and self.twilio.auth_token
        ):
            issues.append(
                "WARNING: TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN not set. "
                "Set SMS_BACKEND=console to log messages instead of sending."
            )

        if not self.stripe.secret_key:
            issues.append("WARNING: STRIPE_SECRET_KEY not set. Billing routes will fail.")

        if self.stripe.allow_unverified_webhooks:
            issues.append(
                "WARNING: ALLOW_UNVERIFIED_WEBHOOKS is on. Never enable this in production."
            )

        if not self.app.cron_secret:
            issues.append("WARNING: CRON_SECRET not set. Cron endpoints will reject every call.")

        if not self.email.resend_api_key:
            issues.append(
                "WARNING: RESEND_API_KEY not set. Admin notifications will only be logged."
            )

        return issues


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get singleton Settings instance.
    Cached to ensure consistent settings throughout application lifecycle.
    """
    return Settings()
