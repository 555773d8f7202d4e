import time
from typing import List, Optional
from unittest.mock import MagicMock

import pytest
import stripe
from fastapi.testclient import TestClient

from myrevuhq.infrastructure.auth import AuthUser, SupabaseAuthClient
from myrevuhq.infrastructure.billing import StripeClient
from myrevuhq.infrastructure.config import (
    AppSettings,
    EmailSettings,
    Settings,
    StripeSettings,
    SupabaseSettings,
    TwilioSettings,
)
from myrevuhq.infrastructure.email import ResendMailer
from myrevuhq.infrastructure.geo import CountryLookup
from myrevuhq.infrastructure.persistence import Database
from myrevuhq.infrastructure.sms import MessagingError, MessagingProvider, SentMessage
from myrevuhq.web.app import create_app

USER_ID = "user-1"
USER_EMAIL = "owner@example.com"
TOKEN = "good-token"
CRON_SECRET = "cron-secret"
WEBHOOK_SECRET = "whsec_test"

UK_MOBILE = {"countryCode": "GB", "number": "07780587666"}
UK_MOBILE_E164 = "+447780587666"


def sign_webhook(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Stripe-Signature header for `payload`, as Stripe would send it."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = stripe.WebhookSignature._compute_signature(
        f"{timestamp}.{payload.decode('utf-8')}", secret
    )
    return f"t={timestamp},v1={signature}"


class FakeProvider(MessagingProvider):
    """Records sends; set `error` to make every send fail."""

    def __init__(self):
        self.sent: List[dict] = []
        self.error: Optional[MessagingError] = None

    def is_configured(self) -> bool:
        return True

    def send_message(self, phone, text, status_callback=None):
        if self.error:
            raise self.error
        sid = f"SM{len(self.sent) + 1:032d}"
        self.sent.append({"to": phone, "body": text, "status_callback": status_callback, "sid": sid})
        return SentMessage(sid=sid, status="queued")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        app=AppSettings(
            environment="test",
            frontend_url="https://app.example.com",
            cron_secret=CRON_SECRET,
            database_file=tmp_path / "test.db",
            scheduler_batch_size=50,
            scheduler_interval_seconds=60,
            scheduler_max_workers=4,
        ),
        supabase=SupabaseSettings(url="https://sb.example.com", service_role_key="service-key"),
        twilio=TwilioSettings(
            backend="twilio",
            account_sid="AC123",
            auth_token="token",
            phone_number="",
            alphanumeric_sender_id="MyRevuHQ",
        ),
        stripe=StripeSettings(
            secret_key="sk_test_123",
            webhook_secret=WEBHOOK_SECRET,
            default_price_id="price_default",
            price_ids={"GBP": "price_gbp", "EUR": "price_eur", "USD": ""},
            allow_unverified_webhooks=False,
        ),
        email=EmailSettings(
            resend_api_key="",
            from_email="MyRevuHQ <test@example.com>",
            admin_email="admin@example.com",
        ),
    )


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "test.db")
    database.init()
    return database


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def user(db):
    """An owner with an active Pro subscription and one review link."""
    db.create_user(USER_ID, USER_EMAIL)
    return db.update_user(
        USER_ID,
        business_name="Acme Plumbing",
        review_links=[{"name": "Google", "url": "https://g.page/acme"}],
        access_status="active",
        subscription_tier="pro",
    )


@pytest.fixture
def customer(db, user):
    return db.add_customer(user.id, "Sayyam", dict(UK_MOBILE), job_description="Boiler service")


@pytest.fixture
def stripe_client():
    return MagicMock(spec=StripeClient)


@pytest.fixture
def mailer():
    return MagicMock(spec=ResendMailer)


@pytest.fixture
def auth_client():
    client = MagicMock(spec=SupabaseAuthClient)
    client.get_user.side_effect = (
        lambda token: AuthUser(USER_ID, USER_EMAIL) if token == TOKEN else None
    )
    return client


@pytest.fixture
def country_lookup():
    lookup = MagicMock(spec=CountryLookup)
    lookup.country_for_ip.return_value = None
    return lookup


@pytest.fixture
def app(settings, db, provider, stripe_client, auth_client, mailer, country_lookup):
    return create_app(
        settings,
        db=db,
        messaging_provider=provider,
        stripe_client=stripe_client,
        auth_client=auth_client,
        mailer=mailer,
        country_lookup=country_lookup,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {TOKEN}"}
