"""
Billing Service - Subscriptions, Checkout and Stripe Webhooks
=============================================================

Our users table is the source of truth for access; Stripe is consulted
for display details (period dates, card) and pushes state changes through
webhooks.

ACCESS RULES:
- access_status is the billing gate (active / inactive / past_due / canceled)
- account_status is the lifecycle (active / cancelled / deleted)
- subscription_tier comes from the checkout metadata ("tier")
"""

import html
import json
import logging
from typing import Any, Dict, Optional

import stripe

from myrevuhq.domain.models import AccessStatus, AccountStatus, User, from_timestamp
from myrevuhq.domain.tiers import is_known_tier
from myrevuhq.infrastructure.billing import StripeClient, StripeError
from myrevuhq.infrastructure.config import Settings
from myrevuhq.infrastructure.email import EmailError, ResendMailer
from myrevuhq.infrastructure.persistence import Database

from .errors import ConfigurationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {"GBP": "£", "EUR": "€", "USD": "$"}

SUBSCRIPTION_STATUS_MAP = {
    "active": AccessStatus.ACTIVE.value,
    "past_due": AccessStatus.PAST_DUE.value,
    "canceled": AccessStatus.CANCELED.value,
}


def format_price(amount: float, currency: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol:
        return f"{symbol}{amount:.2f}"
    return f"{amount:.2f} {currency.upper()}"


class BillingService:
    """
    USAGE:
        billing = BillingService(db, stripe_client, mailer, settings)
        url = billing.create_checkout_session(user_id, email, currency="EUR", tier="pro")
        billing.handle_webhook(raw_body, request.headers["stripe-signature"])
    """

    def __init__(
        self,
        db: Database,
        stripe: Optional[StripeClient],
        mailer: ResendMailer,
        settings: Settings,
    ):
        self._db = db
        self._stripe = stripe
        self._mailer = mailer
        self._settings = settings

    def _require_stripe(self) -> StripeClient:
        if self._stripe is None:
            raise ConfigurationError("Stripe not configured")
        return self._stripe

    def _require_user(self, user_id: str) -> User:
        user = self._db.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    # ── Subscription status ────────────────────────────────────────

    def get_subscription(self, user_id: str) -> Dict[str, Any]:
        """Billing summary for the billing page."""
        stripe = self._require_stripe()
        user = self._db.get_user(user_id)

        if not user or not user.access_status or user.access_status == AccessStatus.INACTIVE.value:
            return {"accessStatus": AccessStatus.INACTIVE.value, "paymentMethod": None}

        start_date = user.subscription_start_date
        period_start = None
        period_end = user.current_period_end
        card_last4 = None
        card_brand = None

        if user.stripe_subscription_id:
            try:
                subscription = stripe.retrieve_subscription(user.stripe_subscription_id)
                start_date = from_timestamp(subscription.get("created")) or user.subscription_start_date
                period_start = from_timestamp(subscription.get("current_period_start"))
                period_end = from_timestamp(subscription.get("current_period_end"))

                payment_method_id = subscription.get("default_payment_method")
                if payment_method_id:
                    try:
                        payment_method = stripe.retrieve_payment_method(payment_method_id)
                        card = payment_method.get("card")
                        if payment_method.get("type") == "card" and card:
                            card_last4 = card.get("last4")
                            card_brand = card.get("brand")
                    except StripeError as e:
                        logger.error(f"[Billing] Error retrieving payment method: {e}")
            except StripeError as e:
                logger.error(
                    f"[Billing] Error retrieving subscription {user.stripe_subscription_id}: {e}"
                )
                start_date = user.subscription_start_date
                period_end = user.current_period_end

        return {
            "accessStatus": user.access_status,
            "paymentMethod": user.payment_method,
            "nextBillingDate": period_end or user.current_period_end,
            "subscriptionStartDate": start_date,
            "currentPeriodStart": period_start,
            "currentPeriodEnd": period_end,
            "cardLast4": card_last4,
            "cardBrand": card_brand,
            "accountStatus": user.account_status,
            "subscriptionTier": user.subscription_tier,
        }

    # ── Checkout ───────────────────────────────────────────────────

    def _ensure_stripe_customer(self, user_id: str, email: str) -> str:
        stripe = self._require_stripe()
        user = self._db.get_user(user_id) or self._db.create_user(user_id, email)
        if user.stripe_customer_id:
            return user.stripe_customer_id

        customer = stripe.create_customer(user.email or email, {"userId": user_id})
        self._db.update_user(user_id, stripe_customer_id=customer["id"])
        logger.info(f"[Billing] Created Stripe customer {customer['id']} for user {user_id}")
        return customer["id"]

    def create_checkout_session(
        self,
        user_id: str,
        email: str,
        currency: str = "GBP",
        tier: str = "starter",
    ) -> str:
        """Start a card subscription checkout. Returns the hosted checkout URL."""
        stripe = self._require_stripe()
        currency = (currency or "GBP").upper()
        tier = tier or "starter"
        if not is_known_tier(tier):
            raise ValidationError(f"Unknown subscription tier: {tier}")

        price_id = self._settings.stripe.price_id_for(currency)
        if not price_id:
            raise ConfigurationError(
                f"Price ID not configured for currency {currency}. "
                f"Please set STRIPE_PRICE_ID_{currency} or STRIPE_PRICE_ID."
            )

        customer_id = self._ensure_stripe_customer(user_id, email)
        frontend = self._settings.app.frontend_url.rstrip("/")

        session = stripe.create_checkout_session(
            customer_id,
            price_id,
            success_url=f"{frontend}/billing?success=true",
            cancel_url=f"{frontend}/billing/cancel",
            metadata={"userId": user_id, "tier": tier},
        )
        return session["url"]

    # ── Cancellation ───────────────────────────────────────────────

    def _cancel_stripe_subscription(self, user: User, tag: str):
        if not user.stripe_subscription_id or self._stripe is None:
            return
        try:
            self._stripe.cancel_subscription(user.stripe_subscription_id)
        except StripeError as e:
            # Already cancelled on Stripe's side
            if "No such subscription" not in str(e):
                logger.error(f"[{tag}] Stripe error: {e}")

    def cancel_subscription(self, user_id: str) -> Dict[str, Any]:
        user = self._require_user(user_id)
        if user.account_status == AccountStatus.CANCELLED.value:
            raise ValidationError("Subscription is already cancelled")
        if user.is_deleted:
            raise ValidationError("Account is already deleted")

        self._cancel_stripe_subscription(user, "Cancel Subscription")
        self._db.update_user(
            user_id,
            account_status=AccountStatus.CANCELLED.value,
            access_status=AccessStatus.CANCELED.value,
            current_period_end=None,
        )
        logger.info(f"[Billing] Subscription cancelled for user {user_id}")
        return {"success": True, "message": "Subscription cancelled successfully"}

    def delete_account(self, user_id: str) -> Dict[str, Any]:
        """Soft delete: data is kept, the account can no longer send."""
        user = self._require_user(user_id)
        if user.is_deleted:
            raise ValidationError("Account is already deleted")

        self._cancel_stripe_subscription(user, "Delete Account")
        self._db.update_user(
            user_id,
            account_status=AccountStatus.DELETED.value,
            access_status=AccessStatus.CANCELED.value,
            current_period_end=None,
        )
        logger.info(f"[Billing] Account deleted for user {user_id}")
        return {"success": True, "message": "Account deleted successfully"}

    # ── Admin requests ─────────────────────────────────────────────

    def _notify_admin(self, subject: str, rows: Dict[str, Optional[str]], intro: str):
        """Email the admin inbox. Failures are logged, never raised."""
        details = "".join(
            f"<p><strong>{html.escape(label)}:</strong> {html.escape(str(value))}</p>"
            for label, value in rows.items()
            if value
        )
        body = f"<h2>{html.escape(subject)}</h2><p>{html.escape(intro)}</p>{details}"
        try:
            self._mailer.send(subject, body)
        except EmailError as e:
            logger.error(f"[Email] Failed to send '{subject}': {e}")

    def request_invoice(self, user_id: str, email: str) -> Dict[str, Any]:
        """Invoice (direct debit) billing is set up by hand by the admin."""
        customer_id = self._ensure_stripe_customer(user_id, email)
        user = self._db.get_user(user_id)
        self._notify_admin(
            f"Invoice Billing Request - {user.business_name or user.email or email}",
            {
                "User Email": user.email or email,
                "Business Name": user.business_name,
                "User ID": user_id,
                "Stripe Customer ID": customer_id,
            },
            "A user has requested invoice billing.",
        )
        return {"message": "Invoice setup requested"}

    def request_enterprise(self, user_id: str, email: str) -> Dict[str, Any]:
        user = self._db.get_user(user_id)
        user_email = (user.email if user else "") or email
        business = user.business_name if user else None
        self._notify_admin(
            f"New Enterprise Plan Request - {business or user_email}",
            {
                "User Email": user_email,
                "Business Name": business,
                "User ID": user_id,
                "Stripe Customer ID": user.stripe_customer_id if user else None,
                "Current Plan": user.subscription_tier if user else None,
                "Account Created": user.created_at if user else None,
            },
            "A user has requested the Enterprise plan.",
        )
        logger.info(f"[Billing] Enterprise request from user {user_id}")
        return {"success": True, "message": "Enterprise request received. We'll be in touch shortly."}

    # ── Prices ─────────────────────────────────────────────────────

    def list_prices(self) -> Dict[str, Any]:
        stripe = self._require_stripe()
        price_ids = {
            "GBP": self._settings.stripe.price_ids.get("GBP") or self._settings.stripe.default_price_id,
            "EUR": self._settings.stripe.price_ids.get("EUR", ""),
            "USD": self._settings.stripe.price_ids.get("USD", ""),
        }

        prices = {}
        for currency, price_id in price_ids.items():
            if not price_id:
                continue
            try:
                price = stripe.retrieve_price(price_id)
            except StripeError as e:
                logger.warning(f"[Billing] Could not fetch {currency} price {price_id}: {e}")
                continue

            amount = (price.get("unit_amount") or 0) / 100
            prices[currency] = {
                "amount": amount,
                "currency": (price.get("currency") or currency).upper(),
                "formatted": format_price(amount, currency),
            }

        return {"prices": prices}

    # ── Webhooks ───────────────────────────────────────────────────

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify and decode a webhook payload."""
        self._require_stripe()
        if not signature:
            raise ValidationError("Missing stripe-signature header")

        secret = self._settings.stripe.webhook_secret
        if not secret:
            raise ConfigurationError("STRIPE_WEBHOOK_SECRET not configured")

        try:
            stripe.Webhook.construct_event(
                payload, signature, secret, tolerance=self._settings.stripe.webhook_tolerance_seconds
            )
            # Handlers work on plain dicts, not StripeObjects
            return json.loads(payload.decode("utf-8"))
        except ValueError as e:
            raise ValidationError("Invalid request body format") from e
        except stripe.SignatureVerificationError as e:
            if self._settings.stripe.allow_unverified_webhooks:
                logger.warning(
                    "[Webhook] Signature verification failed. Using the unverified payload "
                    "(ALLOW_UNVERIFIED_WEBHOOKS - TESTING ONLY)."
                )
                try:
                    return json.loads(payload.decode("utf-8"))
                except (UnicodeDecodeError, ValueError):
                    raise ValidationError("Invalid request body format") from e
            logger.error(f"[Webhook] Signature verification failed: {e}")
            raise ValidationError(f"Webhook signature verification failed: {e}") from e

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        event = self.construct_event(payload, signature)
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}

        logger.info(f"[Webhook] Received {event_type} ({event.get('id')})")

        handlers = {
            "checkout.session.completed": self._on_checkout_completed,
            "customer.subscription.created": self._on_subscription_changed,
            "customer.subscription.updated": self._on_subscription_changed,
            "customer.subscription.deleted": self._on_subscription_deleted,
            "invoice.payment_succeeded": self._on_invoice_paid,
            "invoice.payment_failed": self._on_invoice_failed,
        }
        handler = handlers.get(event_type)
        if handler:
            handler(obj)

        return {"received": True}

    def _on_checkout_completed(self, session: Dict[str, Any]):
        if session.get("mode") != "subscription":
            return
        subscription_id = session.get("subscription")
        customer_id = session.get("customer")
        if isinstance(customer_id, dict):
            customer_id = customer_id.get("id")
        if not subscription_id or not customer_id:
            return

        try:
            subscription = self._require_stripe().retrieve_subscription(subscription_id)
        except StripeError as e:
            logger.error(f"[Webhook] Error processing checkout.session.completed: {e}")
            return

        user = self._db.get_user_by_stripe_customer(customer_id)
        if not user:
            email = session.get("customer_email") or (session.get("customer_details") or {}).get("email")
            user = self._db.get_user_by_email(email) if email else None
            if not user:
                logger.error(f"[Webhook] No user for Stripe customer {customer_id}")
                return
            if not user.stripe_customer_id:
                self._db.update_user(user.id, stripe_customer_id=customer_id)

        tier = (subscription.get("metadata") or {}).get("tier") or (session.get("metadata") or {}).get("tier")
        updates = {
            "stripe_subscription_id": subscription.get("id", subscription_id),
            "access_status": (
                AccessStatus.ACTIVE.value if subscription.get("status") == "active"
                else AccessStatus.INACTIVE.value
            ),
            "payment_method": "card",
            "subscription_start_date": from_timestamp(subscription.get("created")),
            "current_period_end": from_timestamp(subscription.get("current_period_end")),
        }
        if is_known_tier(tier):
            updates["subscription_tier"] = tier
        self._db.update_user(user.id, **updates)
        logger.info(f"[Webhook] Checkout completed for user {user.id} ({updates['access_status']})")

    def _on_subscription_changed(self, subscription: Dict[str, Any]):
        user = self._db.get_user_by_stripe_customer(subscription.get("customer") or "")
        if not user:
            return

        updates = {
            "stripe_subscription_id": subscription.get("id"),
            "access_status": SUBSCRIPTION_STATUS_MAP.get(
                subscription.get("status"), AccessStatus.INACTIVE.value
            ),
            "payment_method": "card",
            "subscription_start_date": from_timestamp(subscription.get("created")),
            "current_period_end": from_timestamp(subscription.get("current_period_end")),
        }
        tier = (subscription.get("metadata") or {}).get("tier")
        if is_known_tier(tier):
            updates["subscription_tier"] = tier
        self._db.update_user(user.id, **updates)

    def _on_subscription_deleted(self, subscription: Dict[str, Any]):
        user = self._db.get_user_by_stripe_customer(subscription.get("customer") or "")
        if user:
            self._db.update_user(
                user.id, access_status=AccessStatus.CANCELED.value, current_period_end=None
            )

    def _on_invoice_paid(self, invoice: Dict[str, Any]):
        user = self._db.get_user_by_stripe_customer(invoice.get("customer") or "")
        # Card subscriptions are handled by the subscription events
        if not user or user.stripe_subscription_id or invoice.get("subscription"):
            return
        self._db.update_user(
            user.id,
            access_status=AccessStatus.ACTIVE.value,
            payment_method="direct_debit",
            subscription_start_date=from_timestamp(invoice.get("created")),
            current_period_end=from_timestamp(invoice.get("period_end")),
        )

    def _on_invoice_failed(self, invoice: Dict[str, Any]):
        user = self._db.get_user_by_stripe_customer(invoice.get("customer") or "")
        if user and not user.stripe_subscription_id:
            self._db.update_user(user.id, access_status=AccessStatus.PAST_DUE.value)
