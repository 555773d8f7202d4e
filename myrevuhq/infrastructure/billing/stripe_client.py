"""
Stripe Client - Billing through the Stripe SDK
==============================================

Covers the handful of Stripe calls the product needs: customers, checkout
sessions, subscriptions, payment methods and prices. The secret key is
passed per request, so the module-level stripe.api_key is never touched.

Webhook events are verified in the billing service with
stripe.Webhook.construct_event.
"""

import logging
from typing import Any, Dict, Optional

import stripe

from ..config import StripeSettings

logger = logging.getLogger(__name__)


class StripeError(Exception):
    """Stripe rejected the request or could not be reached."""

    def __init__(self, message: str, code: Optional[str] = None, http_status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.http_status = http_status


class StripeClient:
    """
    Thin wrapper over the stripe SDK that raises StripeError.

    USAGE:
        stripe_client = StripeClient(secret_key="sk_test_...")
        customer = stripe_client.create_customer("owner@example.com", {"userId": "abc"})
        session = stripe_client.create_checkout_session(customer["id"], "price_123", ok_url, cancel_url)
    """

    def __init__(self, secret_key: str):
        self._secret_key = secret_key

    def _call(self, operation: str, method, *args, **params) -> Dict[str, Any]:
        try:
            return method(*args, api_key=self._secret_key, **params)
        except stripe.StripeError as e:
            message = e.user_message or str(e) or f"Stripe {operation} failed"
            logger.error(f"[Stripe] {operation} failed: {message}")
            raise StripeError(message, code=e.code, http_status=e.http_status) from e

    # ── Customers ──────────────────────────────────────────────────

    def create_customer(self, email: str, metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self._call(
            "create customer", stripe.Customer.create, email=email, metadata=metadata or {}
        )

    # ── Checkout ───────────────────────────────────────────────────

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Card-only subscription checkout for a single price."""
        return self._call(
            "create checkout session",
            stripe.checkout.Session.create,
            customer=customer_id,
            mode="subscription",
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata or {},
            subscription_data={"metadata": metadata or {}},
        )

    # ── Subscriptions ──────────────────────────────────────────────

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return self._call("retrieve subscription", stripe.Subscription.retrieve, subscription_id)

    def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return self._call("cancel subscription", stripe.Subscription.cancel, subscription_id)

    def retrieve_payment_method(self, payment_method_id: str) -> Dict[str, Any]:
        return self._call("retrieve payment method", stripe.PaymentMethod.retrieve, payment_method_id)

    # ── Prices ─────────────────────────────────────────────────────

    def retrieve_price(self, price_id: str) -> Dict[str, Any]:
        return self._call("retrieve price", stripe.Price.retrieve, price_id)


def build_stripe_client(settings: StripeSettings) -> Optional[StripeClient]:
    """None when STRIPE_SECRET_KEY is missing; billing routes report it."""
    if not settings.secret_key:
        logger.warning("Stripe not initialized - STRIPE_SECRET_KEY missing")
        return None
    return StripeClient(settings.secret_key)
