"""Subscription management and the Stripe webhook."""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, Request

from myrevuhq.application.billing import BillingService
from myrevuhq.infrastructure.auth import AuthUser

from ..deps import get_current_user
from ..schemas import CheckoutRequest

router = APIRouter(prefix="/billing", tags=["billing"])


def get_billing(request: Request) -> BillingService:
    return request.app.state.billing


@router.get("/subscription")
def subscription(
    auth: AuthUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing),
):
    return billing.get_subscription(auth.user_id)


@router.get("/prices")
def prices(billing: BillingService = Depends(get_billing)):
    return billing.list_prices()


@router.post("/create-checkout-session")
def create_checkout_session(
    body: Optional[CheckoutRequest] = Body(default=None),
    auth: AuthUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing),
):
    body = body or CheckoutRequest()
    url = billing.create_checkout_session(auth.user_id, auth.email, body.currency, body.tier)
    return {"url": url}


@router.post("/cancel-subscription")
def cancel_subscription(
    auth: AuthUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing),
):
    return billing.cancel_subscription(auth.user_id)


@router.post("/delete-account")
def delete_account(
    auth: AuthUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing),
):
    return billing.delete_account(auth.user_id)


@router.post("/request-invoice")
def request_invoice(
    auth: AuthUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing),
):
    return billing.request_invoice(auth.user_id, auth.email)


@router.post("/request-enterprise")
def request_enterprise(
    auth: AuthUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing),
):
    return billing.request_enterprise(auth.user_id, auth.email)


@router.post("/webhook")
async def webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="stripe-signature"),
    billing: BillingService = Depends(get_billing),
):
    """Stripe events. The raw body is needed for signature verification."""
    payload = await request.body()
    return billing.handle_webhook(payload, stripe_signature)
