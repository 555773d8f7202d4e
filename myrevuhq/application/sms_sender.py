"""
Review Request Sender
=====================

The one place an SMS leaves the system. Manual sends (POST /api/send-sms)
and the scheduled dispatcher both come through here, so every send passes
the same account, billing, quota and per-customer checks.
"""

import logging
from dataclasses import dataclass

from myrevuhq.domain.messages import MAX_REQUESTS_PER_CUSTOMER, compose_review_request
from myrevuhq.domain.models import SmsStatus, to_iso, utc_now
from myrevuhq.domain.phone import normalize_to_e164, region_for_e164
from myrevuhq.domain.sms_errors import parse_twilio_error
from myrevuhq.domain.tiers import sms_limit_for_tier
from myrevuhq.infrastructure.config import AppSettings
from myrevuhq.infrastructure.persistence import Database
from myrevuhq.infrastructure.sms import MessagingError, MessagingProvider

from .errors import (
    ForbiddenError,
    LimitReachedError,
    NotFoundError,
    SmsSendError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    """Outcome of a successful send, shaped for the API response."""
    message_sid: str
    customer_id: str
    sent_at: str
    sms_request_count: int
    sms_sent_this_month: int
    sms_limit: int

    def to_dict(self) -> dict:
        return {
            "success": True,
            "messageSid": self.message_sid,
            "customer": {
                "id": self.customer_id,
                "sms_status": SmsStatus.SENT.value,
                "sent_at": self.sent_at,
                "sms_request_count": self.sms_request_count,
            },
            "usage": {
                "sms_sent_this_month": self.sms_sent_this_month,
                "sms_limit": self.sms_limit,
            },
        }


class ReviewRequestSender:
    """
    Sends one review request to one customer.

    USAGE:
        sender = ReviewRequestSender(db, provider, settings.app)
        result = sender.send(user_id, customer_id)
    """

    def __init__(self, db: Database, provider: MessagingProvider, app_settings: AppSettings):
        self._db = db
        self._provider = provider
        self._status_callback = f"{app_settings.callback_base_url}/api/twilio/status-callback"

    def send(self, user_id: str, customer_id: str) -> SendResult:
        """
        Check, compose, send and record.

        Raises:
            NotFoundError: unknown user or customer not owned by the user
            ForbiddenError: deleted account, inactive billing, no tier,
                opted-out customer or per-customer cap reached
            LimitReachedError: monthly quota used up
            ValidationError: phone number cannot be normalised
            SmsSendError: the provider refused the message
        """
        user = self._db.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")

        if user.is_deleted:
            raise ForbiddenError(
                "This account has been deleted. Please contact support if you wish to reactivate."
            )

        if not user.has_active_access:
            raise ForbiddenError(
                "Your subscription is not active. Please set up payment to send SMS messages."
            )

        sms_limit = sms_limit_for_tier(user.subscription_tier)
        if sms_limit == 0:
            raise ForbiddenError(
                "No active subscription. Please set up a subscription to send SMS messages."
            )

        sent_this_month = user.sms_sent_this_month or 0
        if sent_this_month >= sms_limit:
            raise LimitReachedError(
                f"Monthly SMS limit of {sms_limit} reached. "
                f"You've sent {sent_this_month} of {sms_limit} messages this month."
            )

        customer = self._db.get_customer(customer_id, user_id=user_id)
        if not customer:
            raise NotFoundError("Customer not found")

        if customer.opt_out:
            raise ForbiddenError(
                "This customer has opted out of receiving SMS messages. "
                "Please contact them directly if you need to reach them."
            )

        request_count = customer.sms_request_count or 0
        if request_count >= MAX_REQUESTS_PER_CUSTOMER:
            raise ForbiddenError(
                f"Maximum of {MAX_REQUESTS_PER_CUSTOMER} review request messages allowed per "
                "customer. This limit has been reached for this customer."
            )

        phone = normalize_to_e164(customer.phone_number, customer.country_code)
        if not phone:
            raise ValidationError(
                "Invalid phone number format. Please check the phone number and try again."
            )

        region = region_for_e164(phone) or (customer.country_code or "").upper() or None
        body = compose_review_request(user, customer, region)

        try:
            sent = self._provider.send_message(phone, body, status_callback=self._status_callback)
        except MessagingError as e:
            info = parse_twilio_error(e.code, str(e))
            logger.error(f"[Send SMS] Provider error for customer {customer_id}: {e.code} {e}")
            raise SmsSendError(info.message, code=info.code) from e

        sent_at = to_iso(utc_now())
        new_count = request_count + 1
        was_scheduled = bool(customer.scheduled_send_at)

        self._db.mark_sent(customer_id, sent_at, new_count)
        self._db.add_message(
            customer_id,
            user_id,
            body,
            sent_at,
            was_scheduled=was_scheduled,
            twilio_message_sid=sent.sid,
        )
        month_count, _ = self._db.increment_sms_counters(user_id)

        logger.info(
            f"[Send SMS] Sent {sent.sid} to customer {customer_id} "
            f"({month_count}/{sms_limit} this month)"
        )

        return SendResult(
            message_sid=sent.sid,
            customer_id=customer_id,
            sent_at=sent_at,
            sms_request_count=new_count,
            sms_sent_this_month=month_count,
            sms_limit=sms_limit,
        )
