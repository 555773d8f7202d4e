"""
Inbound SMS and Delivery Status Handling
========================================

Twilio posts two kinds of webhooks:

- Incoming messages: STOP-style keywords opt the sender out, START-style
  keywords opt them back in. Replies are TwiML.
- Status callbacks: delivery progress for messages we sent
  (queued -> sending -> sent -> delivered | failed | undelivered).

Both acknowledge with 200 even when processing fails, so Twilio does not
retry and duplicate the update.
"""

import logging
from typing import Any, Dict, List, Optional

from myrevuhq.domain.keywords import InboundIntent, classify_inbound
from myrevuhq.domain.models import Customer, SmsStatus
from myrevuhq.domain.phone import normalize_to_e164
from myrevuhq.infrastructure.persistence import Database

from .errors import ValidationError

logger = logging.getLogger(__name__)

TWIML_EMPTY = '<?xml version="1.0" encoding="UTF-8"?>\n<Response></Response>'

TWIML_UNSUBSCRIBED = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    "<Response>\n"
    "  <Message>You have successfully been unsubscribed. You will not receive any more "
    "messages from this number. Reply START to resubscribe.</Message>\n"
    "</Response>"
)

TWIML_RESUBSCRIBED = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    "<Response>\n"
    "  <Message>You have successfully been re-subscribed. You may receive messages from "
    "this number again. Reply STOP to opt out.</Message>\n"
    "</Response>"
)

FAILED_DELIVERY_STATUSES = ("failed", "undelivered")


class InboundSmsHandler:
    """
    USAGE:
        handler = InboundSmsHandler(db)
        twiml = handler.handle_incoming(form["From"], form["Body"])
        result = handler.handle_status(form["MessageSid"], form["MessageStatus"])
    """

    def __init__(self, db: Database):
        self._db = db

    def find_customers_by_phone(self, e164: str) -> List[Customer]:
        """Every customer (across all owners) whose stored phone normalises to e164."""
        return [
            customer
            for customer in self._db.get_all_customers()
            if customer.phone
            and normalize_to_e164(customer.phone_number, customer.country_code) == e164
        ]

    def handle_incoming(self, from_number: Optional[str], body: Optional[str]) -> str:
        """
        Process an incoming SMS and return the TwiML reply.

        Raises:
            ValidationError: From or Body missing
        """
        if not from_number or not body:
            raise ValidationError("Missing required fields")

        phone = from_number.strip()
        intent = classify_inbound(body)
        logger.info(f"[SMS Webhook] Message from {phone}: {intent.value}")

        if intent is InboundIntent.OTHER:
            return TWIML_EMPTY

        opt_out = intent is InboundIntent.OPT_OUT
        try:
            matches = self.find_customers_by_phone(phone)
            for customer in matches:
                self._db.update_customer(customer.id, opt_out=opt_out)
                logger.info(
                    f"[SMS Webhook] Customer {customer.id} "
                    f"{'opted out' if opt_out else 'opted back in'}"
                )
            if not matches:
                logger.info(f"[SMS Webhook] No customer found for {phone}")
        except Exception as e:
            logger.error(f"[SMS Webhook] Error processing webhook: {e}", exc_info=True)
            return TWIML_EMPTY

        return TWIML_UNSUBSCRIBED if opt_out else TWIML_RESUBSCRIBED

    def handle_status(
        self,
        message_sid: Optional[str],
        message_status: Optional[str],
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Record a delivery status update.

        Raises:
            ValidationError: MessageSid or MessageStatus missing
        """
        if not message_sid or not message_status:
            raise ValidationError("Missing required fields")

        status = message_status.lower()
        logger.info(
            f"[Status Callback] Message {message_sid} status: {status}"
            + (f" (Error {error_code}: {error_message})" if error_code else "")
        )

        try:
            message = self._db.get_message_by_sid(message_sid)
            if not message:
                # The callback can arrive before the message row is written
                logger.warning(f"[Status Callback] Message {message_sid} not found")
                return {"message": "Message not found"}

            updates = {"delivery_status": status}
            if error_code:
                updates["delivery_error_code"] = str(error_code)
                updates["delivery_error_message"] = error_message or None
            self._db.update_message(message.id, **updates)

            if status in FAILED_DELIVERY_STATUSES:
                self._db.update_customer(message.customer_id, sms_status=SmsStatus.FAILED.value)
        except Exception as e:
            logger.error(f"[Status Callback] Error processing callback: {e}", exc_info=True)
            return {"error": "Internal error"}

        return {"message": "Status updated"}
