"""
SMS provider error translation.

Maps Twilio error codes (https://www.twilio.com/docs/api/errors) to
messages a business owner can act on.
"""

from dataclasses import dataclass
from typing import Optional, Union

GENERIC_FAILURE = (
    "Failed to send SMS. Please verify the phone number is correct and capable of "
    "receiving text messages. If the problem persists, contact support."
)

ERROR_MESSAGES = {
    21211: "Invalid phone number. Please check the number and country code.",
    21408: "Permission denied. The destination number may have opted out or be blocked.",
    21610: "This number has unsubscribed from receiving messages.",
    21614: "This number is on the Do Not Call registry or has opted out.",
    30003: "Unable to reach the mobile carrier. The number may be invalid or out of service.",
    30005: "The destination number is currently unavailable or unreachable.",
    30006: "Landline or unreachable carrier. This number cannot receive SMS messages.",
    30007: "Message filtered or blocked by the carrier.",
    21606: "The phone number is not capable of receiving SMS messages.",
    21612: "The number cannot receive this type of message.",
    21617: "The phone number is in an unsupported region or country.",
}


@dataclass(frozen=True)
class SmsErrorInfo:
    message: str
    code: Optional[str] = None


def _as_int(code: Union[int, str, None]) -> Optional[int]:
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


def parse_twilio_error(code: Union[int, str, None], message: str = "") -> SmsErrorInfo:
    """Translate a provider error code/message into a user-facing message."""
    numeric = _as_int(code)
    code_str = str(code) if code is not None else None

    if numeric in ERROR_MESSAGES:
        return SmsErrorInfo(ERROR_MESSAGES[numeric], str(numeric))

    lowered = (message or "").lower()
    if "invalid number" in lowered or "not a valid phone" in lowered:
        return SmsErrorInfo(
            "Invalid phone number format. Please check the number and try again.", code_str
        )
    if "unsubscribed" in lowered or "opt" in lowered:
        return SmsErrorInfo("This recipient has opted out of receiving messages.", code_str)
    if "carrier" in lowered or "unreachable" in lowered:
        return SmsErrorInfo(
            "Unable to deliver message. The number may be out of service.", code_str
        )

    return SmsErrorInfo(GENERIC_FAILURE, code_str)
