"""
Domain Models - Users, Customers and Sent Messages
===================================================

Plain dataclasses shared by every layer. Persistence maps rows onto these,
the web layer serializes them with dataclasses.asdict().
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional


class SmsStatus(Enum):
    """Review-request state of a customer."""
    PENDING = "pending"
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"


class AccessStatus(Enum):
    """Billing gate. Only ACTIVE users may send SMS."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


class AccountStatus(Enum):
    """Account lifecycle, independent of billing."""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    DELETED = "deleted"


@dataclass
class User:
    """Business owner profile, keyed by the auth provider's user id."""
    id: str
    email: str = ""
    business_name: Optional[str] = None
    review_links: List[Dict[str, str]] = field(default_factory=list)
    sms_template: Optional[str] = None
    include_name_in_sms: bool = True
    include_job_in_sms: bool = True
    onboarding_completed: bool = False
    sms_sent_this_month: int = 0
    sms_sent_total: int = 0
    subscription_tier: Optional[str] = None
    access_status: str = AccessStatus.INACTIVE.value
    account_status: str = AccountStatus.ACTIVE.value
    payment_method: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    subscription_start_date: Optional[str] = None
    current_period_end: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_deleted(self) -> bool:
        return self.account_status == AccountStatus.DELETED.value

    @property
    def has_active_access(self) -> bool:
        return self.access_status == AccessStatus.ACTIVE.value


@dataclass
class Customer:
    """A person the business wants a review from."""
    id: str
    user_id: str
    name: str
    phone: Dict[str, str] = field(default_factory=dict)
    job_description: Optional[str] = None
    sms_status: str = SmsStatus.PENDING.value
    scheduled_send_at: Optional[str] = None
    sent_at: Optional[str] = None
    sms_request_count: int = 0
    opt_out: bool = False
    created_at: str = ""
    updated_at: str = ""

    @property
    def country_code(self) -> str:
        return self.phone.get("countryCode") or self.phone.get("country") or ""

    @property
    def phone_number(self) -> str:
        return self.phone.get("number", "")


@dataclass
class Message:
    """One review-request SMS handed to the SMS provider."""
    id: str
    customer_id: str
    user_id: str
    body: str
    sent_at: str
    was_scheduled: bool = False
    twilio_message_sid: Optional[str] = None
    delivery_status: str = "queued"
    delivery_error_code: Optional[str] = None
    delivery_error_message: Optional[str] = None
    updated_at: Optional[str] = None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """
    Fixed-width UTC ISO-8601 string.
    Naive datetimes are taken as UTC. Fixed width keeps text ordering
    in SQLite identical to chronological ordering.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_timestamp(seconds: Optional[int]) -> Optional[str]:
    """Unix seconds (as sent by Stripe) to ISO string."""
    if not seconds:
        return None
    return to_iso(datetime.fromtimestamp(int(seconds), tz=timezone.utc))
