"""Request bodies for the JSON API."""

from datetime import datetime
from typing import Any, List, Optional
from urllib.parse import urlparse
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class Phone(BaseModel):
    countryCode: str
    number: str


class CustomerCreate(BaseModel):
    name: str = Field(min_length=2)
    phone: Phone
    jobDescription: Optional[str] = Field(
        default=None, max_length=250, description="Job description must be 250 characters or less"
    )
    scheduledSendAt: Optional[datetime] = None

    @field_validator("scheduledSendAt", mode="before")
    @classmethod
    def blank_means_unscheduled(cls, value: Any) -> Any:
        return value or None


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2)
    phone: Optional[Phone] = None
    jobDescription: Optional[str] = Field(default=None, max_length=250)


class ReviewLink(BaseModel):
    name: str = Field(min_length=1)
    url: str = Field(min_length=1)

    @field_validator("url")
    @classmethod
    def check_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("Invalid URL format")
        return value


class AccountUpdate(BaseModel):
    business_name: Optional[str] = Field(default=None, min_length=1)
    review_links: Optional[List[ReviewLink]] = None
    sms_template: Optional[str] = Field(default=None, max_length=500)
    include_name_in_sms: Optional[bool] = None
    include_job_in_sms: Optional[bool] = None
    onboarding_completed: Optional[bool] = None

    @field_validator("review_links", mode="before")
    @classmethod
    def drop_incomplete_links(cls, value: Any) -> Any:
        """Blank rows from the settings form are dropped, not rejected."""
        if not isinstance(value, list):
            return value
        return [
            link for link in value
            if isinstance(link, dict)
            and str(link.get("name") or "").strip()
            and str(link.get("url") or "").strip().startswith("http")
        ]


class SendSmsRequest(BaseModel):
    customerId: UUID


class CheckoutRequest(BaseModel):
    currency: str = "GBP"
    tier: str = "starter"


class SyncSessionRequest(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
