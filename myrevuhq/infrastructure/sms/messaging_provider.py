"""
Messaging Provider - Abstraction Layer for Outbound SMS
=======================================================

Provides a unified interface for sending SMS messages.
Twilio's REST API is the production backend; the console backend logs
messages instead of sending them (local development, demos).

USAGE:
    provider = TwilioProvider(account_sid="AC...", auth_token="...", sender="myrevuhq")
    sent = provider.send_message("+447780587666", "Hello!")
    print(sent.sid, sent.status)

    # Development
    provider = ConsoleProvider()
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import requests

from ..config import TwilioSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SentMessage:
    """Provider acknowledgement for an accepted message."""
    sid: str
    status: str


class MessagingError(Exception):
    """Raised when the provider refuses or fails to accept a message."""

    def __init__(self, message: str, code: Optional[str] = None, http_status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.http_status = http_status


class MessagingProvider(ABC):
    """
    Abstract base class for SMS providers.
    Implement this interface to add new messaging backends.
    """

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if provider has the credentials it needs."""
        ...

    @abstractmethod
    def send_message(self, phone: str, text: str, status_callback: Optional[str] = None) -> SentMessage:
        """Send a text message to an E.164 number. Raises MessagingError."""
        ...

    def close(self) -> None:
        """Clean up resources."""


class TwilioProvider(MessagingProvider):
    """
    Twilio Programmable Messaging over plain HTTPS.

        POST {api_url}/Accounts/{account_sid}/Messages.json
        Auth: HTTP basic (account_sid, auth_token)
        Body (form): To, From, Body, StatusCallback
    """

    DEFAULT_API_URL = "https://api.twilio.com/2010-04-01"

    def __init__(
        self,
        account_sid: str = "",
        auth_token: str = "",
        sender: str = "myrevuhq",
        api_url: str = "",
        timeout: int = 15,
        session: Optional[requests.Session] = None,
    ):
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._sender = sender
        self._api_url = (api_url or self.DEFAULT_API_URL).rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self._account_sid and self._auth_token)

    def send_message(self, phone: str, text: str, status_callback: Optional[str] = None) -> SentMessage:
        if not self.is_configured():
            raise MessagingError(
                "Twilio is not configured. Please add TWILIO_ACCOUNT_SID and "
                "TWILIO_AUTH_TOKEN to your environment variables."
            )

        payload = {"To": phone, "From": self._sender, "Body": text}
        if status_callback:
            payload["StatusCallback"] = status_callback

        url = f"{self._api_url}/Accounts/{self._account_sid}/Messages.json"
        try:
            response = self._session.post(
                url,
                data=payload,
                auth=(self._account_sid, self._auth_token),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[Twilio] Request failed: {e}")
            raise MessagingError(f"Failed to send SMS: {e}") from e

        if not response.ok:
            try:
                error = response.json()
            except ValueError:
                error = {}
            message = error.get("message") or response.text or f"HTTP {response.status_code}"
            code = error.get("code")
            logger.warning(f"[Twilio] Rejected message to {phone}: {code} {message}")
            raise MessagingError(
                f"Failed to send SMS: {message}",
                code=str(code) if code is not None else None,
                http_status=response.status_code,
            )

        data = response.json()
        logger.info(f"[Twilio] Accepted message {data.get('sid')} to {phone}")
        return SentMessage(sid=data.get("sid", ""), status=data.get("status", "queued"))

    def close(self) -> None:
        self._session.close()


class ConsoleProvider(MessagingProvider):
    """Logs the payload instead of sending. Never fails."""

    def is_configured(self) -> bool:
        return True

    def send_message(self, phone: str, text: str, status_callback: Optional[str] = None) -> SentMessage:
        sid = f"SM{uuid.uuid4().hex}"
        logger.warning(f"SMS_BACKEND=console: to={phone} sid={sid}\n{text}")
        return SentMessage(sid=sid, status="queued")


def build_messaging_provider(settings: TwilioSettings) -> MessagingProvider:
    """Pick the backend named by SMS_BACKEND."""
    backend = (settings.backend or "twilio").strip().lower()
    if backend == "console":
        return ConsoleProvider()
    return TwilioProvider(
        account_sid=settings.account_sid,
        auth_token=settings.auth_token,
        sender=settings.sender,
        timeout=settings.timeout_seconds,
    )
