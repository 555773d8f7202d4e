"""
Resend Mailer - Admin Notifications
===================================

Invoice and enterprise requests are forwarded to the admin inbox.
Without RESEND_API_KEY the mailer only logs what it would have sent.
"""

import logging
from typing import List, Optional, Union

import requests

from ..config import EmailSettings

logger = logging.getLogger(__name__)


class EmailError(Exception):
    """Resend refused the email or could not be reached."""
    pass


class ResendMailer:
    """
    USAGE:
        mailer = ResendMailer(api_key="re_...", from_email="MyRevuHQ <hi@example.com>",
                              admin_email="admin@example.com")
        mailer.send("Invoice Request", "<p>...</p>")
    """

    API_URL = "https://api.resend.com/emails"

    def __init__(
        self,
        api_key: str,
        from_email: str,
        admin_email: str,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ):
        self._api_key = api_key
        self._from = from_email
        self.admin_email = admin_email
        self._timeout = timeout
        self._session = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def send(self, subject: str, html: str, to: Union[str, List[str], None] = None) -> Optional[str]:
        """
        Send an HTML email, to the admin inbox unless `to` is given.

        Returns the Resend email id, or None when the mailer is not configured.
        Raises EmailError on failure.
        """
        recipients = to or self.admin_email
        if isinstance(recipients, str):
            recipients = [recipients]

        if not self.is_configured():
            logger.warning(f"[Email] RESEND_API_KEY not set, not sending '{subject}' to {recipients}")
            return None

        try:
            response = self._session.post(
                self.API_URL,
                json={"from": self._from, "to": recipients, "subject": subject, "html": html},
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise EmailError(f"Failed to send email: {e}") from e

        if not response.ok:
            raise EmailError(f"Resend returned HTTP {response.status_code}: {response.text}")

        email_id = response.json().get("id")
        logger.info(f"[Email] Sent '{subject}' ({email_id})")
        return email_id

    def close(self) -> None:
        self._session.close()


def build_mailer(settings: EmailSettings) -> ResendMailer:
    return ResendMailer(
        settings.resend_api_key,
        settings.from_email,
        settings.admin_email,
        settings.timeout_seconds,
    )
