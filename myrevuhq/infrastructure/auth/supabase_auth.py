"""
Supabase Auth - Server-side Token Verification
==============================================

The browser signs in against Supabase directly. The API only receives the
resulting access token and asks Supabase who it belongs to:

    GET {SUPABASE_URL}/auth/v1/user
    apikey: <service role key>
    Authorization: Bearer <access token>
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from ..config import SupabaseSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    user_id: str
    email: str = ""


class AuthProviderError(Exception):
    """Supabase could not be reached."""
    pass


class SupabaseAuthClient:
    """
    USAGE:
        auth = SupabaseAuthClient(url="https://xyz.supabase.co", service_role_key="...")
        user = auth.get_user(token)   # None when the token is rejected
    """

    def __init__(
        self,
        url: str,
        service_role_key: str,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ):
        self._url = (url or "").rstrip("/")
        self._key = service_role_key
        self._timeout = timeout
        self._session = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self._url and self._key)

    def get_user(self, token: str) -> Optional[AuthUser]:
        """
        Resolve an access token to its user.

        Returns None for missing, expired or forged tokens.
        Raises AuthProviderError when Supabase is unreachable.
        """
        if not token or not self.is_configured():
            return None

        try:
            response = self._session.get(
                f"{self._url}/auth/v1/user",
                headers={"apikey": self._key, "Authorization": f"Bearer {token}"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[Auth] Supabase request failed: {e}")
            raise AuthProviderError(str(e)) from e

        if response.status_code != 200:
            logger.debug(f"[Auth] Token rejected: HTTP {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError:
            return None

        if not data.get("id"):
            return None
        return AuthUser(user_id=data["id"], email=data.get("email") or "")

    def close(self) -> None:
        self._session.close()


def build_auth_client(settings: SupabaseSettings) -> SupabaseAuthClient:
    return SupabaseAuthClient(settings.url, settings.service_role_key, settings.timeout_seconds)
