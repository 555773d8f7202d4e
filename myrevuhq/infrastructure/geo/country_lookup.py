"""IP to country lookup for the signup form's default phone country."""

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = "GB"


class CountryLookup:
    """
    Resolves a client IP with ipapi.co (GET /{ip}/country_code/).

    Lookups never raise: any failure returns None and the caller
    falls back to DEFAULT_COUNTRY.
    """

    API_URL = "https://ipapi.co"

    def __init__(self, timeout: int = 5, session: Optional[requests.Session] = None):
        self._timeout = timeout
        self._session = session or requests.Session()

    def country_for_ip(self, ip: str) -> Optional[str]:
        if not ip or ip in ("127.0.0.1", "::1", "unknown"):
            return None
        try:
            response = self._session.get(
                f"{self.API_URL}/{ip}/country_code/",
                headers={"User-Agent": "MyRevuHQ/1.0"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"[Geo] Lookup failed for {ip}: {e}")
            return None

        if not response.ok:
            return None

        code = response.text.strip().upper()
        if len(code) == 2 and code.isalpha():
            return code
        return None

    def close(self) -> None:
        self._session.close()
