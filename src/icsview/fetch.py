from __future__ import annotations

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class IcsFetchError(RuntimeError):
    """Raised when a remote calendar cannot be retrieved."""


class IcsFetcher:
    """Downloads ICS text over HTTP(S) with a shared requests session."""

    def __init__(self, timeout_seconds: float = 15, user_agent: str = "icsview/1.0",
                 session: Optional[requests.Session] = None) -> None:
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": user_agent})

    def fetch(self, url: str) -> str:
        url = url.strip()
        if not url:
            raise ValueError("URL is required")
        # webcal:// is how calendar apps advertise subscribable feeds
        if url.lower().startswith("webcal://"):
            url = "https://" + url[len("webcal://"):]

        try:
            resp = self._session.get(url, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            logger.warning("ICS fetch failed for %s: %s", url, exc)
            raise IcsFetchError(f"Failed to fetch ICS file: {exc}") from exc

        if not resp.ok:
            logger.warning("ICS fetch for %s returned %s %s", url, resp.status_code, resp.reason)
            raise IcsFetchError(f"Failed to fetch ICS file: {resp.reason or resp.status_code}")

        # Servers often omit the charset on text/calendar; ICS is UTF-8.
        if resp.encoding is None or resp.encoding.lower() == "iso-8859-1":
            resp.encoding = "utf-8"
        return resp.text
