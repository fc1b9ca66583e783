"""HTTP fetching with bounded retries and exponential backoff."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Tuple

import requests

from .config import DEFAULT_MAX_RETRIES, DEFAULT_USER_AGENT

logger = logging.getLogger("legacy_migrator")


class FetchError(RuntimeError):
    """Raised once every attempt for a URL has failed."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


def build_session(user_agent: str = DEFAULT_USER_AGENT) -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        }
    )
    return session


class Fetcher:
    """Fetch text or binary resources, retrying failed attempts.

    The delay before retry ``i`` is ``base_delay * 2 ** (i - 1)`` seconds; the
    first attempt is never delayed. Non-2xx responses count as failures.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = 0.3,
        timeout: float = 15.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session or build_session()
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self.timeout = timeout
        self._sleep = sleep

    def backoff_delay(self, retry: int) -> float:
        return self.base_delay * (2 ** (retry - 1))

    def _get(self, url: str) -> requests.Response:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            if attempt > 1:
                wait = self.backoff_delay(attempt - 1)
                logger.warning(
                    "Retry %d/%d for %s (waiting %.2fs)",
                    attempt - 1,
                    self.max_retries,
                    url,
                    wait,
                )
                self._sleep(wait)
            try:
                resp = self.session.get(url, timeout=self.timeout)
                if not resp.ok:
                    raise requests.HTTPError(
                        f"HTTP {resp.status_code}: {resp.reason}", response=resp
                    )
                return resp
            except requests.RequestException as exc:
                last_error = exc
                logger.debug("Attempt %d for %s failed: %s", attempt, url, exc)
        raise FetchError(url, str(last_error)) from last_error

    def fetch_text(self, url: str) -> str:
        return self._get(url).text

    def fetch_binary(self, url: str) -> bytes:
        return self._get(url).content

    def fetch_binary_with_type(self, url: str) -> Tuple[bytes, str]:
        resp = self._get(url)
        return resp.content, resp.headers.get("Content-Type", "")
