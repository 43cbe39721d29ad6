"""HTTP access for per-video fetch targets (page, annotations, subtitles, thumbnail)."""

from __future__ import annotations

import logging
import threading
from typing import Any

import requests

from config.settings import REQUEST_TIMEOUT_SECONDS, USER_AGENT
from metadata.types import ArchiveError

logger = logging.getLogger(__name__)


class FetchError(ArchiveError):
    """Raised when a fetch fails at the transport level or returns a non-2xx status."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class HttpFetcher:
    """Thin ``requests`` wrapper shared by all workers.

    Every call is bounded by ``timeout``; an expired timeout surfaces as a
    :class:`FetchError` like any other transport failure.
    """

    def __init__(
        self,
        *,
        session: Any = None,
        proxy: str | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        user_agent: str = USER_AGENT,
    ) -> None:
        self._http = session or requests
        self.timeout = timeout
        self.proxies = {"http": proxy, "https": proxy} if proxy else None
        self.headers = {"User-Agent": user_agent, "Accept-Language": "en-US,en;q=0.8"}
        self._count_lock = threading.Lock()
        self._request_count = 0

    @property
    def request_count(self) -> int:
        with self._count_lock:
            return self._request_count

    def get(self, url: str) -> Any:
        with self._count_lock:
            self._request_count += 1
        try:
            response = self._http.get(url, headers=self.headers, timeout=self.timeout, proxies=self.proxies)
        except requests.RequestException as exc:
            raise FetchError(f"request failed url={url}: {exc}", url=url) from exc
        status = getattr(response, "status_code", None)
        if not isinstance(status, int) or not 200 <= status < 300:
            raise FetchError(f"unexpected status {status} url={url}", url=url, status_code=status)
        logger.debug("fetched url=%s status=%s", url, status)
        return response

    def get_text(self, url: str) -> str:
        return self.get(url).text

    def get_bytes(self, url: str) -> bytes:
        return self.get(url).content
