"""Client for the remote work queue that hands out ids and records archived ones."""

from __future__ import annotations

import logging
from typing import Any, Iterable

import requests

from config.settings import WORK_SOURCE_SECRET_HEADER, WORK_SOURCE_TIMEOUT_SECONDS, WORK_SOURCE_URL

logger = logging.getLogger(__name__)


class WorkSourceError(RuntimeError):
    """Raised when the work source cannot be reached or answers with an error."""


class WorkSourceClient:
    """``/api/admin/requests`` client authenticated by a static secret header."""

    def __init__(
        self,
        secret: str,
        *,
        base_url: str = WORK_SOURCE_URL,
        proxy: str | None = None,
        timeout_sec: float = WORK_SOURCE_TIMEOUT_SECONDS,
        session: Any = None,
    ) -> None:
        secret = (secret or "").strip()
        if not secret:
            raise ValueError("work source secret is required")
        self.secret = secret
        self.base_url = base_url
        self.timeout_sec = timeout_sec
        self.proxies = {"http": proxy, "https": proxy} if proxy else None
        self._http = session or requests

    def _headers(self, *, json_body: bool = False) -> dict[str, str]:
        headers = {WORK_SOURCE_SECRET_HEADER: self.secret}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _request(self, method: str, **kwargs: Any) -> Any:
        try:
            response = self._http.request(
                method,
                self.base_url,
                timeout=self.timeout_sec,
                proxies=self.proxies,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise WorkSourceError(f"work source {method} failed: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise WorkSourceError(f"work source {method} failed ({response.status_code})")
        return response

    def fetch_pending_ids(self, offset: int = 0, limit: int = 1024) -> list[str]:
        """Return pending video ids in the order the work source lists them."""
        response = self._request(
            "GET",
            params={"offset": int(offset), "limit": int(limit)},
            headers=self._headers(),
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise WorkSourceError(f"work source returned invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise WorkSourceError("work source response is not an object")
        if payload.get("ok") is False:
            raise WorkSourceError(f"work source refused request: {payload.get('msg') or 'unknown error'}")

        ids: list[str] = []
        for item in payload.get("requests") or []:
            if not isinstance(item, dict):
                continue
            video_id = str(item.get("video_id") or "").strip()
            if video_id:
                ids.append(video_id)
        return ids

    def mark_archived(self, video_ids: Iterable[str]) -> None:
        ids = [video_id for video_id in video_ids if video_id]
        if not ids:
            return
        self._request("PUT", json={"video_ids": ids}, headers=self._headers(json_body=True))
        logger.info("marked archived count=%d", len(ids))

    def push_ids(self, video_ids: Iterable[str]) -> None:
        ids = [video_id for video_id in video_ids if video_id]
        if not ids:
            return
        self._request("POST", json={"video_ids": ids}, headers=self._headers(json_body=True))
        logger.info("pushed ids count=%d", len(ids))
