from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable

import requests
from requests import exceptions as req_exc

from .errors import FetchError

logger = logging.getLogger(__name__)

TRANSIENT_HTTP_STATUSES = {429, 500, 502, 503, 504}


def _retry_after_seconds(headers: dict[str, str]) -> float | None:
    retry_after = headers.get("Retry-After")
    if not retry_after:
        return None
    try:
        return float(retry_after)
    except ValueError:
        return None


@dataclass(frozen=True)
class FetchResult:
    url: str
    final_url: str
    status_code: int
    headers: dict[str, str]
    fetched_at: float
    body: bytes


class HttpClient:
    """Raw HTTP fetches that ride on the browser's session.

    Cookies and the user agent are copied from the browser before each fetch,
    so challenge clearance and consent cookies carry over to file downloads.
    """

    def __init__(
        self,
        session: requests.Session,
        *,
        timeout_s: float = 60,
        max_retries: int = 0,
        backoff_base_s: float = 1.0,
    ) -> None:
        self._session = session
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._backoff_base_s = backoff_base_s

    def adopt_browser_session(
        self,
        cookies: Iterable[dict[str, Any]],
        *,
        user_agent: str | None = None,
    ) -> None:
        for cookie in cookies:
            name = cookie.get("name")
            if not name:
                continue
            self._session.cookies.set(
                str(name),
                str(cookie.get("value") or ""),
                domain=str(cookie.get("domain") or ""),
                path=str(cookie.get("path") or "/"),
            )
        if user_agent:
            self._session.headers["User-Agent"] = user_agent

    def fetch(self, url: str) -> FetchResult:
        """GET ``url``; raise FetchError on transport errors or non-2xx."""

        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                resp = self._session.get(url, timeout=self._timeout_s)
            except req_exc.RequestException as e:
                last_error = e
                if attempt >= self._max_retries:
                    break
                time.sleep(self._backoff_base_s * (2**attempt))
                continue

            if (
                resp.status_code in TRANSIENT_HTTP_STATUSES
                and attempt < self._max_retries
            ):
                retry_after = _retry_after_seconds(dict(resp.headers))
                wait_s = (
                    retry_after
                    if retry_after is not None
                    else self._backoff_base_s * (2**attempt)
                )
                logger.debug("HTTP %s for %s; retrying in %.1fs", resp.status_code, url, wait_s)
                time.sleep(wait_s)
                continue

            if not 200 <= resp.status_code < 300:
                raise FetchError(url, f"HTTP {resp.status_code}", status=int(resp.status_code))

            return FetchResult(
                url=url,
                final_url=str(resp.url),
                status_code=int(resp.status_code),
                headers={k: str(v) for k, v in resp.headers.items()},
                fetched_at=time.time(),
                body=resp.content,
            )

        raise FetchError(url, str(last_error)) from last_error
