from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet
from urllib.parse import ParseResult, urlparse, urlunparse

import tldextract

logger = logging.getLogger(__name__)

_HTTP_SCHEMES = {"http", "https"}

# Bundled public suffix snapshot only; never fetch the list at runtime.
_extract_domain = tldextract.TLDExtract(suffix_list_urls=())


def normalize_url(raw_url: str) -> str:
    """Normalize a URL for de-duplication.

    - Lowercases scheme + hostname.
    - Strips fragments.
    """

    parsed: ParseResult = urlparse(raw_url.strip())
    parsed = parsed._replace(
        scheme=(parsed.scheme or "").lower(),
        netloc=(parsed.netloc or "").lower(),
        fragment="",
    )
    return urlunparse(parsed)


def is_http_url(url: str) -> bool:
    return (urlparse(url).scheme or "").lower() in _HTTP_SCHEMES


def hostname(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def root_domain(url: str) -> str | None:
    parts = _extract_domain(url)
    if not parts.domain or not parts.suffix:
        return None
    return f"{parts.domain}.{parts.suffix}".lower()


@dataclass(frozen=True)
class ScopeFilter:
    start_host: str
    blocked_paths: tuple[str, ...] = ()
    blocked_hosts: tuple[str, ...] = ()
    allowed_external_domains: tuple[str, ...] = ()

    @classmethod
    def for_start_url(
        cls,
        start_url: str,
        *,
        blocked_paths: tuple[str, ...] = (),
        blocked_hosts: tuple[str, ...] = (),
        allowed_external_domains: tuple[str, ...] = (),
    ) -> "ScopeFilter":
        return cls(
            start_host=hostname(start_url),
            blocked_paths=tuple(p for p in blocked_paths if p),
            blocked_hosts=tuple(h.lower() for h in blocked_hosts if h),
            allowed_external_domains=tuple(
                d.lower().lstrip(".") for d in allowed_external_domains if d
            ),
        )

    def is_allowed_external(self, url: str) -> bool:
        domain = root_domain(url)
        return domain is not None and domain in self.allowed_external_domains

    def should_crawl(self, url: str, visited: AbstractSet[str]) -> bool:
        if url in visited:
            return False
        if not is_http_url(url):
            return False
        if any(blocked in url for blocked in self.blocked_paths):
            return False

        host = hostname(url)
        if not host or host in self.blocked_hosts:
            return False
        if host == self.start_host:
            return True

        # Allow-listed external domains are recognized but never recursed
        # into; download-only handling for them is not wired up.
        if self.is_allowed_external(url):
            logger.debug("Not recursing into allow-listed external URL: %s", url)
        return False
