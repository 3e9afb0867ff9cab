from __future__ import annotations

import logging
import re
from typing import Final
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .urls import is_http_url, normalize_url

logger = logging.getLogger(__name__)

CHALLENGE_TITLE_MARKERS: Final[tuple[str, ...]] = (
    "Just a moment...",
    "Challenge",
    "Verify you are human",
)

_CHALLENGE_BODY_MARKERS: Final[tuple[re.Pattern[str], ...]] = (
    # High-confidence interstitial text markers.
    re.compile(r"Verify\s+you\s+are\s+human", re.IGNORECASE),
    re.compile(r"Checking\s+your\s+browser\s+before\s+accessing", re.IGNORECASE),
    re.compile(r"cf-challenge-running|challenge-platform", re.IGNORECASE),
)

# Tried in order; the first one present on the page is clicked.
CONSENT_SELECTORS: Final[tuple[str, ...]] = (
    "#onetrust-accept-btn-handler",
    'button:has-text("Accept All")',
    'button:has-text("Allow All")',
    'button:has-text("I Agree")',
    '[aria-label="Accept cookies"]',
)


def is_challenge_page(title: str, html: str | None = None) -> bool:
    if any(marker in (title or "") for marker in CHALLENGE_TITLE_MARKERS):
        return True
    if not html:
        return False
    text = html[:200_000]
    return any(p.search(text) for p in _CHALLENGE_BODY_MARKERS)


def extract_title(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    if soup.title and soup.title.get_text(strip=True):
        return soup.title.get_text(" ", strip=True)
    h1 = soup.find("h1")
    if h1 and h1.get_text(strip=True):
        return h1.get_text(" ", strip=True)
    return ""


def extract_links_from_html(html: str, *, page_url: str) -> list[str]:
    """Absolute, fragment-free http(s) anchor targets of a saved page."""

    soup = BeautifulSoup(html, "html.parser")

    def _attr_text(val: object) -> str:
        if isinstance(val, list):
            if not val:
                return ""
            return str(val[0])
        return str(val or "")

    base_href = None
    base = soup.find("base")
    if base is not None:
        base_href = _attr_text(base.get("href")).strip() or None

    effective_base = page_url
    if base_href is not None:
        try:
            effective_base = urljoin(page_url, base_href)
        except ValueError as e:
            logger.debug("Ignoring malformed base href %r on %s: %s", base_href, page_url, e)

    out: list[str] = []
    for a in soup.select("a[href]"):
        href = _attr_text(a.get("href")).strip()
        if not href or href.startswith("#"):
            continue
        try:
            abs_url = urljoin(effective_base, href)
            if not is_http_url(abs_url):
                continue
            out.append(normalize_url(abs_url))
        except ValueError as e:
            logger.debug("Ignoring malformed link %r on %s: %s", href, page_url, e)

    return out
