"""Shared fixtures: an in-memory browser and HTTP client for crawler tests."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import pytest

from site_harvest.config import CrawlerConfig
from site_harvest.content import extract_links_from_html, extract_title
from site_harvest.crawl import Crawler
from site_harvest.errors import FetchError, RenderError
from site_harvest.http_client import FetchResult
from site_harvest.renderer import PageResponse
from site_harvest.state import RunStateStore

HTML_HEADERS = {"content-type": "text/html; charset=utf-8"}


def html_page(title: str, *hrefs: str) -> str:
    anchors = "".join(f'<a href="{h}">{h}</a>' for h in hrefs)
    return f"<html><head><title>{title}</title></head><body>{anchors}</body></html>"


@dataclass
class FakePage:
    html: str
    status: int = 200
    headers: dict[str, str] = field(default_factory=lambda: dict(HTML_HEADERS))
    # Content served once the network settles (challenge pages).
    resolved_html: str | None = None
    selectors: tuple[str, ...] = ()


class FakeRenderer:
    user_agent = "FakeBrowser/1.0"

    def __init__(
        self,
        pages: dict[str, FakePage],
        *,
        errors: dict[str, Exception] | None = None,
        on_navigate: Callable[[str], None] | None = None,
    ) -> None:
        self.pages = pages
        self.errors = errors or {}
        self.on_navigate = on_navigate
        self.navigations: list[str] = []
        self.clicked: list[str] = []
        self.idle_waits = 0
        self.started = False
        self.closed = False
        self._url: str | None = None
        self._html = ""

    def start(self) -> None:
        self.started = True

    def close(self) -> None:
        self.closed = True

    def navigate(
        self, url: str, *, wait_until: str = "domcontentloaded", timeout_ms: int = 60_000
    ) -> PageResponse:
        self.navigations.append(url)
        if self.on_navigate is not None:
            self.on_navigate(url)
        if url in self.errors:
            raise self.errors[url]
        page = self.pages.get(url)
        if page is None:
            raise RenderError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        self._url = url
        self._html = page.html
        return PageResponse(url=url, status=page.status, headers=dict(page.headers))

    def _page(self) -> FakePage:
        assert self._url is not None
        return self.pages[self._url]

    def title(self) -> str:
        return extract_title(self._html)

    def content(self) -> str:
        return self._html

    def evaluate_links(self) -> list[str]:
        assert self._url is not None
        return extract_links_from_html(self._html, page_url=self._url)

    def query_selector(self, selector: str) -> bool:
        return selector in self._page().selectors

    def click(self, selector: str) -> None:
        self.clicked.append(selector)

    def pause(self, ms: int) -> None:
        pass

    def wait_for_network_idle(self, timeout_ms: int) -> bool:
        self.idle_waits += 1
        page = self._page()
        if page.resolved_html is not None:
            self._html = page.resolved_html
            return True
        return False

    def cookies(self) -> list[dict[str, Any]]:
        return [{"name": "cf_clearance", "value": "ok", "domain": "example.com", "path": "/"}]


class FakeHttp:
    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files = files or {}
        self.fetched: list[str] = []
        self.adopted: list[dict[str, Any]] = []

    def adopt_browser_session(self, cookies, *, user_agent=None) -> None:
        self.adopted.extend(cookies)

    def fetch(self, url: str) -> FetchResult:
        self.fetched.append(url)
        if url not in self.files:
            raise FetchError(url, "HTTP 404", status=404)
        return FetchResult(
            url=url,
            final_url=url,
            status_code=200,
            headers={"Content-Type": "application/octet-stream"},
            fetched_at=time.time(),
            body=self.files[url],
        )


@pytest.fixture
def export_root(tmp_path: Path) -> Path:
    return tmp_path / "Export"


@pytest.fixture
def make_crawler(export_root: Path):
    def _make(
        renderer: FakeRenderer,
        *,
        http: FakeHttp | None = None,
        root: Path | None = None,
        resume_dir: Path | None = None,
        **overrides: Any,
    ) -> Crawler:
        overrides.setdefault("start_url", "https://example.com/")
        overrides.setdefault("show_progress", False)
        overrides.setdefault("settle_ms", 0)
        config = CrawlerConfig(export_root=root or export_root, **overrides)
        store = RunStateStore.open(
            config.export_root,
            config.start_url,
            resume=config.resume,
            resume_dir=resume_dir,
        )
        return Crawler(config=config, renderer=renderer, http=http or FakeHttp(), store=store)

    return _make
