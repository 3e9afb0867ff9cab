from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from .errors import ConfigError, RenderError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

_LINKS_JS = "els => els.map(a => a.href).filter(h => typeof h === 'string')"


class BrowserEngine(str, Enum):
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"

    @classmethod
    def parse(cls, value: str) -> "BrowserEngine":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            names = ", ".join(e.value for e in cls)
            raise ConfigError(f"Unknown browser_type {value!r}; expected one of {names}") from None


@dataclass(frozen=True)
class PageResponse:
    url: str
    status: int
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> str | None:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return None


class Renderer(Protocol):
    """What the crawler needs from a browser.

    A single renderer (one browser context) serves the whole run and is
    never used by two operations at once.
    """

    @property
    def user_agent(self) -> str | None: ...

    def start(self) -> None: ...

    def close(self) -> None: ...

    def navigate(
        self, url: str, *, wait_until: str = "domcontentloaded", timeout_ms: int = 60_000
    ) -> PageResponse: ...

    def title(self) -> str: ...

    def content(self) -> str: ...

    def evaluate_links(self) -> list[str]: ...

    def query_selector(self, selector: str) -> bool: ...

    def click(self, selector: str) -> None: ...

    def pause(self, ms: int) -> None: ...

    def wait_for_network_idle(self, timeout_ms: int) -> bool: ...

    def cookies(self) -> list[dict[str, Any]]: ...


class PlaywrightRenderer:
    def __init__(
        self,
        *,
        engine: BrowserEngine = BrowserEngine.CHROMIUM,
        headless: bool = True,
        viewport: tuple[int, int] = (1920, 1080),
        user_agent: str | None = DEFAULT_USER_AGENT,
    ) -> None:
        self.engine = engine
        self.headless = headless
        self.viewport = viewport
        self._user_agent = user_agent

        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None

    @property
    def user_agent(self) -> str | None:
        return self._user_agent

    def start(self) -> None:
        self._playwright = sync_playwright().start()
        browser_type = getattr(self._playwright, self.engine.value)
        self._browser = browser_type.launch(headless=self.headless)
        width, height = self.viewport
        self._context = self._browser.new_context(
            viewport={"width": width, "height": height},
            user_agent=self._user_agent,
        )
        self._page = self._context.new_page()
        logger.debug("Started %s (headless=%s)", self.engine.value, self.headless)

    def close(self) -> None:
        try:
            if self._context is not None:
                self._context.close()
            if self._browser is not None:
                self._browser.close()
        finally:
            if self._playwright is not None:
                self._playwright.stop()
            self._page = self._context = self._browser = self._playwright = None

    def _require_page(self) -> Any:
        if self._page is None:
            raise RenderError("Renderer is not started")
        return self._page

    def _head(self, url: str, timeout_ms: int) -> PageResponse:
        try:
            resp = self._context.request.head(url, timeout=timeout_ms)
        except PlaywrightError as e:
            raise RenderError(f"HEAD {url} failed: {e}") from e
        return PageResponse(url=resp.url, status=resp.status, headers=dict(resp.headers))

    def navigate(
        self, url: str, *, wait_until: str = "domcontentloaded", timeout_ms: int = 60_000
    ) -> PageResponse:
        page = self._require_page()
        try:
            resp = page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightError as e:
            # The browser turns attachments (PDFs etc.) into downloads instead
            # of rendering them; report their headers so they can be fetched.
            if "Download is starting" in str(e):
                return self._head(url, timeout_ms)
            raise RenderError(f"Navigation to {url} failed: {e}") from e
        if resp is None:
            return PageResponse(url=page.url, status=200)
        return PageResponse(url=resp.url, status=resp.status, headers=dict(resp.headers))

    def title(self) -> str:
        return self._require_page().title()

    def content(self) -> str:
        return self._require_page().content()

    def evaluate_links(self) -> list[str]:
        links = self._require_page().eval_on_selector_all("a[href]", _LINKS_JS)
        return [str(link) for link in links or []]

    def query_selector(self, selector: str) -> bool:
        return self._require_page().query_selector(selector) is not None

    def click(self, selector: str) -> None:
        self._require_page().click(selector, timeout=5_000)

    def pause(self, ms: int) -> None:
        self._require_page().wait_for_timeout(ms)

    def wait_for_network_idle(self, timeout_ms: int) -> bool:
        try:
            self._require_page().wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            return False
        return True

    def cookies(self) -> list[dict[str, Any]]:
        if self._context is None:
            return []
        return [dict(c) for c in self._context.cookies()]


# Exceptions a renderer call may raise; callers catch these at item boundaries.
BROWSER_ERRORS: tuple[type[Exception], ...] = (RenderError, PlaywrightError)
