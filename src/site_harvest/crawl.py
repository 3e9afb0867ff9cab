from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable

from tqdm import tqdm

from .classify import (
    Classification,
    FileTypePolicy,
    TargetKind,
    classify,
    header_override_extensions,
)
from .config import CrawlerConfig
from .content import (
    CONSENT_SELECTORS,
    extract_links_from_html,
    extract_title,
    is_challenge_page,
)
from .errors import FetchError
from .frontier import Frontier, FrontierItem
from .http_client import HttpClient
from .naming import output_filename
from .renderer import BROWSER_ERRORS, Renderer
from .state import RunStateStore
from .urls import ScopeFilter, is_http_url, normalize_url

logger = logging.getLogger(__name__)

CONSENT_PAUSE_MS = 500

# ValueError covers URL parse and text encode errors from page content.
_ITEM_ERRORS: tuple[type[Exception], ...] = (FetchError, OSError, ValueError, *BROWSER_ERRORS)


class ItemOutcome(str, Enum):
    SUCCESS = "success"
    RESUMED = "resumed"
    RECOVERED = "recovered"
    SKIPPED = "skipped"
    FAILED = "failed"


class CancelToken:
    """Cooperative cancellation, checked by the crawl loop between items."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class CrawlSummary:
    run_dir: Path
    report_path: Path
    outcomes: dict[str, int] = field(default_factory=dict)
    remaining: int = 0
    cancelled: bool = False
    report: dict = field(default_factory=dict)

    @property
    def info(self) -> dict:
        return self.report.get("scraping_info") or {}


class Crawler:
    def __init__(
        self,
        *,
        config: CrawlerConfig,
        renderer: Renderer,
        http: HttpClient,
        store: RunStateStore,
    ) -> None:
        self.cfg = config
        self.renderer = renderer
        self.http = http
        self.store = store

        self.frontier = Frontier(max_depth=self.cfg.max_depth)
        self.scope = ScopeFilter.for_start_url(
            self.cfg.start_url,
            blocked_paths=self.cfg.blocked_paths,
            blocked_hosts=self.cfg.blocked_hosts,
            allowed_external_domains=self.cfg.allowed_external_domains,
        )
        self.policy = FileTypePolicy.from_config(self.cfg.file_types)

        self._stats: Counter[str] = Counter()
        self._shut_down = False

    @property
    def run_dir(self) -> Path:
        return self.store.run_dir

    def run(self, cancel: CancelToken | None = None) -> CrawlSummary:
        cancel = cancel or CancelToken()
        try:
            self.renderer.start()

            seed = normalize_url(self.cfg.start_url)
            if self.frontier.seed(seed):
                self.store.record_discovered(seed)

            with tqdm(
                total=len(self.frontier),
                desc="Crawl",
                unit="url",
                disable=not self.cfg.show_progress,
            ) as bar:
                while self.frontier.has_work():
                    if cancel.cancelled:
                        logger.warning(
                            "Crawl cancelled; %d URLs left in the queue",
                            len(self.frontier),
                        )
                        break
                    item = self.frontier.dequeue()
                    if item is None:
                        break
                    outcome = self.process_item(item)
                    self._stats[outcome.value] += 1
                    bar.total = bar.n + 1 + len(self.frontier)
                    bar.update(1)
        finally:
            self.shutdown()

        if not cancel.cancelled:
            logger.info("Crawling finished.")

        return CrawlSummary(
            run_dir=self.run_dir,
            report_path=self.store.report_path,
            outcomes=dict(self._stats),
            remaining=len(self.frontier),
            cancelled=cancel.cancelled,
            report=self.store.report.to_dict(),
        )

    def shutdown(self) -> None:
        """Close the renderer and write the final report; safe to call twice."""

        if self._shut_down:
            return
        self._shut_down = True
        try:
            self.renderer.close()
        except BROWSER_ERRORS as e:
            logger.warning("Error while closing the browser: %s", e)
        finally:
            self.store.finalize()

    def process_item(self, item: FrontierItem) -> ItemOutcome:
        url = item.url
        logger.info("Processing [depth %d]: %s", item.depth, url)

        target = classify(url, self.policy)
        if target.kind == TargetKind.SKIP:
            return self._skip(url, target)

        try:
            resumed = self._resume_from_disk(item, target)
            if resumed is not None:
                return resumed
            if target.kind == TargetKind.FILE:
                return self._download_file(url, target.extension)
            return self._render_page(item)
        except _ITEM_ERRORS as e:
            logger.error("Failed to process %s: %s", url, e)
            self.store.record_failure(url)
            return ItemOutcome.FAILED

    def _skip(self, url: str, target: Classification) -> ItemOutcome:
        logger.info("Skipping %s (%s not in file_types)", url, target)
        self.store.record_skipped(url)
        return ItemOutcome.SKIPPED

    def _existing_artifact(self, url: str, target: Classification) -> Path | None:
        candidates = [target.output_extension]
        if target.kind == TargetKind.PAGE:
            # Pages reclassified by Content-Type were saved under that type.
            candidates.extend(sorted(header_override_extensions()))
        for ext in candidates:
            path = self.run_dir / output_filename(url, ext)
            if path.is_file():
                return path
        return None

    def _resume_from_disk(
        self, item: FrontierItem, target: Classification
    ) -> ItemOutcome | None:
        if not self.store.resumed:
            return None
        path = self._existing_artifact(item.url, target)
        if path is None:
            return None

        html = None
        if path.suffix == ".html":
            html = path.read_text(encoding="utf-8", errors="replace")

        if self.store.previously_scraped(item.url):
            logger.info("[Resuming] File exists, skipping download: %s", item.url)
            outcome = ItemOutcome.RESUMED
        else:
            logger.info("[Resuming] Recovered %s from %s", item.url, path.name)
            title = extract_title(html) if html is not None else None
            self.store.record_recovered(item.url, title)
            outcome = ItemOutcome.RECOVERED

        if html is not None and self.frontier.can_expand(item):
            self._enqueue_links(extract_links_from_html(html, page_url=item.url), item)
        return outcome

    def _persist(self, url: str, extension: str, body: bytes) -> None:
        if self.cfg.dry_run:
            return
        path = self.run_dir / output_filename(url, extension)
        path.write_bytes(body)

    def _download_file(self, url: str, extension: str) -> ItemOutcome:
        self.http.adopt_browser_session(
            self.renderer.cookies(), user_agent=self.renderer.user_agent
        )
        result = self.http.fetch(url)
        self._persist(url, extension, result.body)
        self.store.record_success(url)
        logger.info("Downloaded %s (%d bytes)", url, len(result.body))
        return ItemOutcome.SUCCESS

    def _render_page(self, item: FrontierItem) -> ItemOutcome:
        url = item.url
        response = self.renderer.navigate(
            url,
            wait_until="domcontentloaded",
            timeout_ms=self.cfg.navigation_timeout_ms,
        )

        actual = classify(url, self.policy, content_type=response.content_type)
        if actual.kind == TargetKind.FILE:
            logger.info("Content-Type %s: treating %s as %s", response.content_type, url, actual)
            return self._download_file(url, actual.extension)
        if actual.kind == TargetKind.SKIP:
            return self._skip(url, actual)

        if response.status >= 400:
            logger.warning("HTTP %d for %s", response.status, url)

        self.renderer.pause(self.cfg.settle_ms)
        self._await_challenge(url)
        self._dismiss_consent(url)

        html = self.renderer.content()
        title = self.renderer.title()
        self._persist(url, actual.output_extension, html.encode("utf-8", errors="replace"))
        self.store.record_success(url, title)

        if self.frontier.can_expand(item):
            try:
                links = self.renderer.evaluate_links()
            except BROWSER_ERRORS as e:
                logger.warning("Link extraction failed on %s: %s", url, e)
            else:
                self._enqueue_links(links, item)
        return ItemOutcome.SUCCESS

    def _await_challenge(self, url: str) -> None:
        if not is_challenge_page(self.renderer.title(), self.renderer.content()):
            return

        logger.info(
            "Challenge page detected on %s; waiting up to %dms",
            url,
            self.cfg.challenge_timeout_ms,
        )
        try:
            self.renderer.wait_for_network_idle(self.cfg.challenge_timeout_ms)
        except BROWSER_ERRORS as e:
            logger.debug("Waiting for challenge on %s failed: %s", url, e)

        if is_challenge_page(self.renderer.title(), self.renderer.content()):
            logger.warning("Challenge on %s did not resolve; keeping current content", url)

    def _dismiss_consent(self, url: str) -> None:
        try:
            for selector in CONSENT_SELECTORS:
                if self.renderer.query_selector(selector):
                    self.renderer.click(selector)
                    self.renderer.pause(CONSENT_PAUSE_MS)
                    logger.debug("Accepted cookie consent on %s via %s", url, selector)
                    break
        except BROWSER_ERRORS as e:
            logger.debug("Cookie consent handling failed on %s: %s", url, e)

    def _enqueue_links(self, links: Iterable[str], item: FrontierItem) -> int:
        added = 0
        for link in links:
            try:
                if not is_http_url(link):
                    continue
                clean = normalize_url(link)
                if not self.scope.should_crawl(clean, self.frontier.visited):
                    continue
            except ValueError as e:
                logger.debug("Ignoring malformed link %r on %s: %s", link, item.url, e)
                continue
            if self.frontier.enqueue(clean, item.depth + 1):
                self.store.record_discovered(clean)
                added += 1
        if added:
            logger.debug("Queued %d new links from %s", added, item.url)
        return added
