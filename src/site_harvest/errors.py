from __future__ import annotations


class SiteHarvestError(Exception):
    """Base class for errors raised by site_harvest."""


class ConfigError(SiteHarvestError):
    """Invalid or missing configuration; the crawl never starts."""


class ReportWriteError(SiteHarvestError):
    """The run report could not be written to disk."""


class RenderError(SiteHarvestError):
    """The browser failed to navigate to or render a page."""


class FetchError(SiteHarvestError):
    def __init__(self, url: str, message: str, *, status: int | None = None) -> None:
        super().__init__(f"Failed to fetch {url}: {message}")
        self.url = url
        self.status = status
