from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import ReportWriteError
from .naming import RUN_DIR_RE, run_timestamp, utc_iso

logger = logging.getLogger(__name__)

REPORT_FILENAME = "scraping_summary.json"


def _str_list(value: Any, *, key: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{key} must be a list of strings")
    return list(value)


def _int(value: Any, *, key: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{key} must be a non-negative integer")
    return value


@dataclass
class ScrapingReport:
    """In-memory form of ``scraping_summary.json``.

    List-backed counters are derived from their lists, so they can never
    drift from them. ``successfully_scraped`` counts successes recorded by a
    run; URLs recovered from files already on disk are counted separately in
    ``recovered_from_disk``.
    """

    base_url: str
    scraped_at: str
    total_discovered: int = 0
    successfully_scraped: int = 0
    recovered_from_disk: int = 0
    failed_url_list: list[str] = field(default_factory=list)
    skipped_url_list: list[str] = field(default_factory=list)
    scraped_urls: list[str] = field(default_factory=list)
    page_titles: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scraping_info": {
                "base_url": self.base_url,
                "scraped_at": self.scraped_at,
                "total_discovered": self.total_discovered,
                "successfully_scraped": self.successfully_scraped,
                "recovered_from_disk": self.recovered_from_disk,
                "failed_urls": len(self.failed_url_list),
                "skipped_urls": len(self.skipped_url_list),
                "failed_url_list": list(self.failed_url_list),
                "skipped_url_list": list(self.skipped_url_list),
            },
            "scraped_urls": list(self.scraped_urls),
            "page_titles": dict(self.page_titles),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ScrapingReport":
        if not isinstance(data, dict):
            raise ValueError("report must be a JSON object")
        info = data.get("scraping_info")
        if not isinstance(info, dict):
            raise ValueError("scraping_info must be a JSON object")

        scraped = list(dict.fromkeys(_str_list(data.get("scraped_urls"), key="scraped_urls")))
        succeeded = min(
            _int(info.get("successfully_scraped"), key="successfully_scraped"),
            len(scraped),
        )
        titles = data.get("page_titles") or {}
        if not isinstance(titles, dict):
            raise ValueError("page_titles must be a JSON object")

        return cls(
            base_url=str(info.get("base_url") or ""),
            scraped_at=str(info.get("scraped_at") or utc_iso()),
            total_discovered=_int(info.get("total_discovered"), key="total_discovered"),
            successfully_scraped=succeeded,
            # Reports written before recoveries were tracked undercount
            # successes; attribute the difference to recoveries.
            recovered_from_disk=len(scraped) - succeeded,
            failed_url_list=list(
                dict.fromkeys(_str_list(info.get("failed_url_list"), key="failed_url_list"))
            ),
            skipped_url_list=list(
                dict.fromkeys(_str_list(info.get("skipped_url_list"), key="skipped_url_list"))
            ),
            scraped_urls=scraped,
            page_titles={str(k): str(v) for k, v in titles.items()},
        )


def latest_run_dir(export_root: Path) -> Path | None:
    if not export_root.is_dir():
        return None
    dirs = sorted(
        p for p in export_root.iterdir() if p.is_dir() and RUN_DIR_RE.match(p.name)
    )
    return dirs[-1] if dirs else None


def _new_run_dir(export_root: Path, now: datetime | None = None) -> Path:
    base = export_root / run_timestamp(now)
    candidate = base
    n = 1
    while candidate.exists():
        candidate = base.with_name(f"{base.name}_{n}")
        n += 1
    candidate.mkdir(parents=True)
    return candidate


def load_report(path: Path) -> ScrapingReport | None:
    """Load a persisted report, or None if it is unreadable or malformed."""

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ScrapingReport.from_dict(data)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValueError) as e:
        logger.warning("Discarding unreadable run report %s: %s", path, e)
        return None


class RunStateStore:
    """Durable record of one run, flushed to disk after every event."""

    def __init__(
        self,
        run_dir: Path,
        report: ScrapingReport,
        *,
        resumed: bool = False,
    ) -> None:
        self.run_dir = run_dir
        self.report = report
        self.resumed = resumed
        self.report_path = run_dir / REPORT_FILENAME

        self._scraped: set[str] = set(report.scraped_urls)
        self._failed: set[str] = set(report.failed_url_list)
        self._skipped: set[str] = set(report.skipped_url_list)
        # Snapshot of what the loaded report already knew about.
        self._previously_scraped: frozenset[str] = frozenset(self._scraped)
        self._previously_known: frozenset[str] = frozenset(
            self._scraped | self._failed | self._skipped
        )

    @classmethod
    def open(
        cls,
        export_root: Path,
        base_url: str,
        *,
        resume: bool = False,
        resume_dir: Path | None = None,
        now: datetime | None = None,
    ) -> "RunStateStore":
        if resume:
            run_dir = resume_dir if resume_dir is not None else latest_run_dir(export_root)
            if run_dir is not None and run_dir.is_dir():
                return cls._reattach(run_dir, base_url)
            logger.warning("No previous run found to resume; starting a fresh run.")

        run_dir = _new_run_dir(export_root, now)
        store = cls(run_dir, ScrapingReport(base_url=base_url, scraped_at=utc_iso()))
        store._commit()
        logger.info("Starting fresh run in %s", run_dir)
        return store

    @classmethod
    def _reattach(cls, run_dir: Path, base_url: str) -> "RunStateStore":
        report_path = run_dir / REPORT_FILENAME
        report = load_report(report_path) if report_path.exists() else None
        if report is None:
            logger.info("Resuming into %s without prior report state", run_dir)
            report = ScrapingReport(base_url=base_url, scraped_at=utc_iso())
        else:
            logger.info(
                "Resuming into %s; loaded %d previously scraped URLs",
                run_dir,
                len(report.scraped_urls),
            )
        return cls(run_dir, report, resumed=True)

    def previously_scraped(self, url: str) -> bool:
        return url in self._previously_scraped

    def record_discovered(self, url: str) -> bool:
        if url in self._previously_known:
            return False
        self.report.total_discovered += 1
        self._commit()
        return True

    def record_success(self, url: str, title: str | None = None) -> bool:
        if url in self._scraped:
            return False
        self._forget(url)
        self._scraped.add(url)
        self.report.scraped_urls.append(url)
        self.report.successfully_scraped += 1
        if title:
            self.report.page_titles[url] = title
        self._commit()
        return True

    def record_recovered(self, url: str, title: str | None = None) -> bool:
        """Add a URL found on disk but missing from the loaded report."""

        if url in self._scraped:
            return False
        self._forget(url)
        self._scraped.add(url)
        self.report.scraped_urls.append(url)
        self.report.recovered_from_disk += 1
        if title:
            self.report.page_titles[url] = title
        self._commit()
        return True

    def record_failure(self, url: str) -> bool:
        if url in self._failed or url in self._scraped:
            return False
        if url in self._skipped:
            self._skipped.discard(url)
            self.report.skipped_url_list.remove(url)
        self._failed.add(url)
        self.report.failed_url_list.append(url)
        self._commit()
        return True

    def record_skipped(self, url: str) -> bool:
        if url in self._skipped or url in self._failed or url in self._scraped:
            return False
        self._skipped.add(url)
        self.report.skipped_url_list.append(url)
        self._commit()
        return True

    def _forget(self, url: str) -> None:
        if url in self._failed:
            self._failed.discard(url)
            self.report.failed_url_list.remove(url)
        if url in self._skipped:
            self._skipped.discard(url)
            self.report.skipped_url_list.remove(url)

    def flush(self) -> None:
        """Atomically replace the report file with the current state."""

        payload = json.dumps(self.report.to_dict(), indent=2, ensure_ascii=False) + "\n"
        tmp_path: str | None = None
        try:
            self.run_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                newline="\n",
                dir=self.run_dir,
                prefix=".scraping_summary.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_path = f.name
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.report_path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass
            raise ReportWriteError(f"Failed to write {self.report_path}: {e}") from e

    def _commit(self) -> None:
        try:
            self.flush()
        except ReportWriteError as e:
            logger.warning("%s; continuing with in-memory state", e)

    def finalize(self) -> None:
        self._commit()
