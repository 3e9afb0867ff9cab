from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Any

import requests

from .config import MAX_DEPTH_LIMIT, RunMode, load_config
from .crawl import CancelToken, Crawler, CrawlSummary
from .errors import ConfigError
from .http_client import HttpClient
from .renderer import BROWSER_ERRORS, PlaywrightRenderer
from .state import RunStateStore

logger = logging.getLogger(__name__)

EXIT_BROWSER_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="site-harvest",
        description="Recursively mirror a web site through a real browser.",
    )
    p.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.json"),
        help="Path to a JSON config file (default: config.json)",
    )
    p.add_argument("--start-url", dest="start_url", default=None)
    p.add_argument(
        "--run-mode",
        dest="run_mode",
        choices=[m.value for m in RunMode],
        default=None,
        help="dry_run classifies and counts without writing content files",
    )
    p.add_argument(
        "--max-depth",
        dest="max_depth",
        type=int,
        default=None,
        help=f"Link depth to follow from the start URL (0-{MAX_DEPTH_LIMIT})",
    )
    p.add_argument("--headless", choices=["true", "false"], default=None)
    p.add_argument(
        "--resume",
        nargs="?",
        const=True,
        default=None,
        metavar="PATH",
        help=(
            "Resume the most recent run under the export root, or the run "
            "directory at PATH"
        ),
    )
    p.add_argument(
        "--export-root",
        dest="export_root",
        type=Path,
        default=None,
        help="Directory holding one timestamped folder per run (default: Export)",
    )
    p.add_argument("--no-progress", action="store_true", help="Hide the progress bar")
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {
        "start_url": args.start_url,
        "run_mode": args.run_mode,
        "max_depth": args.max_depth,
        "headless": args.headless,
        "export_root": str(args.export_root) if args.export_root else None,
    }
    if args.resume is True:
        overrides["resume"] = True
    elif isinstance(args.resume, str):
        overrides["resume_from"] = str(Path(args.resume).resolve())
    if args.no_progress:
        overrides["show_progress"] = False
    return overrides


def _install_interrupt_handler(cancel: CancelToken) -> None:
    def _on_sigint(signum: int, frame: Any) -> None:
        if cancel.cancelled:
            # Second Ctrl-C: stop immediately; the crawler still finalizes.
            signal.signal(signal.SIGINT, signal.default_int_handler)
            raise KeyboardInterrupt
        logger.warning(
            "Caught interrupt signal. Saving state and exiting after the current URL..."
        )
        cancel.cancel()

    signal.signal(signal.SIGINT, _on_sigint)


def _summary_line(summary: CrawlSummary) -> str:
    info = summary.info
    return (
        "site-harvest: "
        f"discovered={info.get('total_discovered', 0)} "
        f"scraped={info.get('successfully_scraped', 0)} "
        f"recovered={info.get('recovered_from_disk', 0)} "
        f"failed={info.get('failed_urls', 0)} "
        f"skipped={info.get('skipped_urls', 0)} "
        f"remaining={summary.remaining} "
        f"out={summary.run_dir}"
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config, _overrides(args))
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        store = RunStateStore.open(
            config.export_root,
            config.start_url,
            resume=config.resume,
            resume_dir=config.resume_from,
        )
    except OSError as e:
        print(f"Cannot create output directory: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger.info("Initializing crawler... Output dir: %s", store.run_dir)

    renderer = PlaywrightRenderer(
        engine=config.browser.engine,
        headless=config.browser.headless,
        viewport=config.browser.viewport,
        user_agent=config.browser.user_agent,
    )
    http = HttpClient(requests.Session(), timeout_s=config.fetch_timeout_s)
    crawler = Crawler(config=config, renderer=renderer, http=http, store=store)

    cancel = CancelToken()
    _install_interrupt_handler(cancel)
    try:
        summary = crawler.run(cancel)
    except KeyboardInterrupt:
        print(f"Interrupted; report saved to {store.report_path}", file=sys.stderr)
        return EXIT_INTERRUPTED
    except BROWSER_ERRORS as e:
        print(f"Browser error: {e}", file=sys.stderr)
        return EXIT_BROWSER_ERROR

    print(_summary_line(summary))
    if summary.cancelled:
        return EXIT_INTERRUPTED
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
