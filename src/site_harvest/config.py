from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from .errors import ConfigError
from .renderer import DEFAULT_USER_AGENT, BrowserEngine
from .urls import is_http_url, normalize_url

logger = logging.getLogger(__name__)

MAX_DEPTH_LIMIT = 10


class RunMode(str, Enum):
    DRY_RUN = "dry_run"
    FULL_RUN = "full_run"

    @classmethod
    def parse(cls, value: str) -> "RunMode":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigError(
                f"Unknown run_mode {value!r}; expected dry_run or full_run"
            ) from None


@dataclass(frozen=True)
class BrowserConfig:
    engine: BrowserEngine = BrowserEngine.CHROMIUM
    headless: bool = True
    viewport: tuple[int, int] = (1920, 1080)
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(frozen=True)
class CrawlerConfig:
    start_url: str
    max_depth: int = 2
    file_types: tuple[str, ...] = ("web",)
    blocked_paths: tuple[str, ...] = ()
    blocked_hosts: tuple[str, ...] = ()
    allowed_external_domains: tuple[str, ...] = ()
    run_mode: RunMode = RunMode.FULL_RUN
    export_root: Path = Path("Export")
    resume: bool = False
    resume_from: Path | None = None
    navigation_timeout_ms: int = 60_000
    challenge_timeout_ms: int = 30_000
    settle_ms: int = 1_000
    fetch_timeout_s: float = 60
    show_progress: bool = True
    browser: BrowserConfig = field(default_factory=BrowserConfig)

    @property
    def dry_run(self) -> bool:
        return self.run_mode == RunMode.DRY_RUN


def _str_tuple(raw: Mapping[str, Any], key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{key} must be a list of strings")
    return tuple(value)


def _int(raw: Mapping[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer") from None


def _bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise ConfigError(f"{key} must be true or false")


def _browser_config(raw: Any) -> BrowserConfig:
    if raw is None:
        return BrowserConfig()
    if not isinstance(raw, dict):
        raise ConfigError("browser_config must be an object")

    viewport = raw.get("viewport") or {}
    if not isinstance(viewport, dict):
        raise ConfigError("browser_config.viewport must be an object")
    default = BrowserConfig()
    return BrowserConfig(
        engine=BrowserEngine.parse(raw.get("browser_type", default.engine.value)),
        headless=_bool(raw.get("headless", default.headless), "browser_config.headless"),
        viewport=(
            _int(viewport, "width", default.viewport[0]),
            _int(viewport, "height", default.viewport[1]),
        ),
        user_agent=str(raw.get("user_agent") or default.user_agent),
    )


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a JSON config file; a missing file means an empty config."""

    if not path.exists():
        logger.warning("Config file not found at %s, using defaults/CLI args only.", path)
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def build_config(raw: Mapping[str, Any]) -> CrawlerConfig:
    start_url = str(raw.get("start_url") or "").strip()
    if not start_url:
        raise ConfigError("start_url is required (in config or CLI)")
    if not is_http_url(start_url):
        raise ConfigError(f"start_url must be an http(s) URL: {start_url}")

    max_depth = _int(raw, "max_depth", 2)
    if not 0 <= max_depth <= MAX_DEPTH_LIMIT:
        raise ConfigError(f"max_depth must be between 0 and {MAX_DEPTH_LIMIT}")

    file_types = _str_tuple(raw, "file_types", ("web",))
    if not file_types:
        raise ConfigError("file_types must not be empty")

    resume_from = raw.get("resume_from")
    resume_path = Path(resume_from) if resume_from else None
    if resume_path is not None and not resume_path.is_dir():
        raise ConfigError(f"Specified resume path not found: {resume_path}")

    return CrawlerConfig(
        start_url=normalize_url(start_url),
        max_depth=max_depth,
        file_types=file_types,
        blocked_paths=_str_tuple(raw, "blocked_paths", ()),
        blocked_hosts=_str_tuple(raw, "blocked_hosts", ()),
        allowed_external_domains=_str_tuple(raw, "allowed_external_domains", ()),
        run_mode=RunMode.parse(raw.get("run_mode", RunMode.FULL_RUN.value)),
        export_root=Path(raw.get("export_root") or "Export"),
        resume=bool(raw.get("resume")) or resume_path is not None,
        resume_from=resume_path,
        navigation_timeout_ms=_int(raw, "navigation_timeout_ms", 60_000),
        challenge_timeout_ms=_int(raw, "challenge_timeout_ms", 30_000),
        settle_ms=_int(raw, "settle_ms", 1_000),
        fetch_timeout_s=float(_int(raw, "fetch_timeout_s", 60)),
        show_progress=_bool(raw.get("show_progress", True), "show_progress"),
        browser=_browser_config(raw.get("browser_config")),
    )


def load_config(path: Path | None, overrides: Mapping[str, Any] | None = None) -> CrawlerConfig:
    """Merge a JSON config file with CLI overrides and validate the result.

    Override values of None are ignored. ``headless`` overrides the nested
    ``browser_config.headless`` key.
    """

    raw: dict[str, Any] = read_config_file(path) if path is not None else {}
    overrides = dict(overrides or {})

    headless = overrides.pop("headless", None)
    if headless is not None:
        browser_raw = dict(raw.get("browser_config") or {})
        browser_raw["headless"] = headless
        raw["browser_config"] = browser_raw

    raw.update({k: v for k, v in overrides.items() if v is not None})
    return build_config(raw)
