from __future__ import annotations

import hashlib
import re
import time
from datetime import datetime

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")
# run_timestamp() output, plus the _N suffix added on same-second collisions.
RUN_DIR_RE = re.compile(r"^\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}(?:_\d+)?$")

MAX_STEM_LEN = 150


def utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def run_timestamp(now: datetime | None = None) -> str:
    """Name for a new run directory; sorts lexicographically by time."""

    now = now or datetime.now()
    return now.strftime("%Y-%m-%d_%H-%M-%S")


def url_key(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:12]


def sanitize_url(url: str, *, max_len: int = MAX_STEM_LEN) -> str:
    text = _SCHEME_RE.sub("", url.strip())
    text = _UNSAFE_CHARS_RE.sub("_", text)
    text = text.strip("._")
    if not text:
        return "index"
    return text[:max_len]


def output_filename(url: str, extension: str) -> str:
    """Deterministic flat filename for the artifact fetched from ``url``.

    The sanitized URL keeps names readable; the URL hash suffix keeps them
    unique when sanitization or truncation maps two URLs to the same stem.
    """

    ext = extension.lower().lstrip(".")
    stem = sanitize_url(url)
    if ext and stem.lower().endswith("." + ext):
        stem = stem[: -(len(ext) + 1)] or "index"
    name = f"{stem}--{url_key(url)}"
    return f"{name}.{ext}" if ext else name
