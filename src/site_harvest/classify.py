from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Final, Iterable
from urllib.parse import unquote, urlparse

WEB_PRESET: Final = "web"
ALL_PRESET: Final = "all"

PAGE_EXTENSION: Final = "html"

DYNAMIC_PAGE_EXTS: Final[frozenset[str]] = frozenset(
    {
        "html",
        "htm",
        "shtml",
        "xhtml",
        "php",
        "asp",
        "aspx",
        "jsp",
        "jspx",
        "cfm",
        "cgi",
    }
)

_PAGE_CONTENT_TYPES: Final[frozenset[str]] = frozenset(
    {"text/html", "application/xhtml+xml"}
)

# Response types that turn a URL-derived page guess into a file download.
CONTENT_TYPE_EXTENSIONS: Final[dict[str, str]] = {
    "application/pdf": "pdf",
    "application/zip": "zip",
    "application/x-zip-compressed": "zip",
    "application/gzip": "gz",
    "application/x-gzip": "gz",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-powerpoint": "ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "application/rtf": "rtf",
    "text/csv": "csv",
    "application/json": "json",
    "application/xml": "xml",
    "text/xml": "xml",
    "text/plain": "txt",
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "audio/mpeg": "mp3",
    "video/mp4": "mp4",
}


class TargetKind(str, Enum):
    PAGE = "page"
    FILE = "file"
    SKIP = "skip"


@dataclass(frozen=True)
class Classification:
    kind: TargetKind
    extension: str = ""

    @property
    def output_extension(self) -> str:
        if self.kind == TargetKind.PAGE:
            return PAGE_EXTENSION
        return self.extension

    def __str__(self) -> str:
        if self.kind == TargetKind.FILE:
            return f"file:{self.extension}"
        return self.kind.value


SKIP: Final = Classification(TargetKind.SKIP)


@dataclass(frozen=True)
class FileTypePolicy:
    """Which classified targets are eligible for download."""

    file_types: frozenset[str]

    @classmethod
    def from_config(cls, file_types: Iterable[str]) -> "FileTypePolicy":
        return cls(
            frozenset(
                t.strip().lower().lstrip(".") for t in file_types if t and t.strip()
            )
        )

    @property
    def allows_pages(self) -> bool:
        return WEB_PRESET in self.file_types or ALL_PRESET in self.file_types

    def allows_file(self, extension: str) -> bool:
        return ALL_PRESET in self.file_types or extension in self.file_types


def url_extension(url: str) -> str:
    path = unquote(urlparse(url).path or "")
    last = PurePosixPath(path).name if path and not path.endswith("/") else ""
    return PurePosixPath(last).suffix.lower().lstrip(".")


def content_type_extension(content_type: str | None) -> str | None:
    """Map a response Content-Type to a file extension.

    Returns ``PAGE_EXTENSION`` for HTML types and None for unknown types.
    """

    if not content_type:
        return None
    ct = content_type.split(";", 1)[0].strip().lower()
    if ct in _PAGE_CONTENT_TYPES:
        return PAGE_EXTENSION
    return CONTENT_TYPE_EXTENSIONS.get(ct)


def _eligible(kind: TargetKind, extension: str, policy: FileTypePolicy) -> Classification:
    if kind == TargetKind.PAGE:
        return Classification(TargetKind.PAGE) if policy.allows_pages else SKIP
    if policy.allows_file(extension):
        return Classification(TargetKind.FILE, extension)
    return SKIP


def classify(
    url: str,
    policy: FileTypePolicy,
    *,
    content_type: str | None = None,
) -> Classification:
    """Decide whether ``url`` is a page, a downloadable file, or skipped.

    Rules:
    - No extension, or a dynamic page extension, means a page.
    - Any other extension is a candidate file of that extension.
    - A response Content-Type that names a file type overrides a page guess.
    """

    ext = url_extension(url)
    if not ext or ext in DYNAMIC_PAGE_EXTS:
        kind, extension = TargetKind.PAGE, ""
    else:
        kind, extension = TargetKind.FILE, ext

    if kind == TargetKind.PAGE:
        header_ext = content_type_extension(content_type)
        if header_ext is not None and header_ext != PAGE_EXTENSION:
            kind, extension = TargetKind.FILE, header_ext

    return _eligible(kind, extension, policy)


def header_override_extensions() -> frozenset[str]:
    return frozenset(CONTENT_TYPE_EXTENSIONS.values())
