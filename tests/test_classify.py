from __future__ import annotations

import pytest

from site_harvest.classify import (
    Classification,
    FileTypePolicy,
    TargetKind,
    classify,
    content_type_extension,
    url_extension,
)

WEB = FileTypePolicy.from_config(["web"])
WEB_PDF = FileTypePolicy.from_config(["web", "pdf"])
ALL = FileTypePolicy.from_config(["all"])


@pytest.mark.parametrize(
    "url, ext",
    [
        ("https://example.com/", ""),
        ("https://example.com/about", ""),
        ("https://example.com/docs.v2/", ""),
        ("https://example.com/report.PDF?x=1", "pdf"),
        ("https://example.com/a%20b.docx", "docx"),
    ],
)
def test_url_extension(url, ext):
    assert url_extension(url) == ext


def test_extensionless_and_dynamic_urls_are_pages():
    assert classify("https://example.com/about", WEB).kind == TargetKind.PAGE
    assert classify("https://example.com/index.php?id=3", WEB).kind == TargetKind.PAGE
    assert classify("https://example.com/a.aspx", WEB).output_extension == "html"


def test_pages_need_web_or_all():
    pdf_only = FileTypePolicy.from_config(["pdf"])
    assert classify("https://example.com/about", pdf_only).kind == TargetKind.SKIP
    assert classify("https://example.com/about", ALL).kind == TargetKind.PAGE


def test_files_need_their_extension_or_all():
    assert classify("https://example.com/report.pdf", WEB).kind == TargetKind.SKIP
    assert classify("https://example.com/report.pdf", WEB_PDF) == Classification(
        TargetKind.FILE, "pdf"
    )
    assert classify("https://example.com/data.zip", ALL) == Classification(TargetKind.FILE, "zip")


def test_policy_normalizes_entries():
    policy = FileTypePolicy.from_config([".PDF", " Web ", ""])
    assert policy.allows_file("pdf")
    assert policy.allows_pages


def test_content_type_overrides_page_guess():
    result = classify("https://example.com/download", WEB_PDF, content_type="application/pdf")
    assert str(result) == "file:pdf"


def test_content_type_override_respects_allow_list():
    result = classify("https://example.com/download", WEB, content_type="application/pdf")
    assert result.kind == TargetKind.SKIP


def test_html_and_unknown_content_types_keep_page():
    url = "https://example.com/about"
    assert classify(url, WEB, content_type="text/html; charset=utf-8").kind == TargetKind.PAGE
    assert classify(url, WEB, content_type="application/x-unknown").kind == TargetKind.PAGE


def test_content_type_extension():
    assert content_type_extension("application/pdf; qs=0.1") == "pdf"
    assert content_type_extension("application/xhtml+xml") == "html"
    assert content_type_extension(None) is None
