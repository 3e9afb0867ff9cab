from __future__ import annotations

import json
from pathlib import Path

from conftest import FakePage, FakeRenderer, html_page

from site_harvest import cli
from site_harvest.errors import RenderError
from site_harvest.state import REPORT_FILENAME


def _config(tmp_path: Path, **extra) -> Path:
    data = {"start_url": "https://example.com/", "settle_ms": 0, **extra}
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _use_renderer(monkeypatch, renderer) -> None:
    monkeypatch.setattr(cli, "PlaywrightRenderer", lambda **kwargs: renderer)
    monkeypatch.setattr(cli, "_install_interrupt_handler", lambda cancel: None)


def test_missing_start_url_exits_2(tmp_path: Path, capsys):
    code = cli.main(["-c", str(tmp_path / "absent.json")])
    assert code == cli.EXIT_CONFIG_ERROR
    assert "start_url is required" in capsys.readouterr().err


def test_missing_resume_path_exits_2(tmp_path: Path, capsys):
    code = cli.main(
        ["-c", str(_config(tmp_path)), "--resume", str(tmp_path / "gone"), "--no-progress"]
    )
    assert code == cli.EXIT_CONFIG_ERROR
    assert "resume path not found" in capsys.readouterr().err


def test_full_run_prints_summary(tmp_path: Path, monkeypatch, capsys):
    renderer = FakeRenderer(
        {
            "https://example.com/": FakePage(html_page("Home", "/about")),
            "https://example.com/about": FakePage(html_page("About")),
        }
    )
    _use_renderer(monkeypatch, renderer)
    export_root = tmp_path / "Export"

    code = cli.main(
        [
            "-c",
            str(_config(tmp_path)),
            "--export-root",
            str(export_root),
            "--max-depth",
            "1",
            "--no-progress",
        ]
    )

    assert code == 0
    out = capsys.readouterr().out
    assert "discovered=2 scraped=2" in out
    assert "failed=0" in out
    (run_dir,) = export_root.iterdir()
    report = json.loads((run_dir / REPORT_FILENAME).read_text(encoding="utf-8"))
    assert report["page_titles"]["https://example.com/about"] == "About"
    assert renderer.closed


def test_browser_start_failure_exits_1(tmp_path: Path, monkeypatch, capsys):
    class _Broken(FakeRenderer):
        def start(self) -> None:
            raise RenderError("executable doesn't exist")

    _use_renderer(monkeypatch, _Broken({}))
    code = cli.main(
        ["-c", str(_config(tmp_path)), "--export-root", str(tmp_path / "Export"), "--no-progress"]
    )
    assert code == cli.EXIT_BROWSER_ERROR
    assert "Browser error" in capsys.readouterr().err
