from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from starlette.applications import Starlette
from typer.testing import CliRunner

from sitekit.ui.cli import app


WIDE = {"COLUMNS": "200"}


def _write_site(tmp_path: Path) -> Path:
    static = tmp_path / "static"
    (static / "css").mkdir(parents=True)
    (static / "css" / "site.css").write_text("body { background: url(bg.png); }", encoding="utf-8")
    (static / "css" / "bg.png").write_bytes(b"\x89PNG\r\n\x1a\nbg")
    (tmp_path / "index.html").write_text(
        "{% block title %}Home{% endblock %}: {{ message }}", encoding="utf-8"
    )
    config = tmp_path / "site.yml"
    config.write_text(
        "mounts:\n"
        "  - source: static\n"
        "    prefix: /static/\n"
        "files:\n"
        "  - source: index.html\n"
        "    path: /index.html\n"
        "templates:\n"
        "  /: [/index.html]\n",
        encoding="utf-8",
    )
    return config


def test_urls_lists_every_asset(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["urls", str(_write_site(tmp_path))], env=WIDE)

    assert result.exit_code == 0, result.output
    assert "Published Assets" in result.stdout
    assert "/static/css/site.css" in result.stdout
    assert "/static/css/bg.png" in result.stdout
    assert "/index.html" in result.stdout
    assert "image/png" in result.stdout


def test_urls_reports_invalid_config(tmp_path: Path) -> None:
    config = tmp_path / "site.yml"
    config.write_text("base_url: /no-trailing-slash\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(app, ["urls", str(config)], env=WIDE)

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_render_writes_template_to_stdout(tmp_path: Path) -> None:
    config = _write_site(tmp_path)
    data = tmp_path / "data.yml"
    data.write_text("message: hello\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(app, ["render", str(config), "/index.html", "--data", str(data)])

    assert result.exit_code == 0, result.output
    assert result.stdout == "Home: hello"


def test_render_named_block(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        app, ["render", str(_write_site(tmp_path)), "/index.html", "--name", "title"]
    )

    assert result.exit_code == 0, result.output
    assert result.stdout == "Home"


def test_render_reports_missing_template(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["render", str(_write_site(tmp_path)), "/missing.html"], env=WIDE)

    assert result.exit_code == 1
    assert "File Not Found: /missing.html" in result.output


def test_render_rejects_non_mapping_data(tmp_path: Path) -> None:
    data = tmp_path / "data.yml"
    data.write_text("- a\n- b\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(
        app, ["render", str(_write_site(tmp_path)), "/index.html", "--data", str(data)]
    )

    assert result.exit_code == 2


def test_serve_builds_app_and_runs_uvicorn(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_run(application: Any, **kwargs: Any) -> None:
        captured["app"] = application
        captured.update(kwargs)

    monkeypatch.setattr("uvicorn.run", fake_run)

    runner = CliRunner()
    result = runner.invoke(app, ["serve", str(_write_site(tmp_path)), "--port", "9001"])

    assert result.exit_code == 0, result.output
    assert isinstance(captured["app"], Starlette)
    assert captured["host"] == "127.0.0.1"
    assert captured["port"] == 9001
    paths = [getattr(route, "path", None) for route in captured["app"].routes]
    assert "/a/{fingerprint}" in paths
    assert "/" in paths


def test_urls_warns_about_empty_site(tmp_path: Path) -> None:
    config = tmp_path / "site.yml"
    config.write_text("base_url: /a/\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(app, ["urls", str(config)], env=WIDE)

    assert result.exit_code == 0
    assert "No assets registered." in result.output
