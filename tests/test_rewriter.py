from __future__ import annotations

from pathlib import Path
import threading

import pytest

from sitekit.core import (
    AssetNotFoundError,
    Assets,
    PreprocessingError,
    ReferenceCycleError,
)
from sitekit.core.rewriter import root_reference


def _write(root: Path, relative: str, content: str | bytes) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        path.write_text(content, encoding="utf-8")
    else:
        path.write_bytes(content)
    return path


@pytest.fixture
def site(tmp_path: Path) -> Assets:
    root = tmp_path / "site"
    _write(root, "css/logo.png", b"\x89PNG\r\n\x1a\nlogo")
    _write(root, "img/bg.jpg", b"\xff\xd8\xffbackground")
    _write(root, "js/app.js.map", '{"version": 3}')
    assets = Assets()
    assets.register_directory(root, "/")
    return assets


@pytest.mark.parametrize(
    ("from_path", "reference", "expected"),
    [
        ("/css/site.css", "logo.png", "/css/logo.png"),
        ("/css/site.css", "./logo.png", "/css/logo.png"),
        ("/css/site.css", "../img/bg.jpg", "/img/bg.jpg"),
        ("/css/site.css", "/fonts/a.woff2", "/fonts/a.woff2"),
        ("/site.css", "sub/dir/../x.png", "/sub/x.png"),
    ],
)
def test_root_reference(from_path: str, reference: str, expected: str) -> None:
    assert root_reference(from_path, reference) == expected


def test_css_url_is_rewritten_to_fingerprinted_url(site: Assets, tmp_path: Path) -> None:
    site.register_file(
        _write(tmp_path, "site.css", ".logo { background: url(./logo.png); }"), "/css/site.css"
    )

    content = site.resolve("/css/site.css").content
    expected = site.public_url("/css/logo.png")

    assert content == f".logo {{ background: url({expected}); }}".encode()


def test_css_url_keeps_quotes_and_fragment(site: Assets, tmp_path: Path) -> None:
    site.register_file(
        _write(
            tmp_path,
            "site.css",
            "a { b: url('../img/bg.jpg'); c: url(\"logo.png?v=2#icon\"); }",
        ),
        "/css/site.css",
    )

    content = site.resolve("/css/site.css").content.decode()
    background = site.public_url("/img/bg.jpg")
    logo = site.public_url("/css/logo.png")

    assert f"url('{background}')" in content
    assert f'url("{logo}#icon")' in content
    assert "?v=2" not in content


def test_external_references_are_left_alone(site: Assets, tmp_path: Path) -> None:
    source = (
        "a { b: url(data:image/png;base64,AAAA); "
        "c: url(https://example.com/x.png); "
        "d: url(//cdn.example.com/y.png); "
        "e: url(#clip); }"
    )
    site.register_file(_write(tmp_path, "site.css", source), "/css/site.css")

    assert site.resolve("/css/site.css").content == source.encode()


def test_source_map_reference_is_rewritten(site: Assets, tmp_path: Path) -> None:
    site.register_file(
        _write(tmp_path, "app.css", "body{}\n/*# sourceMappingURL=../js/app.js.map */\n"),
        "/css/app.css",
    )

    content = site.resolve("/css/app.css").content
    expected = site.public_url("/js/app.js.map")

    assert content == f"body{{}}\n/*# sourceMappingURL={expected} */\n".encode()


def test_fingerprint_covers_rewritten_content(site: Assets, tmp_path: Path) -> None:
    site.register_file(_write(tmp_path, "a.css", "x { y: url(logo.png); }"), "/css/a.css")

    entry = site.resolve("/css/a.css")

    assert b"logo.png" not in entry.content
    assert site.lookup_fingerprint(entry.fingerprint_hex) is entry


def test_missing_reference_aborts_and_leaves_entry_unmaterialized(
    site: Assets, tmp_path: Path
) -> None:
    site.register_file(_write(tmp_path, "a.css", "x { y: url(missing.png); }"), "/css/a.css")

    with pytest.raises(PreprocessingError, match="missing.png") as excinfo:
        site.resolve("/css/a.css")
    assert isinstance(excinfo.value.__cause__, AssetNotFoundError)

    entry = site.resolve("/css/logo.png")
    assert entry.materialized
    site.register_file(_write(tmp_path, "missing.png", b"\x89PNG\r\n\x1a\nlate"), "/css/missing.png")
    assert b"/a/" in site.resolve("/css/a.css").content


def test_mutual_references_raise_cycle_error(tmp_path: Path) -> None:
    assets = Assets()
    assets.register_file(_write(tmp_path, "a.css", "a { b: url(b.css); }"), "/a.css")
    assets.register_file(_write(tmp_path, "b.css", "b { a: url(a.css); }"), "/b.css")

    with pytest.raises(ReferenceCycleError) as excinfo:
        assets.resolve("/a.css")

    assert excinfo.value.chain == ["/a.css", "/b.css", "/a.css"]
    assert "/a.css -> /b.css -> /a.css" in str(excinfo.value)
    assert "/a.css" in assets
    assert assets.lookup_fingerprint("0" * 40) is None


def test_self_reference_raises_cycle_error(tmp_path: Path) -> None:
    assets = Assets()
    assets.register_file(_write(tmp_path, "self.css", "a { b: url(self.css); }"), "/self.css")

    with pytest.raises(ReferenceCycleError) as excinfo:
        assets.resolve("/self.css")

    assert excinfo.value.chain == ["/self.css", "/self.css"]


def test_cycle_across_threads_is_reported_instead_of_deadlocking(tmp_path: Path) -> None:
    started = {"/a.txt": threading.Event(), "/b.txt": threading.Event()}
    partner = {"/a.txt": "/b.txt", "/b.txt": "/a.txt"}

    def _depends_on_partner(assets: Assets, path: str, content: bytes) -> bytes:
        started[path].set()
        started[partner[path]].wait(timeout=5)
        return content + assets.public_url(partner[path]).encode()

    assets = Assets()
    assets.add_preprocessor(".txt", _depends_on_partner)
    assets.register_file(_write(tmp_path, "a.txt", "a"), "/a.txt")
    assets.register_file(_write(tmp_path, "b.txt", "b"), "/b.txt")

    errors: dict[str, BaseException] = {}

    def _worker(path: str) -> None:
        try:
            assets.resolve(path)
        except PreprocessingError as exc:
            errors[path] = exc

    threads = [threading.Thread(target=_worker, args=(path,)) for path in ("/a.txt", "/b.txt")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert not any(thread.is_alive() for thread in threads)
    assert set(errors) == {"/a.txt", "/b.txt"}
    assert all(isinstance(error, ReferenceCycleError) for error in errors.values())
