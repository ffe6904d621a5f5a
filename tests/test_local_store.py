from __future__ import annotations

from pathlib import Path

import pytest

from wikiserver.storage.local_store import LocalWikiStore, valid_wiki_name


def _wiki(base: Path, name: str, page: str = "<html><body>hi</body></html>") -> Path:
    d = base / name
    d.mkdir(parents=True)
    (d / "index.html").write_text(page, encoding="utf-8")
    return d


def test_valid_wiki_name() -> None:
    assert valid_wiki_name("RootWiki")
    assert valid_wiki_name("team-notes_2.0")
    assert not valid_wiki_name("")
    assert not valid_wiki_name("..")
    assert not valid_wiki_name(".hidden")
    assert not valid_wiki_name("a/b")


def test_route_names_are_not_wiki_names() -> None:
    for name in ("api", "favicon", "favicon.ico", "files", "healthz", "upload", "Files", "UPLOAD"):
        assert not valid_wiki_name(name), name
    assert valid_wiki_name("files2")
    assert valid_wiki_name("api-docs")


def test_load_and_list_wikis(tmp_path: Path) -> None:
    _wiki(tmp_path, "b")
    _wiki(tmp_path, "a")
    (tmp_path / "empty").mkdir()
    store = LocalWikiStore(base_dir=str(tmp_path))

    assert store.load_wiki("a") is True
    assert store.load_wiki("empty") is False
    assert store.load_wiki("../a") is False
    assert store.list_wikis() == ["a", "b"]


def test_render_inlines_plugins_only_when_requested(tmp_path: Path) -> None:
    d = _wiki(tmp_path, "a")
    (d / "plugins").mkdir()
    (d / "plugins" / "sync.js").write_text("var x = 1;", encoding="utf-8")
    store = LocalWikiStore(base_dir=str(tmp_path))

    assert store.render_wiki("a", include_assets=False) == "<html><body>hi</body></html>"
    assert store.render_wiki("a", include_assets=True) == "<html><body>hi<script>var x = 1;</script></body></html>"


def test_favicon(tmp_path: Path) -> None:
    d = _wiki(tmp_path, "a")
    store = LocalWikiStore(base_dir=str(tmp_path))
    assert store.favicon("a") is None
    (d / "favicon.ico").write_bytes(b"\x00\x01")
    assert store.favicon("a") == b"\x00\x01"


def test_put_file_writes_inside_files_dir(tmp_path: Path) -> None:
    _wiki(tmp_path, "a")
    store = LocalWikiStore(base_dir=str(tmp_path))

    path = store.put_file("a", "img/pic.png", b"png")

    assert path == (tmp_path / "a" / "files" / "img" / "pic.png").resolve()
    assert path.read_bytes() == b"png"


def test_put_file_rejects_escape(tmp_path: Path) -> None:
    _wiki(tmp_path, "a")
    store = LocalWikiStore(base_dir=str(tmp_path))

    with pytest.raises(ValueError):
        store.put_file("a", "../index.html", b"pwned")
    with pytest.raises(ValueError):
        store.put_file("a", ".", b"x")
    with pytest.raises(ValueError):
        store.put_file("../a", "x.png", b"x")
    assert (tmp_path / "a" / "index.html").read_text(encoding="utf-8") == "<html><body>hi</body></html>"


def test_create_wiki_keeps_existing_page(tmp_path: Path) -> None:
    store = LocalWikiStore(base_dir=str(tmp_path))
    store.create_wiki("fresh")
    assert store.load_wiki("fresh") is True
    assert (tmp_path / "fresh" / "files").is_dir()

    _wiki(tmp_path, "old", page="original")
    store.create_wiki("old")
    assert store.render_wiki("old") == "original"
