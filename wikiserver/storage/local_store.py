"""Filesystem wiki store: one directory per wiki under a common base directory."""

from __future__ import annotations

import html
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from wikiserver.files.paths import resolve_safe_path

logger = logging.getLogger(__name__)

INDEX_FILE = "index.html"
FAVICON_FILE = "favicon.ico"
FILES_DIR = "files"
PLUGINS_DIR = "plugins"

_WIKI_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

# Top-level route segments served by the HTTP layer; a wiki with one of these
# names could never be reached at /<name>.
RESERVED_WIKI_NAMES = frozenset({"api", "favicon", "favicon.ico", "files", "healthz", "upload"})


def valid_wiki_name(name: str) -> bool:
    if not name or not _WIKI_NAME_RE.match(name) or name in (".", ".."):
        return False
    return name.lower() not in RESERVED_WIKI_NAMES


@dataclass
class LocalWikiStore:
    """
    Layout of a wiki directory:

        <base_dir>/<name>/index.html     rendered page
        <base_dir>/<name>/favicon.ico    optional
        <base_dir>/<name>/plugins/*.js   optional, inlined when assets are requested
        <base_dir>/<name>/files/         uploaded media
    """

    base_dir: str = "./Wikis"

    def __post_init__(self) -> None:
        self.base_dir = os.path.abspath(self.base_dir)

    def wiki_dir(self, name: str) -> Optional[Path]:
        if not valid_wiki_name(name):
            return None
        return resolve_safe_path(self.base_dir, name)

    def files_dir(self, name: str) -> Optional[Path]:
        d = self.wiki_dir(name)
        if d is None:
            return None
        return d / FILES_DIR

    def load_wiki(self, name: str) -> bool:
        """Return True if the wiki exists and has a page to render."""
        d = self.wiki_dir(name)
        return d is not None and (d / INDEX_FILE).is_file()

    def list_wikis(self) -> List[str]:
        base = Path(self.base_dir)
        if not base.is_dir():
            return []
        return sorted(p.name for p in base.iterdir() if p.is_dir() and (p / INDEX_FILE).is_file())

    def render_wiki(self, name: str, include_assets: bool = True) -> str:
        d = self.wiki_dir(name)
        if d is None:
            raise FileNotFoundError(name)
        page = (d / INDEX_FILE).read_text(encoding="utf-8")
        if not include_assets:
            return page
        scripts = self._plugin_scripts(d)
        if not scripts:
            return page
        block = "".join(f"<script>{s}</script>" for s in scripts)
        marker = page.lower().rfind("</body>")
        if marker == -1:
            return page + block
        return page[:marker] + block + page[marker:]

    def favicon(self, name: str) -> Optional[bytes]:
        d = self.wiki_dir(name)
        if d is None:
            return None
        path = d / FAVICON_FILE
        if not path.is_file():
            return None
        return path.read_bytes()

    def put_file(self, name: str, filename: str, body: bytes) -> Path:
        """
        Write an uploaded file into the wiki's files directory.

        Raises ValueError if the wiki name or file name would escape the store.
        """
        files = self.files_dir(name)
        if files is None:
            raise ValueError(f"invalid wiki name: {name!r}")
        files.mkdir(parents=True, exist_ok=True)
        path = resolve_safe_path(files, filename)
        if path is None or path == files.resolve():
            raise ValueError(f"invalid file name: {filename!r}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(body)
        logger.info("Uploaded %s for %s", path, name)
        return path

    def create_wiki(self, name: str, title: Optional[str] = None) -> Path:
        """Create an empty wiki directory with a placeholder page. Existing content is kept."""
        d = self.wiki_dir(name)
        if d is None:
            raise ValueError(f"invalid wiki name: {name!r}")
        (d / FILES_DIR).mkdir(parents=True, exist_ok=True)
        index = d / INDEX_FILE
        if not index.exists():
            heading = html.escape(title or name)
            index.write_text(
                f"<!doctype html><html><head><title>{heading}</title></head><body><h1>{heading}</h1></body></html>",
                encoding="utf-8",
            )
        return d

    @staticmethod
    def _plugin_scripts(wiki_dir: Path) -> List[str]:
        plugins = wiki_dir / PLUGINS_DIR
        if not plugins.is_dir():
            return []
        return [p.read_text(encoding="utf-8") for p in sorted(plugins.glob("*.js")) if p.is_file()]
