"""Confine wiki file requests to the wiki's files directory and pick a media type."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional, Union

DEFAULT_MIME_MAP: Mapping[str, str] = {
    ".aac": "audio/aac",
    ".avi": "video/x-msvideo",
    ".csv": "text/csv",
    ".doc": "application/msword",
    ".epub": "application/epub+zip",
    ".gif": "image/gif",
    ".html": "text/html",
    ".htm": "text/html",
    ".ico": "image/x-icon",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".mp3": "audio/mpeg",
    ".mpeg": "video/mpeg",
    ".oga": "audio/ogg",
    ".ogv": "video/ogg",
    ".ogx": "application/ogg",
    ".png": "image/png",
    ".svg": "image/svg+xml",
    ".weba": "audio/weba",
    ".webm": "video/webm",
    ".wav": "audio/wav",
}


def is_within(root: Union[str, Path], candidate: Union[str, Path]) -> bool:
    """
    True if `candidate` is `root` or lies inside it.

    Compares whole path segments, so `/data/wiki1-evil` is not inside `/data/wiki1`.
    Both paths must already be absolute and normalized.
    """
    root_s = os.fspath(root)
    cand_s = os.fspath(candidate)
    try:
        return os.path.commonpath([root_s, cand_s]) == root_s
    except ValueError:
        # Different drives, or mixing absolute and relative paths.
        return False


def resolve_safe_path(files_root: Union[str, Path], relative: str) -> Optional[Path]:
    """
    Resolve a user-supplied path against a wiki's files directory.

    Returns the absolute path, or None (denied) when the result would land outside
    `files_root`: `..` segments, absolute paths, or symlinks pointing elsewhere.
    """
    if not relative or "\x00" in relative:
        return None
    if os.path.isabs(relative):
        return None
    root = os.path.realpath(os.path.abspath(os.fspath(files_root)))
    candidate = os.path.realpath(os.path.join(root, relative))
    if not is_within(root, candidate):
        return None
    return Path(candidate)


def mime_for(path: Union[str, Path], mime_map: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Media type for `path`, or None if the extension is not allowlisted (do not serve it)."""
    ext = os.path.splitext(os.fspath(path))[1].lower()
    if not ext:
        return None
    table = mime_map if mime_map else DEFAULT_MIME_MAP
    media_type = table.get(ext)
    if not isinstance(media_type, str) or not media_type:
        return None
    return media_type
