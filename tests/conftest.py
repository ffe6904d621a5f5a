"""
Pytest config.

Pins the repo root on sys.path so `import wikiserver` works without installing,
and resets cached configuration between tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


@pytest.fixture(autouse=True)
def _reset_cached_config(monkeypatch: pytest.MonkeyPatch):
    """
    Config loaders are lru_cached and the server keeps a process-wide runtime.
    Clear both around every test so env changes made with monkeypatch take effect.
    """
    from wikiserver.api import server
    from wikiserver.auth.config import load_auth_config
    from wikiserver.settings.config import load_server_config

    for name in ("AUTH_TOKEN_SECRET", "AUTH_SESSION_SECRET", "AUTH_COOKIE_SECURE", "AUTH_SESSION_TTL_SECONDS"):
        monkeypatch.delenv(name, raising=False)

    load_auth_config.cache_clear()
    load_server_config.cache_clear()
    server.set_runtime(None)
    yield
    load_auth_config.cache_clear()
    load_server_config.cache_clear()
    server.set_runtime(None)
