from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class ServerConfig:
    # Two-tier configuration files
    defaults_path: str
    local_path: str

    # Upload request bodies larger than this are rejected
    max_upload_bytes: int


@lru_cache(maxsize=1)
def load_server_config() -> ServerConfig:
    """
    Load process-level settings from environment variables.

    Recommended vars:
    - WIKI_CONFIG_DEFAULTS=./Config/defaults.yaml
    - WIKI_CONFIG_LOCAL=./Config/local.yaml
    - WIKI_MAX_UPLOAD_BYTES=10000000
    """
    return ServerConfig(
        defaults_path=(os.getenv("WIKI_CONFIG_DEFAULTS", "") or "").strip() or "./Config/defaults.yaml",
        local_path=(os.getenv("WIKI_CONFIG_LOCAL", "") or "").strip() or "./Config/local.yaml",
        max_upload_bytes=max(1024, _env_int("WIKI_MAX_UPLOAD_BYTES", 10_000_000)),
    )
