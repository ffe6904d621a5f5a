from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """Decoded caller identity (from a bearer token or session cookie)."""

    name: str
    level: str
