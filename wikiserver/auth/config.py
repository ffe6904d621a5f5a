from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


@dataclass(frozen=True)
class AuthConfig:
    # Bearer token verification (HS256 shared secret)
    token_secret: Optional[str]
    token_algorithms: tuple

    # Session cookie configuration
    session_secret: Optional[str]
    session_ttl_seconds: int
    cookie_secure: bool

    @property
    def token_enabled(self) -> bool:
        return bool(self.token_secret)

    @property
    def session_enabled(self) -> bool:
        return bool(self.session_secret)


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load authentication configuration from environment variables.

    With neither secret set every request is anonymous, so only public wikis are served.
    """
    cookie_secure_env = (os.getenv("AUTH_COOKIE_SECURE", "") or "").strip().lower()
    cookie_secure = cookie_secure_env in ("1", "true", "yes", "on")

    ttl = int(float((os.getenv("AUTH_SESSION_TTL_SECONDS", "") or "43200").strip() or "43200"))  # 12h default
    if ttl <= 60:
        ttl = 60

    return AuthConfig(
        token_secret=(os.getenv("AUTH_TOKEN_SECRET", "") or "").strip() or None,
        token_algorithms=("HS256",),
        session_secret=(os.getenv("AUTH_SESSION_SECRET", "") or "").strip() or None,
        session_ttl_seconds=ttl,
        cookie_secure=cookie_secure,
    )
