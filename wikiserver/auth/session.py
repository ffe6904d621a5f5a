from __future__ import annotations

import json
from dataclasses import asdict
from typing import Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from wikiserver.auth.config import AuthConfig
from wikiserver.auth.models import Identity

SESSION_SALT = "wikiserver-session-v1"


def session_cookie_name(cfg: AuthConfig) -> str:
    # `__Host-` requires Secure + Path=/ + no Domain; browsers may reject it on HTTP.
    return "__Host-wiki_session" if cfg.cookie_secure else "wiki_session"


def _serializer(cfg: AuthConfig) -> Optional[URLSafeTimedSerializer]:
    if not cfg.session_secret:
        return None
    return URLSafeTimedSerializer(secret_key=cfg.session_secret, salt=SESSION_SALT)


def encode_session(cfg: AuthConfig, identity: Identity) -> Optional[str]:
    s = _serializer(cfg)
    if s is None:
        return None
    raw = json.dumps(asdict(identity), separators=(",", ":"), sort_keys=True)
    return s.dumps(raw)


def decode_session(cfg: AuthConfig, value: str | None) -> Optional[Identity]:
    if not value:
        return None
    s = _serializer(cfg)
    if s is None:
        return None
    try:
        raw = s.loads(value, max_age=cfg.session_ttl_seconds)
        data = json.loads(raw)
    except (BadSignature, BadTimeSignature, ValueError):
        return None
    return identity_from_claims(data)


def identity_from_claims(data: object) -> Optional[Identity]:
    """Build an Identity from decoded claims; both `name` and `level` must be non-empty strings."""
    if not isinstance(data, dict):
        return None
    name = data.get("name")
    level = data.get("level")
    if not isinstance(name, str) or not name.strip():
        return None
    if not isinstance(level, str) or not level.strip():
        return None
    return Identity(name=name.strip(), level=level.strip())
