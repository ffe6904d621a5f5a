from __future__ import annotations

import logging
from typing import Optional

import jwt  # PyJWT

from wikiserver.auth.config import AuthConfig
from wikiserver.auth.models import Identity
from wikiserver.auth.session import identity_from_claims

logger = logging.getLogger(__name__)


def bearer_token(authorization: str | None) -> Optional[str]:
    raw = (authorization or "").strip()
    if not raw:
        return None
    scheme, _, token = raw.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def decode_token(cfg: AuthConfig, token: str | None) -> Optional[Identity]:
    """
    Verify a bearer token and return the identity it carries.

    Expired, tampered, or malformed tokens give None (anonymous), never an error.
    """
    if not token or not cfg.token_secret:
        return None
    try:
        claims = jwt.decode(
            token,
            key=cfg.token_secret,
            algorithms=list(cfg.token_algorithms),
            options={"require": ["exp"]},
        )
    except jwt.PyJWTError as e:
        logger.debug("Rejected bearer token: %s", e)
        return None
    return identity_from_claims(claims)
