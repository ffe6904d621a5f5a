from __future__ import annotations

from typing import Optional

from fastapi import Request

from wikiserver.auth.config import load_auth_config
from wikiserver.auth.models import Identity
from wikiserver.auth.session import decode_session, session_cookie_name
from wikiserver.auth.token import bearer_token, decode_token


def authenticate_request(request: Request) -> Optional[Identity]:
    """
    Return the caller's identity, or None for an anonymous request.

    A bearer token takes precedence over the session cookie.
    """
    cfg = load_auth_config()

    token = bearer_token(request.headers.get("authorization"))
    if token is not None:
        return decode_token(cfg, token)

    return decode_session(cfg, request.cookies.get(session_cookie_name(cfg)))
