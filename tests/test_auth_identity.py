from __future__ import annotations

import time

import jwt
import pytest

from wikiserver.auth.config import load_auth_config
from wikiserver.auth.models import Identity
from wikiserver.auth.session import decode_session, encode_session, identity_from_claims, session_cookie_name
from wikiserver.auth.token import bearer_token, decode_token

SECRET = "test-secret-key-for-testing-purposes-only"


def _token(claims: dict, secret: str = SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def test_bearer_token_parsing() -> None:
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("bearer   abc ") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token("Bearer ") is None
    assert bearer_token(None) is None


def test_decode_token_returns_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_TOKEN_SECRET", SECRET)
    cfg = load_auth_config()
    token = _token({"name": "alice", "level": "Editor", "exp": int(time.time()) + 60})

    assert decode_token(cfg, token) == Identity(name="alice", level="Editor")


def test_decode_token_rejects_bad_signature_and_expiry(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_TOKEN_SECRET", SECRET)
    cfg = load_auth_config()

    forged = _token(
        {"name": "alice", "level": "Admin", "exp": int(time.time()) + 60},
        secret="another-secret-key-that-is-long-enough-too",
    )
    expired = _token({"name": "alice", "level": "Admin", "exp": int(time.time()) - 60})
    no_exp = _token({"name": "alice", "level": "Admin"})

    assert decode_token(cfg, forged) is None
    assert decode_token(cfg, expired) is None
    assert decode_token(cfg, no_exp) is None
    assert decode_token(cfg, "not-a-jwt") is None


def test_decode_token_without_secret_is_anonymous() -> None:
    cfg = load_auth_config()
    token = _token({"name": "alice", "level": "Editor", "exp": int(time.time()) + 60})
    assert cfg.token_enabled is False
    assert decode_token(cfg, token) is None


def test_identity_requires_name_and_level() -> None:
    assert identity_from_claims({"name": "alice", "level": "Guest"}) == Identity("alice", "Guest")
    assert identity_from_claims({"name": "alice"}) is None
    assert identity_from_claims({"name": " ", "level": "Guest"}) is None
    assert identity_from_claims({"name": 1, "level": "Guest"}) is None
    assert identity_from_claims(["alice"]) is None


def test_session_round_trip(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_SESSION_SECRET", SECRET)
    cfg = load_auth_config()
    value = encode_session(cfg, Identity(name="bob", level="Guest"))

    assert value is not None
    assert decode_session(cfg, value) == Identity(name="bob", level="Guest")
    assert decode_session(cfg, value + "tampered") is None
    assert session_cookie_name(cfg) == "wiki_session"


def test_session_disabled_without_secret() -> None:
    cfg = load_auth_config()
    assert encode_session(cfg, Identity(name="bob", level="Guest")) is None
    assert decode_session(cfg, "anything") is None


def test_secure_cookie_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_COOKIE_SECURE", "1")
    assert session_cookie_name(load_auth_config()) == "__Host-wiki_session"
