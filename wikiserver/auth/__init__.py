"""
Identity decoding for the wiki server.

Tokens are issued elsewhere; this package only verifies them and turns them into
an `Identity(name, level)`:
- `Authorization: Bearer <jwt>` signed with AUTH_TOKEN_SECRET (HS256)
- a signed session cookie (AUTH_SESSION_SECRET)
"""
