"""Session cookie policy.

All three session cookies are HttpOnly, SameSite=Strict and scoped to ``/``.
The Secure flag is set in production only so the gateway stays usable over
plain HTTP on a developer machine.
"""

from __future__ import annotations

from typing import Final

from flask import Response

from .session import AUTH_TOKEN_COOKIE, EMAIL_COOKIE, REFRESH_TOKEN_COOKIE

AUTH_TOKEN_MAX_AGE: Final[int] = 12 * 60 * 60
REFRESH_TOKEN_MAX_AGE: Final[int] = 7 * 24 * 60 * 60
SESSION_COOKIES: Final[tuple[str, ...]] = (AUTH_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, EMAIL_COOKIE)


def _set(resp: Response, name: str, value: str, max_age: int, secure: bool) -> None:
    resp.set_cookie(
        name,
        value,
        max_age=max_age,
        httponly=True,
        secure=secure,
        samesite="Strict",
        path="/",
    )


def set_session_cookies(
    resp: Response,
    *,
    secure: bool,
    auth_token: str,
    refresh_token: str | None = None,
    email: str | None = None,
) -> None:
    """Write the session cookies that have a value.

    The email cookie lives as long as the refresh token because the refresh
    call needs it to re-derive the secret hash.
    """
    _set(resp, AUTH_TOKEN_COOKIE, auth_token, AUTH_TOKEN_MAX_AGE, secure)
    if refresh_token:
        _set(resp, REFRESH_TOKEN_COOKIE, refresh_token, REFRESH_TOKEN_MAX_AGE, secure)
    if email:
        _set(resp, EMAIL_COOKIE, email, REFRESH_TOKEN_MAX_AGE, secure)


def clear_session_cookies(resp: Response, *, secure: bool) -> None:
    for name in SESSION_COOKIES:
        resp.delete_cookie(name, path="/", secure=secure, httponly=True, samesite="Strict")
