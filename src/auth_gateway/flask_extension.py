"""Flask extension for cookie-based authentication.

This module is the integration point between SessionResolver and Flask
routes. It implements a decorator-based approach for protecting routes.

Security Model:
1. Read the auth cookie from the request
2. Resolve it through SessionResolver (verification happens there)
3. Store the VerifiedIdentity in ``flask.g.identity`` for the route
4. On rejection, answer with a JSON error and clear the session cookies
"""

from __future__ import annotations

from functools import wraps
from typing import TYPE_CHECKING, Any, Final

from flask import Flask, Response, abort, g, jsonify, make_response, request

from .cookies import clear_session_cookies
from .session import AuthRejection

if TYPE_CHECKING:
    from .models import VerifiedIdentity
    from .protocols import ViewFunc
    from .session import SessionResolver

_EXT_KEY: Final[str] = "auth_extension"
"""Flask extensions registry key for AuthExtension."""


def rejection_response(rejection: AuthRejection, *, secure: bool) -> Response:
    """JSON error response for a rejection, with session cookies cleared."""
    resp = make_response(
        jsonify(
            {
                "error": rejection.message,
                "errorCode": rejection.reason.value,
                "requestId": g.get("request_id"),
            }
        ),
        rejection.status_code,
    )
    clear_session_cookies(resp, secure=secure)
    return resp


class AuthExtension:
    """
    Flask decorator glue for cookie authentication.

    Responsibilities:
    - Resolve the request's cookies into an identity (SessionResolver)
    - Store the identity in ``flask.g.identity``
    - Convert rejections to HTTP responses that also clear session cookies

    Usage:
        auth = AuthExtension(resolver)
        auth.init_app(app)

        @app.get("/me")
        @auth.require()
        def me(): ...
    """

    def __init__(self, resolver: SessionResolver, *, secure_cookies: bool = False) -> None:
        self._resolver = resolver
        self._secure = secure_cookies

    def init_app(
        self,
        app: Flask,
        *,
        resolver: SessionResolver | None = None,
        secure_cookies: bool | None = None,
    ) -> None:
        """Register the extension on ``app.extensions``.

        Args:
            app: The Flask application instance.
            resolver: Replaces the resolver given at construction.
            secure_cookies: Replaces the Secure flag used when clearing cookies.
        """
        if resolver is not None:
            self._resolver = resolver
        if secure_cookies is not None:
            self._secure = secure_cookies

        app.extensions[_EXT_KEY] = self

    def authenticate(self) -> VerifiedIdentity | AuthRejection:
        """Resolve the current request and, on success, set ``g.identity``."""
        outcome = self._resolver.resolve(request.cookies)
        if not isinstance(outcome, AuthRejection):
            g.identity = outcome
        return outcome

    def require(self):
        """Decorator protecting a Flask route with cookie authentication.

        Error mapping:
        - ``NO_TOKEN``          -> HTTP 401
        - ``INVALID_TOKEN``     -> HTTP 401
        - ``KEYS_UNAVAILABLE``  -> HTTP 503
        - ``INTERNAL_ERROR``    -> HTTP 500

        Side Effects:
            - Writes the VerifiedIdentity to ``flask.g.identity``.
            - On rejection, ends the request via ``flask.abort`` with a
              response that clears the session cookies.
        """

        def decorator(view: ViewFunc) -> ViewFunc:
            @wraps(view)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                outcome = self.authenticate()
                if isinstance(outcome, AuthRejection):
                    abort(rejection_response(outcome, secure=self._secure))
                return view(*args, **kwargs)

            return wrapper

        return decorator


def current_identity() -> VerifiedIdentity:
    """Return the identity set by ``AuthExtension.require()``.

    Raises:
        RuntimeError: If called outside a protected route.
    """
    identity = g.get("identity")
    if identity is None:
        raise RuntimeError("No authenticated identity on this request")
    return identity
