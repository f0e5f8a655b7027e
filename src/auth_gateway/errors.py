"""Authentication and gateway errors.

This module defines the exception hierarchy for the verification path and the
generic application error used by the HTTP layer. All verification failures
inherit from AuthError so callers can catch them with a single clause.

Security Note:
    Messages carried by these exceptions are for server-side logs. Clients
    only ever see the fixed codes and messages chosen at the HTTP boundary.
"""

from __future__ import annotations

from enum import StrEnum


class TokenErrorReason(StrEnum):
    """Why a presented token was refused."""

    MALFORMED = "MALFORMED"
    UNKNOWN_KEY = "UNKNOWN_KEY"
    INVALID = "INVALID"


class AuthError(Exception):
    """Base exception for all authentication failures."""


class TokenError(AuthError):
    """Raised when a token is present but cannot be trusted.

    Subclasses fix the ``reason``. Every subclass maps to a 401 at the
    boundary; the reason exists for logs and for the rotation retry.
    """

    reason: TokenErrorReason = TokenErrorReason.INVALID


class MalformedToken(TokenError):  # noqa: N818
    """Token structure or header could not be parsed, or ``kid`` is missing."""

    reason = TokenErrorReason.MALFORMED


class UnknownSigningKey(TokenError):  # noqa: N818
    """The token's ``kid`` is not in the key set, even after one refresh."""

    reason = TokenErrorReason.UNKNOWN_KEY


class InvalidToken(TokenError):  # noqa: N818
    """Raised when signature, issuer, audience, algorithm or claims fail.

    This occurs when:
    - Signature verification fails (wrong key or tampered token)
    - Issuer (iss) doesn't match the configured user pool
    - Algorithm (alg) is not the allowed one
    - A required claim (exp, iat, sub) is missing
    - The key material for the kid is unusable
    """

    reason = TokenErrorReason.INVALID


class ExpiredToken(InvalidToken):  # noqa: N818
    """The token's ``exp`` claim has passed.

    Note:
        Treated exactly like InvalidToken. The subclass only helps debugging.
    """


class KeyFetchError(AuthError):
    """The JWKS endpoint could not be reached and no cached key set exists.

    This is an availability problem on our side, not a client error, and
    surfaces as 503.
    """


class AppError(Exception):
    """Application error carrying an HTTP status and a stable error code.

    Args:
        message: Human-readable message returned to the client.
        status_code: HTTP status. Defaults to 500.
        error_code: Machine-readable code. Defaults to INTERNAL_SERVER_ERROR.
        details: Optional structured details (e.g. invalid fields).
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_SERVER_ERROR",
        details: object | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
