"""Session resolution: cookie in, identity or rejection out.

SessionResolver is the boundary between the verification core and the HTTP
layer. Nothing raised by the verifier crosses it: every failure is classified
into an AuthRejection. Clearing cookies on rejection is left to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from .errors import KeyFetchError, TokenError

if TYPE_CHECKING:
    from .models import VerifiedIdentity
    from .protocols import TokenVerifier

logger = logging.getLogger(__name__)

AUTH_TOKEN_COOKIE: Final[str] = "authToken"
REFRESH_TOKEN_COOKIE: Final[str] = "refreshToken"
EMAIL_COOKIE: Final[str] = "email"


class RejectionReason(StrEnum):
    NO_TOKEN = "NO_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    KEYS_UNAVAILABLE = "KEYS_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_STATUS: Final[dict[RejectionReason, int]] = {
    RejectionReason.NO_TOKEN: 401,
    RejectionReason.INVALID_TOKEN: 401,
    RejectionReason.KEYS_UNAVAILABLE: 503,
    RejectionReason.INTERNAL_ERROR: 500,
}

_MESSAGES: Final[dict[RejectionReason, str]] = {
    RejectionReason.NO_TOKEN: "No authentication token provided",
    RejectionReason.INVALID_TOKEN: "Invalid authentication token",
    RejectionReason.KEYS_UNAVAILABLE: "Authentication is temporarily unavailable",
    RejectionReason.INTERNAL_ERROR: "An unexpected error occurred",
}


@dataclass(frozen=True, slots=True)
class AuthRejection:
    """Why a request could not be authenticated."""

    reason: RejectionReason

    @property
    def status_code(self) -> int:
        return _STATUS[self.reason]

    @property
    def message(self) -> str:
        return _MESSAGES[self.reason]


class SessionResolver:
    """Resolves the request's auth cookie into a VerifiedIdentity.

    Args:
        verifier: Verifies the raw token.
        cookie_name: Cookie carrying the bearer token.
    """

    def __init__(self, verifier: TokenVerifier, cookie_name: str = AUTH_TOKEN_COOKIE) -> None:
        if not cookie_name or not cookie_name.strip():
            raise ValueError("cookie_name cannot be empty")
        self._verifier = verifier
        self._cookie_name = cookie_name

    def resolve(self, cookies: Mapping[str, str]) -> VerifiedIdentity | AuthRejection:
        token = cookies.get(self._cookie_name)
        if not token:
            return AuthRejection(RejectionReason.NO_TOKEN)

        try:
            return self._verifier.verify(token)
        except TokenError as e:
            logger.info("Token rejected (%s): %s", e.reason, e)
            return AuthRejection(RejectionReason.INVALID_TOKEN)
        except KeyFetchError:
            logger.error("Signing keys unavailable; cannot verify token", exc_info=True)
            return AuthRejection(RejectionReason.KEYS_UNAVAILABLE)
        except Exception:
            logger.exception("Unexpected failure while verifying token")
            return AuthRejection(RejectionReason.INTERNAL_ERROR)
