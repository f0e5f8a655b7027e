"""Closed error taxonomy for identity-provider calls.

Every failure of a proxied Cognito call becomes an IdentityProviderError
whose ``kind`` is one member of ProviderErrorKind. Each kind carries a fixed
HTTP status, a stable code and a user-facing message. The provider's own
message text is kept for server-side logs and never sent to clients.
"""

from __future__ import annotations

import logging
from enum import Enum

from ..errors import AppError

logger = logging.getLogger(__name__)


class ProviderErrorKind(Enum):
    """Known Cognito error types, plus a catch-all."""

    USER_NOT_CONFIRMED = (
        "UserNotConfirmedException",
        403,
        "User not confirmed. Please check your email for a verification link.",
    )
    NOT_AUTHORIZED = (
        "NotAuthorizedException",
        401,
        "Incorrect username or password. Please verify your credentials.",
    )
    USER_NOT_FOUND = (
        "UserNotFoundException",
        404,
        "User not found. Please register or check your email address.",
    )
    PASSWORD_RESET_REQUIRED = (
        "PasswordResetRequiredException",
        403,
        "Password reset required. Please reset your password before logging in.",
    )
    CODE_MISMATCH = (
        "CodeMismatchException",
        400,
        "Invalid verification code. Please try again.",
    )
    EXPIRED_CODE = (
        "ExpiredCodeException",
        400,
        "Verification code has expired. Please request a new one.",
    )
    TOO_MANY_REQUESTS = (
        "TooManyRequestsException",
        429,
        "Too many requests. Please try again later.",
    )
    INVALID_PASSWORD = (
        "InvalidPasswordException",
        400,
        "Password does not meet requirements. It should include uppercase, "
        "lowercase, numbers, and special characters.",
    )
    USERNAME_EXISTS = (
        "UsernameExistsException",
        409,
        "An account with this email already exists.",
    )
    LIMIT_EXCEEDED = (
        "LimitExceededException",
        429,
        "Operation limit exceeded. Please try again later.",
    )
    INTERNAL = (
        "INTERNAL_AUTH_ERROR",
        500,
        "An authentication error occurred. Please try again later.",
    )

    def __init__(self, code: str, status_code: int, message: str) -> None:
        self.code = code
        self.status_code = status_code
        self.message = message

    @classmethod
    def from_type(cls, provider_type: str) -> ProviderErrorKind:
        for kind in cls:
            if kind is not cls.INTERNAL and kind.code == provider_type:
                return kind
        return cls.INTERNAL


class IdentityProviderError(AppError):
    """A proxied identity-provider call failed.

    Attributes:
        kind: Classified failure; drives status, code and client message.
        provider_type: Raw error type reported by the provider, for logs.
        provider_message: Raw provider message, for logs only.
    """

    def __init__(
        self,
        kind: ProviderErrorKind,
        provider_type: str | None = None,
        provider_message: str | None = None,
    ) -> None:
        super().__init__(kind.message, kind.status_code, kind.code)
        self.kind = kind
        self.provider_type = provider_type
        self.provider_message = provider_message


def normalize_error_type(raw: str | None) -> str:
    """Strip namespace and URL decorations from a Cognito error type.

    ``__type`` may arrive as ``"com.amazonaws.cognito...#NotAuthorizedException"``
    and the ``x-amzn-ErrorType`` header as ``"NotAuthorizedException:http://..."``.
    """
    if not raw:
        return ""
    return raw.rsplit("#", 1)[-1].split(":", 1)[0].strip()


def map_provider_error(
    raw_type: str | None, provider_message: str | None = None
) -> IdentityProviderError:
    """Classify a provider error type into an IdentityProviderError."""
    provider_type = normalize_error_type(raw_type) or "UnknownError"
    kind = ProviderErrorKind.from_type(provider_type)
    if kind is ProviderErrorKind.INTERNAL:
        logger.error(
            "Unhandled identity provider error type=%r message=%r",
            raw_type,
            provider_message,
        )
    return IdentityProviderError(kind, provider_type, provider_message)
