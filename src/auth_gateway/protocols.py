"""Protocol definitions for the gateway.

This module defines structural interfaces using Protocol (PEP 544) for:
- Fetching signing keys
- Token verification
- Identity-provider calls

Using protocols lets tests pass small fakes without inheriting from the
production classes.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias

if TYPE_CHECKING:
    from .identity_provider.client import AuthenticationResult
    from .models import SigningKey, VerifiedIdentity

# ============================================================================
# Type Aliases
# ============================================================================

Claims: TypeAlias = Mapping[str, Any]
"""Represents the decoded JWT payload as an immutable mapping."""

ViewFunc: TypeAlias = Callable[..., Any]
"""Type alias for Flask view functions."""


# ============================================================================
# Core Protocols
# ============================================================================


class KeySource(Protocol):
    """Fetches the provider's current signing keys over the network."""

    def fetch(self) -> tuple[SigningKey, ...]:
        """Fetch and parse the full key set.

        Returns:
            Every usable key in the published set.

        Raises:
            KeyFetchError: Endpoint unreachable, timed out, or returned a
                document that is not a key set.
        """
        ...


class TokenVerifier(Protocol):
    """Protocol for token verification implementations."""

    def verify(self, token: str) -> VerifiedIdentity:
        """Verify a token and return the identity it asserts.

        Raises:
            TokenError: Token malformed, signed by an unknown key, or invalid.
            KeyFetchError: No key set could be obtained at all.
        """
        ...


class IdentityProvider(Protocol):
    """Account lifecycle calls proxied to the managed identity provider.

    Every method raises ``IdentityProviderError`` on a provider-side failure.
    """

    def sign_up(
        self, email: str, password: str, first_name: str, last_name: str
    ) -> None: ...

    def confirm_sign_up(self, email: str, confirmation_code: str) -> None: ...

    def login(self, email: str, password: str) -> AuthenticationResult: ...

    def refresh(self, refresh_token: str, email: str) -> AuthenticationResult: ...

    def forgot_password(self, email: str) -> None: ...

    def confirm_forgot_password(self, email: str, code: str, password: str) -> None: ...

    def resend_confirmation_code(self, email: str) -> None: ...
