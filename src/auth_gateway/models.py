"""Value types shared by the key cache, the verifier and the HTTP layer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from jwt import PyJWK

from .crypto import calculate_secret_hash

if TYPE_CHECKING:
    from .protocols import Claims


@dataclass(frozen=True, slots=True)
class SigningKey:
    """A public signing key as published in the provider's JWKS.

    Attributes:
        kid: Key identifier, matched against the token header.
        kty: Key type ("RSA" for Cognito).
        alg: Algorithm advertised by the key, if any.
        jwk: The raw JWK members, kept for conversion to PyJWT's format.
    """

    kid: str
    kty: str
    alg: str | None
    jwk: Mapping[str, Any] = field(repr=False)

    @classmethod
    def from_jwk(cls, data: Mapping[str, Any]) -> SigningKey:
        kid = data.get("kid")
        if not kid or not isinstance(kid, str):
            raise ValueError("JWK is missing a string 'kid'")
        return cls(
            kid=kid,
            kty=str(data.get("kty", "")),
            alg=data.get("alg"),
            jwk=dict(data),
        )

    def to_pyjwk(self) -> PyJWK:
        """Convert the key material into a PyJWK usable by ``jwt.decode``.

        Raises:
            jwt.PyJWKError: If the key material is unusable.
        """
        return PyJWK.from_dict(dict(self.jwk))


@dataclass(frozen=True, slots=True)
class KeyCacheState:
    """One installed key set.

    Attributes:
        keys: Signing keys, replaced wholesale on every refresh.
        fetched_at: Unix timestamp of the fetch that produced ``keys``.
        generation: Ticket of that fetch; newer tickets win.
    """

    keys: tuple[SigningKey, ...]
    fetched_at: float
    generation: int


def _timestamp(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=UTC)


@dataclass(frozen=True, slots=True)
class VerifiedIdentity:
    """Identity extracted from a token whose signature and claims checked out.

    Created per request and never persisted.
    """

    subject: str
    email: str | None
    issued_at: datetime
    expires_at: datetime
    given_name: str | None = None
    family_name: str | None = None
    username: str | None = None
    token_use: str | None = None
    claims: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_claims(cls, claims: Claims) -> VerifiedIdentity:
        # Cognito access tokens carry "username" and no "email"; ID tokens
        # carry "cognito:username" next to "email".
        username = claims.get("username") or claims.get("cognito:username")
        return cls(
            subject=str(claims["sub"]),
            email=claims.get("email") or username,
            issued_at=_timestamp(claims["iat"]),
            expires_at=_timestamp(claims["exp"]),
            given_name=claims.get("given_name"),
            family_name=claims.get("family_name"),
            username=username,
            token_use=claims.get("token_use"),
            claims=dict(claims),
        )

    def to_public_dict(self) -> dict[str, str | None]:
        """Shape returned by ``GET /users/me``."""
        return {
            "userId": self.subject,
            "email": self.email,
            "firstName": self.given_name,
            "lastName": self.family_name,
        }


@dataclass(frozen=True, slots=True)
class AuthCredentials:
    """Username plus the secret hash Cognito expects alongside it."""

    username: str
    secret_hash: str = field(repr=False)

    @classmethod
    def for_user(cls, client_id: str, client_secret: str, username: str) -> AuthCredentials:
        return cls(
            username=username,
            secret_hash=calculate_secret_hash(client_id, client_secret, username),
        )
