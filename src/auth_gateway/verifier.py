"""Token verification using PyJWT against a cached JWKS.

This module provides the verifier that:
- Extracts the key ID (kid) from the unverified token header
- Resolves the signing key through KeyCache, refreshing once on rotation
- Validates signature, expiry, issuer and algorithm with PyJWT
- Maps PyJWT exceptions to the TokenError taxonomy
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

import jwt

from .errors import ExpiredToken, InvalidToken, MalformedToken, UnknownSigningKey
from .models import SigningKey, VerifiedIdentity
from .refresh_gate import RefreshGate

if TYPE_CHECKING:
    from .key_cache import KeyCache

logger = logging.getLogger(__name__)

_ASYMMETRIC_PREFIXES: Final[tuple[str, ...]] = ("RS", "PS", "ES")
_REQUIRED_CLAIMS: Final[list[str]] = ["exp", "iat", "sub"]


def _is_asymmetric(algorithm: str) -> bool:
    return algorithm == "EdDSA" or (
        algorithm[:2] in _ASYMMETRIC_PREFIXES and algorithm[2:].isdigit()
    )


@dataclass(frozen=True, slots=True)
class JWTVerifyOptions:
    """Configuration for token validation rules.

    Attributes:
        issuer: Expected ``iss`` claim. For Cognito,
            "https://cognito-idp.<region>.amazonaws.com/<pool-id>" (no
            trailing slash).

        audience: Expected ``aud`` claim. Cognito access tokens have no
            ``aud`` (they carry ``client_id``), so leave this None for access
            tokens and set it to the app client id for ID tokens.

        algorithms: The allow-list. Exactly one asymmetric algorithm. "none"
            and HMAC algorithms are refused at construction so a public key
            can never be used as an HMAC secret. Default: ("RS256",)

        leeway: Clock skew tolerance in seconds for exp/iat. Default: 0.

        token_use: If set, the ``token_use`` claim must equal it ("access"
            or "id" for Cognito).

    Raises:
        ValueError: If the algorithm allow-list is unsafe.
    """

    issuer: str
    audience: str | None = None
    algorithms: tuple[str, ...] = ("RS256",)
    leeway: int = 0
    token_use: str | None = None

    def __post_init__(self) -> None:
        if not self.issuer:
            raise ValueError("issuer is required")
        if len(self.algorithms) != 1:
            raise ValueError(
                f"exactly one signing algorithm must be allowed, got {self.algorithms!r}"
            )
        if not _is_asymmetric(self.algorithms[0]):
            raise ValueError(f"algorithm {self.algorithms[0]!r} is not asymmetric")


class JWTVerifier:
    """Verifies Cognito-issued tokens and returns a VerifiedIdentity.

    Architecture:
        1. Read kid and alg from the token header (unverified)
        2. Resolve the signing key via KeyCache, with one forced refresh
        3. Verify signature and claims via PyJWT
        4. Map exceptions to TokenError subclasses

    Key Rotation:
        An unknown kid gets one forced refresh, skipped when the lookup has
        just fetched the set itself. ``refresh_gate`` is shared by every
        call: while it is closed the retry is skipped and the token is
        rejected as UNKNOWN_KEY, even if the key was genuinely rotated in.
        Pass a gate with a short ``min_interval`` to make that window small.

    Thread Safety:
        Safe to share across request threads. Options are frozen; KeyCache
        and RefreshGate handle their own synchronisation.

    Example:
        ```python
        source = CognitoJWKSSource(region="eu-west-1", user_pool_id=pool_id)
        verifier = JWTVerifier(
            key_cache=KeyCache(source),
            options=JWTVerifyOptions(issuer=source.issuer, token_use="access"),
        )

        try:
            identity = verifier.verify(raw_token)
        except TokenError as e:
            log.info("rejected: %s", e.reason)
        ```

    Attributes:
        _keys: Key cache resolving kids to signing keys.
        _opt: Immutable verification options.
        _gate: Throttle on forced key-set refreshes.
    """

    def __init__(
        self,
        key_cache: KeyCache,
        options: JWTVerifyOptions,
        refresh_gate: RefreshGate | None = None,
    ) -> None:
        self._keys = key_cache
        self._opt = options
        self._gate = refresh_gate or RefreshGate()

    def verify(self, token: str) -> VerifiedIdentity:
        """Verify a token and return the identity it asserts.

        Raises:
            MalformedToken: Token or header is unparsable, or kid is missing.
            UnknownSigningKey: kid absent from the key set after one refresh.
            ExpiredToken: The exp claim has passed (accounting for leeway).
            InvalidToken: Any other signature, issuer, algorithm or claim
                failure.
            KeyFetchError: No key set could be fetched and none is cached.
        """
        # The header is read before any signature check only to pick the key.
        if not isinstance(token, str) or not token:
            raise MalformedToken("Token is empty")
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            raise MalformedToken(f"Unparsable token header: {e}") from e

        kid = header.get("kid")
        if not kid or not isinstance(kid, str):
            raise MalformedToken("Token header missing required 'kid'")

        algorithm = header.get("alg")
        if algorithm not in self._opt.algorithms:
            raise InvalidToken(f"Algorithm {algorithm!r} is not allowed")

        signing_key = self._resolve_key(kid)
        if signing_key.alg is not None and signing_key.alg not in self._opt.algorithms:
            raise InvalidToken(f"Key {kid!r} is published for {signing_key.alg!r}")

        try:
            pyjwk = signing_key.to_pyjwk()
        except (jwt.PyJWKError, jwt.InvalidKeyError, ValueError) as e:
            raise InvalidToken(f"Unusable key material for kid {kid!r}") from e
        # Keys published without "alg" get one inferred from kty/crv.
        if pyjwk.algorithm_name not in self._opt.algorithms:
            raise InvalidToken(f"Key {kid!r} is a {pyjwk.algorithm_name!r} key")

        try:
            claims = jwt.decode(
                token,
                pyjwk.key,
                algorithms=list(self._opt.algorithms),
                issuer=self._opt.issuer,
                audience=self._opt.audience,
                leeway=self._opt.leeway,
                options={
                    "require": _REQUIRED_CLAIMS,
                    "verify_aud": self._opt.audience is not None,
                },
            )
        except jwt.ExpiredSignatureError as e:
            raise ExpiredToken("Token has expired") from e
        except jwt.InvalidTokenError as e:
            raise InvalidToken(f"Token validation failed: {e}") from e
        except (jwt.InvalidKeyError, TypeError) as e:
            raise InvalidToken(f"Key {kid!r} does not fit the allowed algorithm") from e

        if self._opt.token_use is not None and claims.get("token_use") != self._opt.token_use:
            raise InvalidToken(f"Expected token_use {self._opt.token_use!r}")

        return VerifiedIdentity.from_claims(claims)

    def _resolve_key(self, kid: str) -> SigningKey:
        before = self._keys.state
        key = self._keys.find(kid)
        if key is not None:
            return key

        # The lookup itself fetched a new set: that already was the one refresh.
        after = self._keys.state
        if after is not None and after is not before:
            raise UnknownSigningKey(f"Unknown kid {kid!r}")

        # Possibly a rotation since the last fetch: refresh at most once.
        if not self._gate.allow():
            raise UnknownSigningKey(f"Unknown kid {kid!r} (refresh throttled)")

        logger.info("kid %r not in cached key set; forcing one refresh", kid)
        for key in self._keys.refresh():
            if key.kid == kid:
                return key
        raise UnknownSigningKey(f"Unknown kid {kid!r}")
