"""
Cookie-based authentication gateway in front of a Cognito user pool.

High-level flow (per request)
-----------------------------
1. `AuthExtension.require()` decorator runs.
2. `SessionResolver.resolve(request.cookies)` reads the `authToken` cookie.
3. `JWTVerifier.verify(token)`:
   - Reads the unverified header to get `kid` and `alg`
   - Asks `KeyCache` for the key with that `kid` (one forced refresh on miss)
   - Runs `jwt.decode(...)` with issuer/algorithm/expiry checks
4. On success: the `VerifiedIdentity` is stored in `flask.g.identity`.
5. On rejection: a JSON 401/503/500 is returned and session cookies cleared.

Security notes
--------------
- Never trust claims until signature verification succeeds.
- Exactly one asymmetric algorithm is allowed (no "none", no HMAC).
- The issuer must be the configured user pool.
- Forced JWKS refreshes are throttled so random `kid`s cannot DoS the pool.

Example usage
-------------

.. code-block:: python

    from auth_gateway import (
        AuthExtension,
        CognitoJWKSSource,
        JWTVerifier,
        JWTVerifyOptions,
        KeyCache,
        SessionResolver,
    )

    source = CognitoJWKSSource(region="eu-west-1", user_pool_id="eu-west-1_Abc")
    verifier = JWTVerifier(
        key_cache=KeyCache(source),
        options=JWTVerifyOptions(issuer=source.issuer, token_use="access"),
    )
    auth = AuthExtension(SessionResolver(verifier))

    @app.get("/private")
    @auth.require()
    def private():
        return {"sub": g.identity.subject}
"""

# App factory
from .app import create_app

# Configuration
from .config import GatewayConfig

# Secret hash
from .crypto import calculate_secret_hash

# Errors
from .errors import (
    AppError,
    AuthError,
    ExpiredToken,
    InvalidToken,
    KeyFetchError,
    MalformedToken,
    TokenError,
    TokenErrorReason,
    UnknownSigningKey,
)

# Flask extension
from .flask_extension import AuthExtension, current_identity

# Identity provider
from .identity_provider import (
    AuthenticationResult,
    CognitoIdentityClient,
    IdentityProviderError,
    ProviderErrorKind,
)

# Key cache
from .key_cache import KeyCache

# Key providers
from .key_providers import CognitoJWKSSource

# Models
from .models import AuthCredentials, KeyCacheState, SigningKey, VerifiedIdentity

# Protocols
from .protocols import Claims, IdentityProvider, KeySource, TokenVerifier, ViewFunc

# Refresh gate
from .refresh_gate import RefreshGate

# Session
from .session import AuthRejection, RejectionReason, SessionResolver

# Verifier
from .verifier import JWTVerifier, JWTVerifyOptions

__all__ = [
    # Errors
    "AppError",
    "AuthError",
    "ExpiredToken",
    "InvalidToken",
    "KeyFetchError",
    "MalformedToken",
    "TokenError",
    "TokenErrorReason",
    "UnknownSigningKey",
    # Protocols
    "Claims",
    "IdentityProvider",
    "KeySource",
    "TokenVerifier",
    "ViewFunc",
    # Models
    "AuthCredentials",
    "KeyCacheState",
    "SigningKey",
    "VerifiedIdentity",
    # Secret hash
    "calculate_secret_hash",
    # Key cache / providers
    "KeyCache",
    "CognitoJWKSSource",
    "RefreshGate",
    # Verifier
    "JWTVerifier",
    "JWTVerifyOptions",
    # Session
    "AuthRejection",
    "RejectionReason",
    "SessionResolver",
    # Identity provider
    "AuthenticationResult",
    "CognitoIdentityClient",
    "IdentityProviderError",
    "ProviderErrorKind",
    # Flask
    "AuthExtension",
    "current_identity",
    "GatewayConfig",
    "create_app",
]
