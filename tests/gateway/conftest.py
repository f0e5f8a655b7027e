import json
import time
from collections.abc import Callable
from typing import Any

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from auth_gateway import GatewayConfig, KeyFetchError, SigningKey, create_app
from auth_gateway.identity_provider import AuthenticationResult

REGION = "eu-west-1"
POOL_ID = "eu-west-1_TestPool"
ISSUER = f"https://cognito-idp.{REGION}.amazonaws.com/{POOL_ID}"


@pytest.fixture(scope="session")
def rsa_keys() -> dict[str, rsa.RSAPrivateKey]:
    """Two RSA private keys, generated once per test session."""
    return {
        "abc": rsa.generate_private_key(public_exponent=65537, key_size=2048),
        "xyz": rsa.generate_private_key(public_exponent=65537, key_size=2048),
    }


def signing_key_for(kid: str, private_key: rsa.RSAPrivateKey) -> SigningKey:
    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return SigningKey.from_jwk(jwk)


@pytest.fixture
def make_signing_key(rsa_keys) -> Callable[[str], SigningKey]:
    """
    Factory fixture returning the public SigningKey for a kid.

    Usage in tests:
        key = make_signing_key("abc")
    """

    def _make(kid: str) -> SigningKey:
        return signing_key_for(kid, rsa_keys[kid])

    return _make


@pytest.fixture
def make_token(rsa_keys) -> Callable[..., str]:
    """
    Factory fixture that signs an access token.

    Usage in tests:
        token = make_token(kid="abc", sub="u1")
        token = make_token(kid="abc", signer="xyz")   # wrong signing key
        token = make_token(kid="abc", exp_offset=-10) # expired
    """

    def _make(
        *,
        kid: str | None = "abc",
        signer: str | None = None,
        sub: str = "user-123",
        iss: str = ISSUER,
        exp_offset: int = 3600,
        **extra: Any,
    ) -> str:
        now = int(time.time())
        claims: dict[str, Any] = {
            "sub": sub,
            "iss": iss,
            "iat": now - 5,
            "exp": now + exp_offset,
            "token_use": "access",
            "username": "user@example.com",
        }
        claims.update(extra)
        headers = {"kid": kid} if kid is not None else {}
        return jwt.encode(
            claims, rsa_keys[signer or kid or "abc"], algorithm="RS256", headers=headers
        )

    return _make


class FakeKeySource:
    """KeySource returning scripted key sets and counting fetches.

    ``batches`` is consumed one entry per fetch; the last entry repeats.
    An entry that is an exception instance is raised instead.
    """

    def __init__(self, *batches: Any) -> None:
        self._batches = list(batches) or [()]
        self.fetch_count = 0

    def fetch(self) -> tuple[SigningKey, ...]:
        index = min(self.fetch_count, len(self._batches) - 1)
        self.fetch_count += 1
        batch = self._batches[index]
        if isinstance(batch, Exception):
            raise batch
        return tuple(batch)

    def go_down(self) -> None:
        self._batches = [KeyFetchError("endpoint unreachable")]


class FakeIdentityProvider:
    """IdentityProvider recording calls; ``fail_with`` raises on every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_with: Exception | None = None
        self.result = AuthenticationResult(
            access_token="new-access", refresh_token="new-refresh", id_token="new-id"
        )

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if self.fail_with is not None:
            raise self.fail_with

    def sign_up(self, email, password, first_name, last_name):
        self._record("sign_up", email, password, first_name, last_name)

    def confirm_sign_up(self, email, confirmation_code):
        self._record("confirm_sign_up", email, confirmation_code)

    def login(self, email, password):
        self._record("login", email, password)
        return self.result

    def refresh(self, refresh_token, email):
        self._record("refresh", refresh_token, email)
        return self.result

    def forgot_password(self, email):
        self._record("forgot_password", email)

    def confirm_forgot_password(self, email, code, password):
        self._record("confirm_forgot_password", email, code, password)

    def resend_confirmation_code(self, email):
        self._record("resend_confirmation_code", email)


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(
        region=REGION,
        user_pool_id=POOL_ID,
        client_id="test-client-id",
        client_secret="test-client-secret",
    )


@pytest.fixture
def make_key_source() -> Callable[..., FakeKeySource]:
    return FakeKeySource


@pytest.fixture
def key_source(make_signing_key) -> FakeKeySource:
    return FakeKeySource([make_signing_key("abc")])


@pytest.fixture
def idp() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture()
def app(gateway_config, key_source, idp):
    app = create_app(gateway_config, identity_provider=idp, key_source=key_source)
    app.config["TESTING"] = True
    return app


@pytest.fixture()
def client(app):
    return app.test_client()
