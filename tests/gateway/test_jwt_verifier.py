import json
import time
from typing import Any

import jwt
import pytest
from _pytest.monkeypatch import MonkeyPatch
from cryptography.hazmat.primitives.asymmetric import ec
from jwt.algorithms import ECAlgorithm

from auth_gateway import (
    ExpiredToken,
    InvalidToken,
    JWTVerifier,
    JWTVerifyOptions,
    KeyCache,
    KeyFetchError,
    MalformedToken,
    RefreshGate,
    SigningKey,
    TokenErrorReason,
    UnknownSigningKey,
)

ISSUER = "https://cognito-idp.eu-west-1.amazonaws.com/eu-west-1_TestPool"


def make_verifier(source: Any, **options: Any) -> JWTVerifier:
    return JWTVerifier(
        KeyCache(source),
        JWTVerifyOptions(issuer=ISSUER, **options),
        refresh_gate=RefreshGate(min_interval=60.0),
    )


def test_valid_token_returns_identity(key_source, make_token):
    verifier = make_verifier(key_source)

    identity = verifier.verify(make_token(kid="abc", sub="u1", given_name="Ada"))

    assert identity.subject == "u1"
    assert identity.email == "user@example.com"
    assert identity.given_name == "Ada"
    assert identity.family_name is None
    assert identity.token_use == "access"
    assert identity.expires_at > identity.issued_at


def test_id_token_email_claim_wins(key_source, make_token):
    verifier = make_verifier(key_source)

    identity = verifier.verify(make_token(email="ada@example.com", family_name="Lovelace"))

    assert identity.email == "ada@example.com"
    assert identity.family_name == "Lovelace"


def test_rotated_key_found_after_exactly_one_refresh(
    make_key_source, make_signing_key, make_token
):
    source = make_key_source(
        [make_signing_key("abc")],
        [make_signing_key("abc"), make_signing_key("xyz")],
    )
    verifier = make_verifier(source)
    verifier.verify(make_token(kid="abc"))
    assert source.fetch_count == 1

    identity = verifier.verify(make_token(kid="xyz", sub="rotated"))

    assert identity.subject == "rotated"
    assert source.fetch_count == 2


def test_unknown_kid_refreshes_once_then_rejects(key_source, make_token):
    verifier = make_verifier(key_source)
    assert verifier.verify(make_token(kid="abc")).subject == "user-123"
    assert key_source.fetch_count == 1

    with pytest.raises(UnknownSigningKey) as exc_info:
        verifier.verify(make_token(kid="xyz"))

    assert exc_info.value.reason is TokenErrorReason.UNKNOWN_KEY
    # initial fetch + exactly one forced refresh
    assert key_source.fetch_count == 2


def test_unknown_kid_refresh_is_throttled(key_source, make_token):
    verifier = make_verifier(key_source)
    verifier.verify(make_token(kid="abc"))

    with pytest.raises(UnknownSigningKey):
        verifier.verify(make_token(kid="xyz"))
    assert key_source.fetch_count == 2

    # gate closed: no refresh, straight rejection
    with pytest.raises(UnknownSigningKey):
        verifier.verify(make_token(kid="xyz"))
    assert key_source.fetch_count == 2


def test_unknown_kid_on_cold_cache_fetches_once(key_source, make_token):
    verifier = make_verifier(key_source)

    with pytest.raises(UnknownSigningKey):
        verifier.verify(make_token(kid="xyz"))

    assert key_source.fetch_count == 1


def test_unknown_kid_after_ttl_expiry_fetches_once(make_key_source, make_signing_key, make_token):
    source = make_key_source([make_signing_key("abc")])
    now = [1_000_000.0]
    verifier = JWTVerifier(
        KeyCache(source, ttl_seconds=60, clock=lambda: now[0]),
        JWTVerifyOptions(issuer=ISSUER),
    )
    verifier.verify(make_token(kid="abc"))
    now[0] += 120

    with pytest.raises(UnknownSigningKey):
        verifier.verify(make_token(kid="xyz"))

    assert source.fetch_count == 2


@pytest.mark.parametrize(
    "algorithm,key",
    [
        ("HS256", "a-shared-secret-that-is-long-enough-for-hs256"),
        ("none", None),
    ],
)
def test_disallowed_algorithm_rejected(key_source, algorithm, key):
    verifier = make_verifier(key_source)
    now = int(time.time())
    token = jwt.encode(
        {"sub": "u1", "iss": ISSUER, "iat": now, "exp": now + 600},
        key,
        algorithm=algorithm,
        headers={"kid": "abc"},
    )

    with pytest.raises(InvalidToken) as exc_info:
        verifier.verify(token)

    assert exc_info.value.reason is TokenErrorReason.INVALID
    # refused before any key lookup
    assert key_source.fetch_count == 0


def test_expired_token_rejected(key_source, make_token):
    verifier = make_verifier(key_source)

    with pytest.raises(ExpiredToken) as exc_info:
        verifier.verify(make_token(exp_offset=-10))

    assert exc_info.value.reason is TokenErrorReason.INVALID


def test_wrong_issuer_rejected(key_source, make_token):
    verifier = make_verifier(key_source)

    with pytest.raises(InvalidToken):
        verifier.verify(make_token(iss="https://cognito-idp.us-east-1.amazonaws.com/other"))


def test_bad_signature_rejected(key_source, make_token):
    verifier = make_verifier(key_source)

    with pytest.raises(InvalidToken):
        verifier.verify(make_token(kid="abc", signer="xyz"))


def test_token_use_mismatch_rejected(key_source, make_token):
    verifier = make_verifier(key_source, token_use="access")

    with pytest.raises(InvalidToken):
        verifier.verify(make_token(token_use="id"))


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_malformed_token_rejected(key_source, token):
    verifier = make_verifier(key_source)

    with pytest.raises(MalformedToken) as exc_info:
        verifier.verify(token)

    assert exc_info.value.reason is TokenErrorReason.MALFORMED


def test_missing_kid_is_malformed(key_source, make_token):
    verifier = make_verifier(key_source)

    with pytest.raises(MalformedToken):
        verifier.verify(make_token(kid=None))


def test_fetch_error_without_cache_propagates(make_key_source, make_token):
    verifier = make_verifier(make_key_source(KeyFetchError("down")))

    with pytest.raises(KeyFetchError):
        verifier.verify(make_token())


def test_decode_receives_allow_list_and_issuer(
    monkeypatch: MonkeyPatch, key_source, make_token
):
    verifier = make_verifier(key_source)
    seen: dict[str, Any] = {}
    real_decode = jwt.decode

    def spy_decode(*args: Any, **kwargs: Any):
        seen.update(kwargs)
        return real_decode(*args, **kwargs)

    monkeypatch.setattr(jwt, "decode", spy_decode)

    verifier.verify(make_token())

    assert seen["algorithms"] == ["RS256"]
    assert seen["issuer"] == ISSUER
    assert seen["options"]["require"] == ["exp", "iat", "sub"]
    assert seen["options"]["verify_aud"] is False


@pytest.mark.parametrize(
    "algorithms",
    [("HS256",), ("none",), ("RS256", "ES256"), ()],
)
def test_options_refuse_unsafe_allow_list(algorithms):
    with pytest.raises(ValueError):
        JWTVerifyOptions(issuer=ISSUER, algorithms=algorithms)


def test_options_accept_single_asymmetric_algorithm():
    for alg in ("RS256", "PS384", "ES256", "EdDSA"):
        assert JWTVerifyOptions(issuer=ISSUER, algorithms=(alg,)).algorithms == (alg,)


def ec_jwk_without_alg(kid: str) -> dict[str, Any]:
    public_key = ec.generate_private_key(ec.SECP256R1()).public_key()
    jwk = json.loads(ECAlgorithm.to_jwk(public_key))
    jwk.pop("alg", None)
    jwk["kid"] = kid
    return jwk


@pytest.mark.parametrize(
    "jwk",
    [
        pytest.param(ec_jwk_without_alg("abc"), id="ec-without-alg"),
        pytest.param({"kty": "oct", "kid": "abc", "k": "c2VjcmV0LWtleQ"}, id="oct-without-alg"),
        pytest.param({**ec_jwk_without_alg("abc"), "alg": "RS256"}, id="ec-claiming-rs256"),
    ],
)
def test_key_of_wrong_type_is_invalid_token(make_key_source, make_token, jwk):
    verifier = make_verifier(make_key_source([SigningKey.from_jwk(jwk)]))

    with pytest.raises(InvalidToken) as exc_info:
        verifier.verify(make_token(kid="abc"))

    assert exc_info.value.reason is TokenErrorReason.INVALID


def test_rsa_key_without_alg_is_accepted(make_key_source, make_signing_key, make_token):
    jwk = dict(make_signing_key("abc").jwk)
    del jwk["alg"]
    verifier = make_verifier(make_key_source([SigningKey.from_jwk(jwk)]))

    assert verifier.verify(make_token(kid="abc", sub="u9")).subject == "u9"
