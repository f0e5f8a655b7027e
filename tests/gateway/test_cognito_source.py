import logging

import pytest
from jwt.exceptions import PyJWKClientConnectionError

from auth_gateway import CognitoJWKSSource, KeyFetchError
from auth_gateway.key_providers import parse_key_set


def make_source() -> CognitoJWKSSource:
    return CognitoJWKSSource(region="eu-west-1", user_pool_id="eu-west-1_TestPool", timeout=2.0)


def test_issuer_and_jwks_uri():
    source = make_source()

    assert source.issuer == "https://cognito-idp.eu-west-1.amazonaws.com/eu-west-1_TestPool"
    assert source.jwks_uri == (
        "https://cognito-idp.eu-west-1.amazonaws.com/eu-west-1_TestPool/.well-known/jwks.json"
    )


def test_fetch_parses_keys(monkeypatch: pytest.MonkeyPatch, make_signing_key):
    source = make_source()
    jwk = dict(make_signing_key("abc").jwk)
    monkeypatch.setattr(source._client, "fetch_data", lambda: {"keys": [jwk]})

    keys = source.fetch()

    assert [k.kid for k in keys] == ["abc"]
    assert keys[0].kty == "RSA"
    assert keys[0].alg == "RS256"


def test_unreachable_endpoint_raises_key_fetch_error(monkeypatch: pytest.MonkeyPatch):
    source = make_source()

    def fail():
        raise PyJWKClientConnectionError("timed out")

    monkeypatch.setattr(source._client, "fetch_data", fail)

    with pytest.raises(KeyFetchError):
        source.fetch()


def test_non_json_response_raises_key_fetch_error(monkeypatch: pytest.MonkeyPatch):
    source = make_source()

    def fail():
        raise ValueError("Expecting value")

    monkeypatch.setattr(source._client, "fetch_data", fail)

    with pytest.raises(KeyFetchError):
        source.fetch()


@pytest.mark.parametrize("document", [{}, {"keys": "nope"}, [], None])
def test_document_without_keys_list_is_rejected(document):
    with pytest.raises(KeyFetchError):
        parse_key_set(document)


def test_entries_without_kid_are_skipped(caplog: pytest.LogCaptureFixture):
    document = {
        "keys": [
            {"kty": "RSA", "kid": "k1", "alg": "RS256", "n": "x", "e": "AQAB"},
            {"kty": "RSA", "alg": "RS256", "n": "x", "e": "AQAB"},
            "garbage",
        ]
    }

    with caplog.at_level(logging.WARNING):
        keys = parse_key_set(document)

    assert [k.kid for k in keys] == ["k1"]
    assert len(caplog.records) == 2


def test_empty_key_list_is_allowed():
    assert parse_key_set({"keys": []}) == ()
