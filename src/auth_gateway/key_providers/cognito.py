"""
Cognito JWKS key source.

Fetches the signing keys a Cognito user pool publishes at
``https://cognito-idp.{region}.amazonaws.com/{pool_id}/.well-known/jwks.json``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from jwt import PyJWKClient
from jwt.exceptions import PyJWKClientError

from ..errors import KeyFetchError
from ..models import SigningKey

logger = logging.getLogger(__name__)


def cognito_issuer(region: str, user_pool_id: str) -> str:
    """Issuer string Cognito puts in the ``iss`` claim (no trailing slash)."""
    return f"https://cognito-idp.{region}.amazonaws.com/{user_pool_id}"


class CognitoJWKSSource:
    """
    Fetches a Cognito user pool's key set.

    Responsibilities
    ----------------
    1. Download the JWKS document with a bounded timeout.
    2. Parse it into immutable ``SigningKey`` records.
    3. Turn every transport or format problem into ``KeyFetchError``.

    Caching is not done here. ``KeyCache`` owns the cached set and decides
    when to call ``fetch()``; PyJWKClient's own caches are disabled so each
    call really goes to the network.

    Parameters
    ----------
    region : str
        AWS region of the user pool, e.g. "eu-west-1".
    user_pool_id : str
        Pool identifier, e.g. "eu-west-1_AbCdEf123".
    timeout : float
        Seconds before an unanswered fetch is abandoned.
    """

    def __init__(self, region: str, user_pool_id: str, timeout: float = 10.0) -> None:
        self.issuer = cognito_issuer(region, user_pool_id)
        self.jwks_uri = f"{self.issuer}/.well-known/jwks.json"
        self._client = PyJWKClient(
            self.jwks_uri,
            cache_keys=False,
            cache_jwk_set=False,
            timeout=timeout,
        )

    def fetch(self) -> tuple[SigningKey, ...]:
        try:
            document = self._client.fetch_data()
        except PyJWKClientError as e:
            raise KeyFetchError(f"Unable to fetch JWKS from {self.jwks_uri}") from e
        except ValueError as e:
            raise KeyFetchError(f"JWKS response from {self.jwks_uri} is not JSON") from e

        return parse_key_set(document)


def parse_key_set(document: Any) -> tuple[SigningKey, ...]:
    """Parse a JWKS document, skipping individual keys that lack a ``kid``.

    Raises:
        KeyFetchError: If the document has no ``keys`` list.
    """
    if not isinstance(document, Mapping) or not isinstance(document.get("keys"), list):
        raise KeyFetchError("JWKS document has no 'keys' list")

    keys: list[SigningKey] = []
    for entry in document["keys"]:
        if not isinstance(entry, Mapping):
            logger.warning("Skipping non-object JWKS entry")
            continue
        try:
            keys.append(SigningKey.from_jwk(entry))
        except ValueError:
            logger.warning("Skipping JWKS entry without kid (kty=%s)", entry.get("kty"))
    return tuple(keys)
