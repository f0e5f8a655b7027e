"""
Key source implementations for fetching signing keys.

This package contains implementations of the KeySource protocol.
"""

from .cognito import CognitoJWKSSource, cognito_issuer, parse_key_set

__all__ = ["CognitoJWKSSource", "cognito_issuer", "parse_key_set"]
