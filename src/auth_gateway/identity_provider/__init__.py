"""
Identity-provider client and its error taxonomy.
"""

from .client import AuthenticationResult, CognitoIdentityClient
from .errors import (
    IdentityProviderError,
    ProviderErrorKind,
    map_provider_error,
    normalize_error_type,
)

__all__ = [
    "AuthenticationResult",
    "CognitoIdentityClient",
    "IdentityProviderError",
    "ProviderErrorKind",
    "map_provider_error",
    "normalize_error_type",
]
