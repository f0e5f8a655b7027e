"""
Cognito user pool client for the account lifecycle calls.

The calls used here (SignUp, ConfirmSignUp, InitiateAuth, ForgotPassword,
ConfirmForgotPassword, ResendConfirmationCode) are public Cognito operations:
they need no AWS credentials, only the app client id and the secret hash.
They are sent over Cognito's JSON protocol with plain ``requests``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Final

import requests

from ..errors import AppError
from ..models import AuthCredentials
from .errors import IdentityProviderError, ProviderErrorKind, map_provider_error

logger = logging.getLogger(__name__)

_TARGET_PREFIX: Final[str] = "AWSCognitoIdentityProviderService"
_CONTENT_TYPE: Final[str] = "application/x-amz-json-1.1"

USER_PASSWORD_AUTH: Final[str] = "USER_PASSWORD_AUTH"
REFRESH_TOKEN_AUTH: Final[str] = "REFRESH_TOKEN_AUTH"


@dataclass(frozen=True, slots=True)
class AuthenticationResult:
    """Tokens returned by a successful InitiateAuth."""

    access_token: str = field(repr=False)
    refresh_token: str | None = field(default=None, repr=False)
    id_token: str | None = field(default=None, repr=False)
    expires_in: int | None = None

    @classmethod
    def from_response(cls, body: Mapping[str, Any]) -> AuthenticationResult:
        result = body.get("AuthenticationResult") or {}
        access_token = result.get("AccessToken")
        if not access_token:
            # e.g. a challenge (NEW_PASSWORD_REQUIRED) instead of tokens
            logger.error(
                "InitiateAuth returned no access token (challenge=%r)",
                body.get("ChallengeName"),
            )
            raise AppError("Missing authentication token", 500, "MISSING_AUTH_TOKEN")
        return cls(
            access_token=access_token,
            refresh_token=result.get("RefreshToken"),
            id_token=result.get("IdToken"),
            expires_in=result.get("ExpiresIn"),
        )


class CognitoIdentityClient:
    """Thin pass-through to a Cognito app client.

    Every call carries the secret hash derived for the user. Provider errors
    are classified by ``map_provider_error``; transport failures (timeouts,
    connection errors) become ``ProviderErrorKind.INTERNAL``.

    Parameters
    ----------
    region : str
        AWS region of the user pool.
    client_id : str
        App client id.
    client_secret : str
        App client secret, used only to derive secret hashes.
    timeout : float
        Seconds before an unanswered call is abandoned.
    """

    def __init__(
        self,
        region: str,
        client_id: str,
        client_secret: str,
        timeout: float = 10.0,
    ) -> None:
        self._endpoint = f"https://cognito-idp.{region}.amazonaws.com/"
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout

    def _credentials(self, username: str) -> AuthCredentials:
        return AuthCredentials.for_user(self._client_id, self._client_secret, username)

    def _call(self, operation: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        headers = {
            "Content-Type": _CONTENT_TYPE,
            "X-Amz-Target": f"{_TARGET_PREFIX}.{operation}",
        }
        try:
            resp = requests.post(
                self._endpoint, json=payload, headers=headers, timeout=self._timeout
            )
        except requests.RequestException as e:
            logger.error("Cognito %s request failed: %s", operation, type(e).__name__)
            raise IdentityProviderError(
                ProviderErrorKind.INTERNAL, provider_type=type(e).__name__
            ) from e

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.status_code >= 400:
            raw_type = body.get("__type") or resp.headers.get("x-amzn-ErrorType")
            error = map_provider_error(raw_type, body.get("message") or body.get("Message"))
            logger.info(
                "Cognito %s failed status=%s type=%s", operation, resp.status_code, error.provider_type
            )
            raise error
        return body

    def sign_up(self, email: str, password: str, first_name: str, last_name: str) -> None:
        creds = self._credentials(email)
        self._call(
            "SignUp",
            {
                "ClientId": self._client_id,
                "Username": creds.username,
                "Password": password,
                "SecretHash": creds.secret_hash,
                "UserAttributes": [
                    {"Name": "email", "Value": email},
                    {"Name": "given_name", "Value": first_name},
                    {"Name": "family_name", "Value": last_name},
                ],
            },
        )

    def confirm_sign_up(self, email: str, confirmation_code: str) -> None:
        creds = self._credentials(email)
        self._call(
            "ConfirmSignUp",
            {
                "ClientId": self._client_id,
                "Username": creds.username,
                "ConfirmationCode": confirmation_code,
                "SecretHash": creds.secret_hash,
            },
        )

    def login(self, email: str, password: str) -> AuthenticationResult:
        creds = self._credentials(email)
        body = self._call(
            "InitiateAuth",
            {
                "ClientId": self._client_id,
                "AuthFlow": USER_PASSWORD_AUTH,
                "AuthParameters": {
                    "USERNAME": creds.username,
                    "PASSWORD": password,
                    "SECRET_HASH": creds.secret_hash,
                },
            },
        )
        return AuthenticationResult.from_response(body)

    def refresh(self, refresh_token: str, email: str) -> AuthenticationResult:
        creds = self._credentials(email)
        body = self._call(
            "InitiateAuth",
            {
                "ClientId": self._client_id,
                "AuthFlow": REFRESH_TOKEN_AUTH,
                "AuthParameters": {
                    "REFRESH_TOKEN": refresh_token,
                    "SECRET_HASH": creds.secret_hash,
                },
            },
        )
        return AuthenticationResult.from_response(body)

    def forgot_password(self, email: str) -> None:
        creds = self._credentials(email)
        self._call(
            "ForgotPassword",
            {
                "ClientId": self._client_id,
                "Username": creds.username,
                "SecretHash": creds.secret_hash,
            },
        )

    def confirm_forgot_password(self, email: str, code: str, password: str) -> None:
        creds = self._credentials(email)
        self._call(
            "ConfirmForgotPassword",
            {
                "ClientId": self._client_id,
                "Username": creds.username,
                "ConfirmationCode": code,
                "Password": password,
                "SecretHash": creds.secret_hash,
            },
        )

    def resend_confirmation_code(self, email: str) -> None:
        creds = self._credentials(email)
        self._call(
            "ResendConfirmationCode",
            {
                "ClientId": self._client_id,
                "Username": creds.username,
                "SecretHash": creds.secret_hash,
            },
        )
