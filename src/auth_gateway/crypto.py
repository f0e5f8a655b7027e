"""Secret hash required by Cognito app clients that have a client secret."""

from __future__ import annotations

import base64
import hashlib
import hmac


def calculate_secret_hash(client_id: str, client_secret: str, username: str) -> str:
    """Return base64(HMAC-SHA256(client_secret, username + client_id)).

    Cognito rejects SignUp, InitiateAuth, ConfirmSignUp, ForgotPassword and
    friends when this value is missing or off by a single bit, so the message
    order (username first) and the UTF-8 encoding must not change.
    """
    digest = hmac.new(
        client_secret.encode("utf-8"),
        (username + client_id).encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")
