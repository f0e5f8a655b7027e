"""
Gateway Flask application.

Wires the verification core (KeyCache -> JWTVerifier -> SessionResolver ->
AuthExtension) and exposes the Cognito account routes under
``{API_PREFIX}/users``.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import UTC, datetime
from typing import Any

from flask import Blueprint, Flask, Response, g, jsonify, make_response, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .config import GatewayConfig
from .cookies import clear_session_cookies, set_session_cookies
from .errors import AppError
from .flask_extension import AuthExtension, current_identity
from .identity_provider import CognitoIdentityClient
from .key_cache import KeyCache
from .key_providers import CognitoJWKSSource
from .logging_config import configure_logging
from .protocols import IdentityProvider, KeySource
from .refresh_gate import RefreshGate
from .session import EMAIL_COOKIE, REFRESH_TOKEN_COOKIE, SessionResolver
from .verifier import JWTVerifier, JWTVerifyOptions

logger = logging.getLogger(__name__)

_REQUEST_ID_HEADER = "X-Request-ID"


def error_response(error: AppError) -> Response:
    body: dict[str, Any] = {
        "error": error.message,
        "errorCode": error.error_code,
        "requestId": g.get("request_id"),
    }
    if error.details is not None:
        body["details"] = error.details
    return make_response(jsonify(body), error.status_code)


def _user_body(*fields: str) -> dict[str, str]:
    """Return the requested string fields of the ``{"user": {...}}`` body.

    Raises:
        AppError: 400 VALIDATION_ERROR listing every missing or empty field.
    """
    payload = request.get_json(silent=True)
    user = payload.get("user") if isinstance(payload, dict) else None
    if not isinstance(user, dict):
        raise AppError("Validation error", 400, "VALIDATION_ERROR", details=["user"])

    missing = [
        f"user.{name}"
        for name in fields
        if not isinstance(user.get(name), str) or not user[name].strip()
    ]
    if missing:
        raise AppError("Validation error", 400, "VALIDATION_ERROR", details=missing)
    return {name: user[name] for name in fields}


def build_resolver(config: GatewayConfig, key_source: KeySource | None = None) -> SessionResolver:
    """Build the verification chain for ``config``.

    ``key_source`` defaults to the pool's JWKS endpoint.
    """
    source = key_source or CognitoJWKSSource(
        config.region, config.user_pool_id, timeout=config.http_timeout_seconds
    )
    key_cache = KeyCache(source, ttl_seconds=config.jwks_cache_ttl_seconds)
    verifier = JWTVerifier(
        key_cache,
        JWTVerifyOptions(
            issuer=config.issuer,
            leeway=config.clock_skew_seconds,
            token_use="access",
        ),
        refresh_gate=RefreshGate(min_interval=config.jwks_refresh_min_interval),
    )
    return SessionResolver(verifier)


def create_users_blueprint(
    auth: AuthExtension, idp: IdentityProvider, *, secure_cookies: bool
) -> Blueprint:
    bp = Blueprint("users", __name__)

    @bp.get("/me")
    @auth.require()
    def me():
        return jsonify({"user": current_identity().to_public_dict()})

    @bp.post("/")
    def sign_up():
        user = _user_body("email", "firstName", "lastName", "password")
        idp.sign_up(user["email"], user["password"], user["firstName"], user["lastName"])
        return jsonify(
            {
                "user": {
                    "email": user["email"],
                    "firstName": user["firstName"],
                    "lastName": user["lastName"],
                }
            }
        )

    @bp.post("/confirm")
    def confirm():
        user = _user_body("email", "confirmationCode")
        idp.confirm_sign_up(user["email"], user["confirmationCode"])
        return jsonify({})

    @bp.post("/login")
    def login():
        user = _user_body("email", "password")
        result = idp.login(user["email"], user["password"])
        resp = make_response(jsonify({}))
        set_session_cookies(
            resp,
            secure=secure_cookies,
            auth_token=result.access_token,
            refresh_token=result.refresh_token,
            email=user["email"],
        )
        logger.info("Login succeeded")
        return resp

    @bp.post("/refresh-token")
    def refresh_token():
        refresh = request.cookies.get(REFRESH_TOKEN_COOKIE)
        email = request.cookies.get(EMAIL_COOKIE)
        try:
            if not refresh or not email:
                raise AppError(
                    "Missing refresh token or email", 401, "INVALID_REFRESH_REQUEST"
                )
            result = idp.refresh(refresh, email)
        except AppError as e:
            resp = error_response(e)
            clear_session_cookies(resp, secure=secure_cookies)
            return resp
        except Exception:
            logger.exception("Unexpected failure while refreshing tokens")
            resp = error_response(AppError("An unexpected error occurred", 500))
            clear_session_cookies(resp, secure=secure_cookies)
            return resp

        resp = make_response(jsonify({}))
        set_session_cookies(
            resp,
            secure=secure_cookies,
            auth_token=result.access_token,
            refresh_token=result.refresh_token,
        )
        return resp

    @bp.post("/logout")
    def logout():
        resp = make_response(jsonify({}))
        clear_session_cookies(resp, secure=secure_cookies)
        return resp

    @bp.post("/forgot-password")
    def forgot_password():
        user = _user_body("email")
        idp.forgot_password(user["email"])
        return jsonify({})

    @bp.post("/confirm-forgot-password")
    def confirm_forgot_password():
        user = _user_body("email", "code", "password")
        idp.confirm_forgot_password(user["email"], user["code"], user["password"])
        return jsonify({})

    @bp.post("/resend-confirmation-code")
    def resend_confirmation_code():
        user = _user_body("email")
        idp.resend_confirmation_code(user["email"])
        return jsonify({})

    return bp


def _register_request_tracking(app: Flask) -> None:
    @app.before_request
    def start_request():
        g.request_id = request.headers.get(_REQUEST_ID_HEADER) or str(uuid.uuid4())
        g.request_started = time.perf_counter()
        logger.info("request_start id=%s %s %s", g.request_id, request.method, request.path)

    @app.after_request
    def end_request(resp: Response) -> Response:
        request_id = g.get("request_id")
        if request_id:
            resp.headers[_REQUEST_ID_HEADER] = request_id
        started = g.get("request_started")
        elapsed_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        logger.info(
            "request_end id=%s %s %s status=%s %.2fms",
            request_id,
            request.method,
            request.path,
            resp.status_code,
            elapsed_ms,
        )
        return resp


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        if error.status_code >= 500:
            logger.error("%s (%s): %s", error.error_code, error.status_code, error.message)
        return error_response(error)

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        if error.code == 404:
            return error_response(AppError("Route not found", 404, "NOT_FOUND"))
        code = error.name.upper().replace(" ", "_")
        return error_response(AppError(error.name, error.code or 500, code))

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return error_response(AppError("An unexpected error occurred", 500))


def create_app(
    config: GatewayConfig | None = None,
    *,
    identity_provider: IdentityProvider | None = None,
    key_source: KeySource | None = None,
) -> Flask:
    """
    Create and configure the gateway application.

    Args:
        config: Gateway configuration. Read from the environment if omitted.
        identity_provider: Account lifecycle backend. Defaults to Cognito.
        key_source: JWKS source. Defaults to the pool's JWKS endpoint.

    Returns:
        Flask: Configured Flask application instance
    """
    config = config or GatewayConfig.from_environ()
    configure_logging(config.log_level)

    app = Flask(__name__)
    app.config["GATEWAY"] = config

    if config.cors_origins:
        CORS(
            app,
            origins=list(config.cors_origins),
            supports_credentials=True,
            allow_headers=["Content-Type", "Authorization", _REQUEST_ID_HEADER],
            expose_headers=[_REQUEST_ID_HEADER],
            methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            max_age=3600,
        )

    idp = identity_provider or CognitoIdentityClient(
        config.region,
        config.client_id,
        config.client_secret,
        timeout=config.http_timeout_seconds,
    )
    auth = AuthExtension(build_resolver(config, key_source), secure_cookies=config.is_production)
    auth.init_app(app)

    _register_request_tracking(app)
    _register_error_handlers(app)

    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "timestamp": datetime.now(UTC).isoformat()})

    app.register_blueprint(
        create_users_blueprint(auth, idp, secure_cookies=config.is_production),
        url_prefix=f"{config.api_prefix}/users",
    )

    logger.info("Gateway configured for %s (env=%s)", config.issuer, config.environment)
    return app
