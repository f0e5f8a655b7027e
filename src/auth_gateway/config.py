"""Configuration from environment variables (and a ``.env`` file if present)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .key_cache import DEFAULT_TTL_SECONDS
from .key_providers import cognito_issuer

_REQUIRED = (
    "AWS_REGION",
    "AWS_COGNITO_USER_POOL_ID",
    "AWS_COGNITO_CLIENT_ID",
    "AWS_COGNITO_CLIENT_SECRET",
)


def _getenv_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e


def _getenv_float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {raw!r}") from e


def _split_origins(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(o.strip() for o in raw.split(",") if o.strip())


@dataclass(frozen=True)
class GatewayConfig:
    """
    Gateway configuration.

    Required:
        AWS_REGION: Region of the Cognito user pool.
        AWS_COGNITO_USER_POOL_ID: User pool id; determines issuer and JWKS URL.
        AWS_COGNITO_CLIENT_ID: App client id.
        AWS_COGNITO_CLIENT_SECRET: App client secret (secret hash key).

    Optional:
        APP_ENV: "production" turns on the Secure cookie flag (default
            "development").
        API_PREFIX: Route prefix (default "/api").
        JWKS_CACHE_TTL_SECONDS: Key set lifespan (default 86400).
        HTTP_TIMEOUT_SECONDS: Timeout for every outbound call (default 10).
        JWKS_REFRESH_MIN_INTERVAL: Seconds between forced refreshes (default 60).
        CLOCK_SKEW_SECONDS: Leeway for exp/iat (default 0).
        CORS_ORIGINS: Comma-separated allowed origins.
        LOG_LEVEL: Package log level (default "INFO").
    """

    region: str
    user_pool_id: str
    client_id: str
    client_secret: str = field(repr=False)
    environment: str = "development"
    api_prefix: str = "/api"
    jwks_cache_ttl_seconds: int = DEFAULT_TTL_SECONDS
    http_timeout_seconds: float = 10.0
    jwks_refresh_min_interval: float = 60.0
    clock_skew_seconds: int = 0
    cors_origins: tuple[str, ...] = ()
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def issuer(self) -> str:
        return cognito_issuer(self.region, self.user_pool_id)

    @classmethod
    def from_environ(cls) -> GatewayConfig:
        load_dotenv()
        missing = [name for name in _REQUIRED if not os.environ.get(name, "").strip()]
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

        return cls(
            region=os.environ["AWS_REGION"].strip(),
            user_pool_id=os.environ["AWS_COGNITO_USER_POOL_ID"].strip(),
            client_id=os.environ["AWS_COGNITO_CLIENT_ID"].strip(),
            client_secret=os.environ["AWS_COGNITO_CLIENT_SECRET"].strip(),
            environment=os.environ.get("APP_ENV", "development").strip().lower(),
            api_prefix=os.environ.get("API_PREFIX", "/api").rstrip("/"),
            jwks_cache_ttl_seconds=_getenv_int("JWKS_CACHE_TTL_SECONDS", DEFAULT_TTL_SECONDS),
            http_timeout_seconds=_getenv_float("HTTP_TIMEOUT_SECONDS", 10.0),
            jwks_refresh_min_interval=_getenv_float("JWKS_REFRESH_MIN_INTERVAL", 60.0),
            clock_skew_seconds=_getenv_int("CLOCK_SKEW_SECONDS", 0),
            cors_origins=_split_origins(os.environ.get("CORS_ORIGINS")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").strip().upper(),
        )
