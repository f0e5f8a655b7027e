from __future__ import annotations

import logging

_PACKAGE = "auth_gateway"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure logging for the gateway.

    Notes:
    - Plain stdlib logging. If the host (gunicorn, flask run) already set up
      root handlers they are reused; otherwise a basic stream handler is added.
    - Only the package level is set, so child loggers (auth_gateway.*)
      inherit it without touching third-party verbosity.
    - Cookie and token values are never passed to these loggers.
    """
    if not logging.getLogger().handlers:
        logging.basicConfig(format=_FORMAT)
    logging.getLogger(_PACKAGE).setLevel(level.upper())
