"""Rate limiting for forced JWKS refreshes.

A token carrying an unknown ``kid`` triggers one forced refresh of the key
set, which is how key rotation gets picked up between TTL expiries. Without a
throttle, a client sending random ``kid`` values could turn every request into
an outbound JWKS fetch. RefreshGate allows at most one forced refresh per
interval and logs when denials pile up.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Final

logger = logging.getLogger(__name__)

_DEFAULT_INTERVAL: Final[float] = 60.0
"""Default minimum interval between forced refreshes in seconds."""

_DEFAULT_ALERT_THRESHOLD: Final[int] = 40
"""Default number of denials (per interval) before a warning is logged."""


class RefreshGate:
    """Thread-safe rate limiter for forced key-set refreshes.

    The first call to ``allow()`` succeeds; further calls within
    ``min_interval`` seconds are denied and counted.

    Attributes:
        _min_interval: Minimum seconds between allowed refreshes.
        _alert_threshold: Number of denials before a warning is logged.
        _lock: Guards the two counters below.
        _next_allowed_at: Unix timestamp when the next refresh is allowed.
        _denied: Count of denied attempts since the last allowed one.
    """

    def __init__(
        self,
        min_interval: float = _DEFAULT_INTERVAL,
        alert_threshold: int = _DEFAULT_ALERT_THRESHOLD,
    ) -> None:
        """Initialize the refresh gate.

        Args:
            min_interval: Minimum seconds between allowed refreshes.
            alert_threshold: Denials within one interval before warning.

        Raises:
            ValueError: If min_interval or alert_threshold are invalid.
        """
        if min_interval <= 0:
            raise ValueError(f"min_interval must be positive, got {min_interval}")
        if alert_threshold < 1:
            raise ValueError(f"alert_threshold must be at least 1, got {alert_threshold}")

        self._min_interval = min_interval
        self._alert_threshold = alert_threshold

        self._lock = threading.Lock()
        self._next_allowed_at: float = 0.0
        self._denied: int = 0

    @property
    def denied(self) -> int:
        return self._denied

    def allow(self) -> bool:
        """Return True if a forced refresh may run now.

        On True the interval restarts and the denial counter resets. On False
        the denial counter grows; reaching the alert threshold logs a warning
        once per interval.
        """
        now = time.time()

        with self._lock:
            if now < self._next_allowed_at:
                self._denied += 1
                if self._denied == self._alert_threshold:
                    logger.warning(
                        "JWKS refresh throttled: %d denied attempts within %.0fs",
                        self._denied,
                        self._min_interval,
                    )
                return False

            self._next_allowed_at = now + self._min_interval
            self._denied = 0
            return True
