"""Key cache for the identity provider's signing keys.

KeyCache holds the whole published key set, not individual keys. The set is
replaced wholesale on every successful fetch and never merged.

Behaviour:
- A set younger than the TTL is returned without touching the network.
- A missing or expired set is fetched synchronously.
- If a fetch fails while an older set exists, the older set is returned and a
  warning is logged. Availability wins over freshness on this path only.
- If a fetch fails and nothing was ever cached, KeyFetchError propagates.

Concurrency:
    No lock is held across the network call, so requests racing on a miss may
    fetch in parallel. Each fetch takes a ticket when it starts; its result is
    installed only if no fetch with a newer ticket got there first. The most
    recently started successful fetch therefore wins, and superseded results
    are dropped silently.

Security Note:
    The TTL is a window during which a newly rotated key is not yet known.
    JWTVerifier closes that window with a single forced ``refresh()`` when it
    meets an unknown ``kid``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Final

from .errors import KeyFetchError
from .models import KeyCacheState, SigningKey

if TYPE_CHECKING:
    from .protocols import KeySource

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS: Final[int] = 24 * 60 * 60
"""Lifespan of a fetched key set before it is considered stale."""


class KeyCache:
    """Process-wide cache of the current signing key set.

    Example:
        ```python
        cache = KeyCache(CognitoJWKSSource(region, pool_id))
        keys = cache.get_keys()      # fetches on first use
        key = cache.find("abc")      # SigningKey or None
        cache.refresh()              # forced, e.g. after key rotation
        ```

    Attributes:
        _source: Fetches the key set over the network.
        _ttl: Seconds a fetched set stays fresh.
        _clock: Time source, injectable for tests.
        _lock: Guards ``_tickets`` and ``_state``; never held during I/O.
        _tickets: Number of fetches started so far.
        _state: Installed key set, or None before the first success.
    """

    def __init__(
        self,
        source: KeySource,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._source = source
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._tickets = 0
        self._state: KeyCacheState | None = None

    @property
    def state(self) -> KeyCacheState | None:
        return self._state

    def get_keys(self) -> tuple[SigningKey, ...]:
        """Return the current key set, fetching it when missing or stale.

        Raises:
            KeyFetchError: Fetch failed and no key set was ever cached.
        """
        state = self._state
        if state is not None and (self._clock() - state.fetched_at) < self._ttl:
            return state.keys
        return self.refresh()

    def find(self, kid: str) -> SigningKey | None:
        """Look ``kid`` up in the current key set (may trigger a fetch)."""
        for key in self.get_keys():
            if key.kid == kid:
                return key
        return None

    def refresh(self) -> tuple[SigningKey, ...]:
        """Fetch the key set now, regardless of its age.

        Returns:
            The installed key set after this fetch. If a newer fetch finished
            first, that newer set is returned instead.

        Raises:
            KeyFetchError: Fetch failed and no key set was ever cached.
        """
        with self._lock:
            self._tickets += 1
            ticket = self._tickets

        try:
            keys = self._source.fetch()
        except KeyFetchError:
            stale = self._state
            if stale is None:
                raise
            logger.warning(
                "JWKS fetch failed; serving cached key set from %.0fs ago",
                self._clock() - stale.fetched_at,
                exc_info=True,
            )
            return stale.keys

        fetched = KeyCacheState(keys=keys, fetched_at=self._clock(), generation=ticket)
        with self._lock:
            current = self._state
            if current is None or current.generation < ticket:
                self._state = fetched
                current = fetched
                logger.info("JWKS refreshed: %d key(s) %s", len(keys), [k.kid for k in keys])
            else:
                logger.debug(
                    "Discarding JWKS fetch #%d superseded by #%d", ticket, current.generation
                )
        return current.keys
