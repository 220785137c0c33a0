"""In-memory cache for data derived from notification events.

Many notifications usually share one event (e.g. every subscriber of a
package gets notified about the same release). The first delivery for an
event looks up the package or repository and renders the payload source
data; later deliveries within the expiration window reuse it.

Entries expire a fixed time after they were written, reading them does
not extend their life. Cached values are treated as immutable snapshots.

Usage:
    cache = PayloadCache(ttl=300)
    key = cache_key(CacheKind.PACKAGE, event.event_id)
    package = cache.get(key)
    if package is None:
        package = await load_package(...)
        cache.set(key, package)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import uuid

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0


class CacheKind(str, Enum):
    """Kinds of derived data stored in the cache, used as key namespaces."""

    EMAIL_DATA = "emailData"
    PACKAGE = "package"
    REPOSITORY = "repository"


def cache_key(kind: CacheKind, event_id: uuid.UUID | str) -> str:
    """Build the cache key for a kind of derived data of an event."""
    return f"{kind.value}.{event_id}"


class PayloadCache:
    """Thread-safe key/value cache with a fixed time-to-live.

    Attributes:
        ttl: Seconds an entry stays valid after being written.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl: Seconds an entry stays valid after being written.
            clock: Monotonic time source (injectable for tests).
        """
        if ttl <= 0:
            msg = "Cache ttl must be positive"
            raise ValueError(msg)
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Any | None:
        """Return the value stored under key, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        """Store a value, replacing any previous one and restarting its expiration."""
        if value is None:
            msg = "None cannot be cached"
            raise ValueError(msg)
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl, value)

    def purge_expired(self) -> int:
        """Drop expired entries.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug("Purged %d expired payload cache entries", len(expired))
        return len(expired)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
