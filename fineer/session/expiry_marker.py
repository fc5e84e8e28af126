"""
Persisted session-expiry marker.

A single key/value pair (`sessionExpiryMillis`, epoch milliseconds) kept outside
process memory so that a restart still knows when the previous session ends.
Reads and writes are synchronous. The key carries no TTL of its own: the
session store is responsible for comparing it with the clock.

Redis Key Pattern:
    {prefix}:sessionExpiryMillis
"""

import logging
from typing import Optional, Protocol

logger = logging.getLogger("session.expiry_marker")

MARKER_NAME = "sessionExpiryMillis"


class ExpiryMarker(Protocol):
    def read(self) -> Optional[int]: ...

    def write(self, expires_at_millis: int) -> None: ...

    def clear(self) -> None: ...


def _parse_millis(raw) -> Optional[int]:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning(f"[SESSION] Ignoring corrupt {MARKER_NAME} value: {raw!r}")
        return None


class RedisExpiryMarker:
    """Marker stored in Redis with the synchronous redis-py client."""

    def __init__(self, redis_client, prefix: str = "fineer"):
        self._redis = redis_client
        self.key = f"{prefix}:{MARKER_NAME}"

    def read(self) -> Optional[int]:
        return _parse_millis(self._redis.get(self.key))

    def write(self, expires_at_millis: int) -> None:
        self._redis.set(self.key, str(int(expires_at_millis)))
        logger.debug(f"[SESSION] Expiry marker written: {self.key}={expires_at_millis}")

    def clear(self) -> None:
        self._redis.delete(self.key)
        logger.debug(f"[SESSION] Expiry marker cleared: {self.key}")


class InMemoryExpiryMarker:
    """Process-local marker, for tests and local runs without Redis."""

    def __init__(self, initial: Optional[int] = None):
        self._value: Optional[int] = initial

    def read(self) -> Optional[int]:
        return self._value

    def write(self, expires_at_millis: int) -> None:
        self._value = int(expires_at_millis)

    def clear(self) -> None:
        self._value = None
