"""Backing store contract and the in-process backend.

CacheBackend is the primitive key/value surface CacheManager depends on.
RedisCache (connection.py) is the network implementation; InMemoryBackend
mirrors Redis semantics in-process for tests and local runs.
"""

import fnmatch
import math
import time
from typing import (
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

import structlog

from ledger_api.cache.exceptions import CacheConnectionError

logger = structlog.get_logger(__name__)

# Redis TTL reply codes
TTL_NO_EXPIRY = -1
TTL_MISSING = -2


@runtime_checkable
class CacheBackend(Protocol):
    """Primitive operations of a remote key/value store."""

    async def connect(self) -> None:
        """Establish the shared connection, raising CacheConnectionError on failure."""
        ...

    async def close(self) -> None:
        """Best-effort graceful close. Never raises."""
        ...

    def is_ready(self) -> bool:
        """False when the handle is known to be unusable."""
        ...

    async def ping(self) -> bool:
        ...

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set_with_expiry(self, key: str, value: str, ttl: Optional[int]) -> None:
        """Write a value; a falsy ttl stores it without expiry."""
        ...

    async def delete(self, *keys: str) -> int:
        ...

    async def scan_keys(self, pattern: str) -> List[str]:
        ...

    async def delete_matching(self, pattern: str) -> int:
        ...

    async def exists(self, key: str) -> bool:
        ...

    async def ttl(self, key: str) -> int:
        """Seconds remaining, -1 without expiry, -2 when absent."""
        ...

    async def increment(self, key: str, by: int = 1) -> int:
        ...

    async def expire(self, key: str, ttl: int) -> bool:
        ...

    async def multi_get(self, keys: Sequence[str]) -> List[Optional[str]]:
        """Values aligned to keys; None marks an absent entry."""
        ...

    async def multi_set(self, pairs: Mapping[str, str], ttl: Optional[int]) -> None:
        """Batched writes with no cross-key atomicity."""
        ...

    async def flush(self) -> None:
        ...


class InMemoryBackend:
    """
    In-process backend with Redis-compatible semantics.

    Expiry is evaluated lazily against an injectable clock so tests can
    move time forward. disconnect() simulates an unreachable store: every
    primitive then raises CacheConnectionError and is_ready() is False.

    Example:
        >>> backend = InMemoryBackend()
        >>> await backend.connect()
        >>> await backend.set_with_expiry("k", "1", 60)
        >>> await backend.ttl("k")
        60
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._connected = False

    async def connect(self) -> None:
        self._connected = True
        logger.info("memory_backend_connected")

    async def close(self) -> None:
        self._connected = False
        logger.info("memory_backend_closed")

    def disconnect(self) -> None:
        """Simulate losing the backing store."""
        self._connected = False
        logger.warning("memory_backend_disconnected")

    def is_ready(self) -> bool:
        return self._connected

    def _check(self) -> None:
        if not self._connected:
            raise CacheConnectionError("In-memory backend is disconnected")

    def _live(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def _expiry(self, ttl: Optional[int]) -> Optional[float]:
        return self._clock() + ttl if ttl and ttl > 0 else None

    async def ping(self) -> bool:
        return self._connected

    async def get(self, key: str) -> Optional[str]:
        self._check()
        entry = self._live(key)
        return entry[0] if entry else None

    async def set_with_expiry(self, key: str, value: str, ttl: Optional[int]) -> None:
        self._check()
        self._data[key] = (value, self._expiry(ttl))

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                removed += 1
        return removed

    async def scan_keys(self, pattern: str) -> List[str]:
        self._check()
        return [
            key
            for key in list(self._data)
            if fnmatch.fnmatchcase(key, pattern) and self._live(key) is not None
        ]

    async def delete_matching(self, pattern: str) -> int:
        keys = await self.scan_keys(pattern)
        if not keys:
            return 0
        return await self.delete(*keys)

    async def exists(self, key: str) -> bool:
        self._check()
        return self._live(key) is not None

    async def ttl(self, key: str) -> int:
        self._check()
        entry = self._live(key)
        if entry is None:
            return TTL_MISSING
        if entry[1] is None:
            return TTL_NO_EXPIRY
        return int(math.ceil(entry[1] - self._clock()))

    async def increment(self, key: str, by: int = 1) -> int:
        self._check()
        entry = self._live(key)
        current, expires_at = entry if entry else ("0", None)
        try:
            value = int(current) + by
        except ValueError as e:
            raise ValueError(f"value at '{key}' is not an integer") from e
        self._data[key] = (str(value), expires_at)
        return value

    async def expire(self, key: str, ttl: int) -> bool:
        self._check()
        entry = self._live(key)
        if entry is None:
            return False
        self._data[key] = (entry[0], self._expiry(ttl))
        return True

    async def multi_get(self, keys: Sequence[str]) -> List[Optional[str]]:
        self._check()
        values: List[Optional[str]] = []
        for key in keys:
            entry = self._live(key)
            values.append(entry[0] if entry else None)
        return values

    async def multi_set(self, pairs: Mapping[str, str], ttl: Optional[int]) -> None:
        self._check()
        expires_at = self._expiry(ttl)
        for key, value in pairs.items():
            self._data[key] = (value, expires_at)

    async def flush(self) -> None:
        self._check()
        self._data.clear()
