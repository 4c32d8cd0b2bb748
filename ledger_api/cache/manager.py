"""Cache manager for backing store operations with fail-open error handling.

This module provides the CacheManager class which owns serialization,
key construction and the default expiry policy, and implements the
cache-aside pattern with graceful degradation when the store is
unavailable. No public method raises: every failure is logged and
converted into a safe default.
"""

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, List, Mapping, Optional, Sequence, TypeVar

import structlog
from pydantic import BaseModel

from ledger_api.cache.backends import TTL_MISSING, CacheBackend
from ledger_api.cache.exceptions import CacheConnectionError, CacheDecodeError
from ledger_api.cache.keys import CacheKeyGenerator
from ledger_api.cache.ttl import CacheTTL

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    """Outcome of one contained backend call."""

    ok: bool
    value: Optional[T] = None
    error: Optional[Exception] = None

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default


def encode(value: Any) -> str:
    """Serialize a value to its JSON storage representation."""
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value)


def decode(key: str, raw: str) -> Any:
    """
    Decode stored JSON text.

    Raises:
        CacheDecodeError: If the text is not valid JSON
    """
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise CacheDecodeError(key, raw) from e


class CacheManager:
    """
    Main cache operations manager with fail-open behavior.

    Implements cache-aside pattern with methods for get, set, delete,
    pattern invalidation, counters, batched reads/writes and
    get_or_fetch. All operations fail gracefully if the backend is
    unavailable.

    Attributes:
        backend: Backing store client (shared, process lifetime)
        default_ttl: Expiry applied when a call does not pass one
    """

    def __init__(
        self, backend: CacheBackend, default_ttl: int = CacheTTL.DEFAULT.value
    ) -> None:
        """Initialize cache manager with an injected backend."""
        self.backend = backend
        self.default_ttl = default_ttl

    def is_available(self) -> bool:
        """Check if the backend is ready to accept commands."""
        return self.backend.is_ready()

    async def ping(self) -> bool:
        if not self.is_available():
            return False
        return (await self._run("ping", None, self.backend.ping)).unwrap_or(False)

    async def _run(
        self,
        operation: str,
        key: Optional[str],
        call: Callable[[], Awaitable[T]],
    ) -> CacheResult[T]:
        """
        Execute one backend call, containing and logging any failure.

        Args:
            operation: Operation name used in log events
            key: Key or pattern involved (for logging)
            call: Zero-argument coroutine factory performing the call

        Returns:
            CacheResult with ok=False when the backend is not ready or the
            call raised
        """
        if not self.is_available():
            logger.debug(f"cache_{operation}_skipped", reason="backend_not_ready", key=key)
            return CacheResult(ok=False, error=CacheConnectionError("Backend not ready", key=key))

        try:
            return CacheResult(ok=True, value=await call())

        except CacheConnectionError as e:
            logger.warning(
                f"cache_{operation}_unavailable",
                key=key,
                error=str(e),
            )
            return CacheResult(ok=False, error=e)

        except Exception as e:
            logger.error(
                f"cache_{operation}_error",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return CacheResult(ok=False, error=e)

    def build_key(self, namespace: str, *args: Any) -> str:
        """
        Build a deterministic cache key.

        Example:
            >>> manager.build_key("account", "42", "u1")
            'account:42:u1'
        """
        return CacheKeyGenerator.build(namespace, *args)

    async def get(self, key: str) -> Any:
        """
        Retrieve cached value by key.

        Args:
            key: Cache key to retrieve

        Returns:
            Decoded value, or None on miss, decode failure or
            unavailable backend

        Example:
            >>> account = await manager.get("account:42:u1")
        """
        result = await self._run("get", key, lambda: self.backend.get(key))
        raw = result.unwrap_or(None)

        if raw is None:
            if result.ok:
                logger.debug("cache_miss", key=key)
            return None

        try:
            value = decode(key, raw)
        except CacheDecodeError as e:
            logger.error("cache_get_json_decode_error", key=key, error=str(e))
            # Invalid cached data - delete it
            await self.delete(key)
            return None

        logger.debug("cache_hit", key=key)
        return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Store value in cache with TTL.

        Args:
            key: Cache key
            value: Data to cache (JSON-serializable or a pydantic model)
            ttl: Time to live in seconds (defaults to default_ttl)

        Returns:
            True if cached successfully, False otherwise
        """
        ttl = self.default_ttl if ttl is None else ttl

        try:
            payload = encode(value)
        except (TypeError, ValueError) as e:
            logger.error(
                "cache_set_serialization_error",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        result = await self._run(
            "set", key, lambda: self.backend.set_with_expiry(key, payload, ttl)
        )
        if result.ok:
            logger.debug("cache_set", key=key, ttl=ttl, data_size=len(payload))
        return result.ok

    async def delete(self, key: str) -> bool:
        """
        Delete cached value by key.

        Returns:
            True if a key was removed, False otherwise
        """
        result = await self._run("delete", key, lambda: self.backend.delete(key))
        deleted = bool(result.unwrap_or(0))
        if result.ok:
            logger.debug("cache_delete", key=key, deleted=deleted)
        return deleted

    async def delete_matching(self, pattern: str) -> bool:
        """
        Delete every key matching a glob pattern.

        Keys are enumerated first and then removed with a single bulk
        delete. Nothing matching is not a failure.

        Args:
            pattern: Glob pattern, e.g. ``user_accounts:u1:*``

        Returns:
            True unless the backend failed
        """
        result = await self._run(
            "delete_matching", pattern, lambda: self.backend.delete_matching(pattern)
        )
        if result.ok:
            logger.info("cache_delete_pattern", pattern=pattern, deleted=result.value)
        return result.ok

    async def invalidate(self, *patterns: str) -> bool:
        """Run delete_matching() for each pattern; True if all succeeded."""
        outcomes = [await self.delete_matching(pattern) for pattern in patterns]
        return all(outcomes)

    async def exists(self, key: str) -> bool:
        result = await self._run("exists", key, lambda: self.backend.exists(key))
        return bool(result.unwrap_or(False))

    async def ttl(self, key: str) -> int:
        """Seconds left, -1 for no expiry, -2 for absent (or unavailable)."""
        result = await self._run("ttl", key, lambda: self.backend.ttl(key))
        return int(result.unwrap_or(TTL_MISSING))

    async def increment(self, key: str, by: int = 1, ttl: Optional[int] = None) -> int:
        """
        Increment a counter, applying the TTL only when the key is new.

        The expiry is set only when the post-increment value equals
        ``by``, so re-incrementing an existing counter never extends its
        lifetime.

        Args:
            key: Counter key
            by: Increment amount
            ttl: Expiry for a newly created counter (defaults to default_ttl)

        Returns:
            New counter value, or 0 on failure
        """
        ttl = self.default_ttl if ttl is None else ttl

        result = await self._run("increment", key, lambda: self.backend.increment(key, by))
        if not result.ok:
            return 0

        value = int(result.value)
        if value == by and ttl > 0:
            await self._run("expire", key, lambda: self.backend.expire(key, ttl))

        return value

    async def multi_set(self, pairs: Mapping[str, Any], ttl: Optional[int] = None) -> bool:
        """
        Store several values in one batch.

        The batch is not atomic: after a failure some keys may be written.

        Returns:
            True if the whole batch was sent successfully
        """
        ttl = self.default_ttl if ttl is None else ttl

        try:
            encoded = {key: encode(value) for key, value in pairs.items()}
        except (TypeError, ValueError) as e:
            logger.error(
                "cache_multi_set_serialization_error",
                keys=len(pairs),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        result = await self._run(
            "multi_set", None, lambda: self.backend.multi_set(encoded, ttl)
        )
        if result.ok:
            logger.debug("cache_multi_set", keys=len(encoded), ttl=ttl)
        return result.ok

    async def multi_get(self, keys: Sequence[str]) -> Dict[str, Any]:
        """
        Retrieve several values.

        Returns:
            Mapping of every requested key to its value (None when absent).
            Entries that are not valid JSON are returned as raw text. An
            empty mapping is returned if the backend failed.
        """
        keys = list(keys)
        result = await self._run("multi_get", None, lambda: self.backend.multi_get(keys))
        if not result.ok:
            return {}

        values: Dict[str, Any] = {}
        for key, raw in zip(keys, result.value):
            if raw is None:
                values[key] = None
                continue
            try:
                values[key] = decode(key, raw)
            except CacheDecodeError:
                values[key] = raw
        return values

    async def flush(self) -> bool:
        """Remove every key from the backing store."""
        result = await self._run("flush", None, self.backend.flush)
        if result.ok:
            logger.warning("cache_flushed")
        return result.ok

    async def get_or_fetch(
        self,
        key: str,
        fetch_func: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Get from cache or fetch and cache (cache-aside pattern).

        Args:
            key: Cache key
            fetch_func: Async function querying the source of truth on miss
            ttl: Time to live in seconds for the populated entry

        Returns:
            Dictionary with structure:
                {
                    "data": <actual data>,
                    "metadata": {"cached": bool, "ttl": int}
                }

        Raises:
            Whatever fetch_func raises; cache failures never propagate

        Example:
            >>> result = await manager.get_or_fetch(key, load_accounts, ttl=900)
            >>> print(f"Cached: {result['metadata']['cached']}")
        """
        ttl = self.default_ttl if ttl is None else ttl

        # Try cache first
        cached = await self.get(key)

        if cached is not None:
            logger.info("cache_hit_get_or_fetch", key=key)
            return {
                "data": cached,
                "metadata": {"cached": True, "ttl": ttl},
            }

        # Cache miss - fetch data
        logger.info("cache_miss_fetching", key=key)

        try:
            data = await fetch_func()

        except Exception as e:
            logger.error(
                "fetch_function_error",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            # Re-raise the fetch error (don't swallow it)
            raise

        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json")

        await self.set(key, data, ttl)

        return {
            "data": data,
            "metadata": {"cached": False, "ttl": ttl},
        }
