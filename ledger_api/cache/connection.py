"""Redis connection and pooling management.

This module provides the RedisCache class: the process-wide handle to
the Redis backing store. It owns the connection pool, the bounded
connect/reconnect policy and the graceful close, and exposes the
primitive operations of the CacheBackend contract.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Tuple, TypeVar

import redis.asyncio as redis
import structlog
from redis.asyncio.connection import ConnectionPool
from redis.backoff import ExponentialBackoff, NoBackoff
from redis.exceptions import AuthenticationError as RedisAuthenticationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from ledger_api.cache.exceptions import CacheConnectionError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RedisCache:
    """
    Redis cache connection manager with connection pooling.

    Commands reconnect transparently through redis-py's Retry with
    exponential backoff. When a command still fails with a connection
    error the handle marks itself down for ``cooldown_seconds``; during
    that window is_ready() is False so callers skip the store entirely
    instead of waiting on a dead endpoint.

    Attributes:
        pool: Redis connection pool
        client: Redis client instance
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        *,
        max_connections: int = 20,
        socket_timeout: float = 5.0,
        reconnect_attempts: int = 10,
        reconnect_base_delay: float = 0.1,
        reconnect_max_delay: float = 3.0,
        reconnect_window: float = 60.0,
        cooldown_seconds: float = 5.0,
        command_retries: int = 3,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize Redis cache with connection pooling."""
        self.redis_url = redis_url
        self.max_connections = max_connections
        self.socket_timeout = socket_timeout
        self.reconnect_attempts = max(1, reconnect_attempts)
        self.reconnect_base_delay = reconnect_base_delay
        self.reconnect_max_delay = reconnect_max_delay
        self.reconnect_window = reconnect_window
        self.cooldown_seconds = cooldown_seconds
        self.command_retries = command_retries
        self._sleep = sleep

        self.pool: Optional[ConnectionPool] = None
        self.client: Optional[redis.Redis] = None
        self._closed = False
        self._down_until = 0.0
        self._initialize_pool()

    @classmethod
    def from_settings(cls, settings: Any) -> "RedisCache":
        """Build a client from a Settings instance."""
        return cls(
            settings.redis_url,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
            reconnect_attempts=settings.redis_reconnect_attempts,
            reconnect_max_delay=settings.redis_reconnect_max_delay,
            reconnect_window=settings.redis_reconnect_window,
        )

    @property
    def _safe_url(self) -> str:
        # Don't log credentials
        return self.redis_url.split("@")[-1]

    def _initialize_pool(self) -> None:
        """
        Initialize Redis connection pool.

        No network traffic happens here; connect() performs the first
        round trip.
        """
        try:
            self.pool = ConnectionPool.from_url(
                self.redis_url,
                max_connections=self.max_connections,
                decode_responses=True,  # Auto-decode bytes to str
                socket_timeout=self.socket_timeout,
                socket_connect_timeout=self.socket_timeout,
                retry=Retry(
                    ExponentialBackoff(
                        cap=self.reconnect_max_delay, base=self.reconnect_base_delay
                    ),
                    self.command_retries,
                ),
                retry_on_error=[RedisConnectionError, RedisTimeoutError],
            )

            self.client = redis.Redis(connection_pool=self.pool)

            logger.info(
                "redis_pool_initialized",
                max_connections=self.max_connections,
                redis_url=self._safe_url,
            )

        except Exception as e:
            logger.error(
                "redis_pool_initialization_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            # Don't raise - fail open (cache unavailable but server continues)
            self.client = None
            self.pool = None

    async def connect(self) -> None:
        """
        Establish the connection, retrying with bounded backoff.

        The delay before attempt ``n + 1`` is ``min(n * base_delay, max_delay)``.
        Retrying stops at ``reconnect_attempts`` or when the next delay
        would exceed ``reconnect_window``. Authentication failures are not
        retried. The per-command Retry is suspended while probing so this
        loop is the only retry layer.

        Raises:
            CacheConnectionError: If the retry budget is exhausted
        """
        if self.client is None:
            raise CacheConnectionError("Redis client not initialized")

        command_retry = self.client.get_retry()
        self.client.set_retry(Retry(NoBackoff(), 0))
        try:
            attempt, last_error = await self._probe()
        finally:
            self.client.set_retry(command_retry)

        if last_error is None:
            return

        self._mark_down(last_error)
        raise CacheConnectionError(
            f"Could not connect to Redis at {self._safe_url}: {last_error}",
            attempts=attempt,
        ) from last_error

    async def _probe(self) -> Tuple[int, Optional[Exception]]:
        """Ping until success or the retry budget runs out; returns (attempts, last error)."""
        started = time.monotonic()
        attempt = 0
        last_error: Optional[Exception] = None

        while attempt < self.reconnect_attempts:
            attempt += 1
            try:
                await self.client.ping()
                self._closed = False
                self._down_until = 0.0
                logger.info("redis_connected", attempts=attempt, redis_url=self._safe_url)
                return attempt, None

            except RedisAuthenticationError as e:
                last_error = e
                break

            except (RedisConnectionError, RedisTimeoutError, OSError) as e:
                last_error = e
                delay = min(attempt * self.reconnect_base_delay, self.reconnect_max_delay)
                elapsed = time.monotonic() - started

                if attempt >= self.reconnect_attempts or elapsed + delay > self.reconnect_window:
                    break

                logger.warning(
                    "redis_reconnect_attempt",
                    attempt=attempt,
                    delay_seconds=delay,
                    error=str(e),
                )
                await self._sleep(delay)

        return attempt, last_error

    def _mark_down(self, error: Optional[Exception]) -> None:
        self._down_until = time.monotonic() + self.cooldown_seconds
        logger.error(
            "redis_marked_unavailable",
            cooldown_seconds=self.cooldown_seconds,
            error=str(error),
            error_type=type(error).__name__,
        )

    def is_ready(self) -> bool:
        """
        Check whether commands should be sent to Redis.

        Returns:
            False when the client was never created, has been closed, or
            is inside the cool-down that follows a connection failure
        """
        return (
            self.client is not None
            and not self._closed
            and time.monotonic() >= self._down_until
        )

    async def _execute(self, key: Optional[str], command: Callable[[], Awaitable[T]]) -> T:
        if self.client is None:
            raise CacheConnectionError("Redis client not initialized", key=key)
        try:
            return await command()
        except (RedisConnectionError, RedisTimeoutError) as e:
            self._mark_down(e)
            raise CacheConnectionError(str(e), key=key) from e

    async def ping(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is healthy, False otherwise
        """
        if not self.client:
            logger.warning("redis_ping_failed", reason="client_not_initialized")
            return False

        try:
            result = await self.client.ping()
            logger.debug("redis_ping_success", result=result)
            return bool(result)

        except Exception as e:
            logger.error(
                "redis_ping_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def close(self) -> None:
        """
        Close Redis connection pool gracefully.

        Called from the application lifespan during shutdown. Errors are
        logged and never raised.
        """
        self._closed = True
        try:
            if self.client:
                await self.client.aclose()
                logger.info("redis_client_closed")

            if self.pool:
                await self.pool.disconnect()
                logger.info("redis_pool_disconnected")

        except Exception as e:
            logger.error(
                "redis_close_error",
                error=str(e),
                error_type=type(e).__name__,
            )

    async def get(self, key: str) -> Optional[str]:
        return await self._execute(key, lambda: self.client.get(key))

    async def set_with_expiry(self, key: str, value: str, ttl: Optional[int]) -> None:
        if ttl and ttl > 0:
            await self._execute(key, lambda: self.client.setex(key, ttl, value))
        else:
            await self._execute(key, lambda: self.client.set(key, value))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._execute(keys[0], lambda: self.client.delete(*keys)))

    async def scan_keys(self, pattern: str) -> List[str]:
        """Enumerate keys matching a glob pattern with SCAN (never KEYS)."""

        async def _scan() -> List[str]:
            found = [key async for key in self.client.scan_iter(match=pattern, count=500)]
            # SCAN may return a key more than once
            return list(dict.fromkeys(found))

        return await self._execute(pattern, _scan)

    async def delete_matching(self, pattern: str) -> int:
        keys = await self.scan_keys(pattern)
        if not keys:
            return 0
        return await self.delete(*keys)

    async def exists(self, key: str) -> bool:
        return bool(await self._execute(key, lambda: self.client.exists(key)))

    async def ttl(self, key: str) -> int:
        return int(await self._execute(key, lambda: self.client.ttl(key)))

    async def increment(self, key: str, by: int = 1) -> int:
        return int(await self._execute(key, lambda: self.client.incrby(key, by)))

    async def expire(self, key: str, ttl: int) -> bool:
        return bool(await self._execute(key, lambda: self.client.expire(key, ttl)))

    async def multi_get(self, keys: Sequence[str]) -> List[Optional[str]]:
        if not keys:
            return []
        return list(await self._execute(keys[0], lambda: self.client.mget(list(keys))))

    async def multi_set(self, pairs: Mapping[str, str], ttl: Optional[int]) -> None:
        """Pipeline SETEX/SET for every pair. Not transactional."""
        if not pairs:
            return

        async def _pipeline() -> None:
            async with self.client.pipeline(transaction=False) as pipe:
                for key, value in pairs.items():
                    if ttl and ttl > 0:
                        pipe.setex(key, ttl, value)
                    else:
                        pipe.set(key, value)
                await pipe.execute()

        await self._execute(next(iter(pairs)), _pipeline)

    async def flush(self) -> None:
        await self._execute(None, lambda: self.client.flushdb())
