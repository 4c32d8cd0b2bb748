"""Redis caching layer for ledger reads.

This package provides:
- Backing store clients (RedisCache, InMemoryBackend)
- Cache key generation (CacheKeyGenerator)
- TTL policies (CacheTTL)
- Cache operations (CacheManager)
- Response caching middleware (ResponseCacheMiddleware)
- Graceful fail-open behavior
"""

from ledger_api.cache.backends import CacheBackend, InMemoryBackend
from ledger_api.cache.connection import RedisCache
from ledger_api.cache.exceptions import CacheConnectionError, CacheDecodeError, CacheError
from ledger_api.cache.keys import CacheKeyGenerator
from ledger_api.cache.manager import CacheManager, CacheResult
from ledger_api.cache.middleware import CacheRule, ResponseCacheMiddleware
from ledger_api.cache.ttl import CacheTTL

__all__ = [
    # Backends
    "CacheBackend",
    "InMemoryBackend",
    "RedisCache",
    # Errors
    "CacheError",
    "CacheConnectionError",
    "CacheDecodeError",
    # Key generation
    "CacheKeyGenerator",
    # Cache manager
    "CacheManager",
    "CacheResult",
    # Response caching
    "CacheRule",
    "ResponseCacheMiddleware",
    # TTL policies
    "CacheTTL",
]
