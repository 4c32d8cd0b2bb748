"""
Exceptions raised by cache backends.

These never reach request handlers: CacheManager catches every one of
them at its public boundary and converts it into a safe default.
"""

from typing import Optional


class CacheError(Exception):
    """
    Base exception for all cache layer errors.

    Attributes:
        message: Error description
        key: Cache key (or pattern) involved, if any
    """

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        self.message = message
        self.key = key
        super().__init__(self.message)


class CacheConnectionError(CacheError):
    """
    Raised when the backing store cannot be reached.

    This covers refused connections, failed handshakes/authentication
    and an exhausted reconnect budget. It is terminal for the cache
    operation in progress, never for the request.

    Example:
        >>> raise CacheConnectionError("Redis unreachable", attempts=10)
    """

    def __init__(
        self,
        message: str = "Cache backend unreachable",
        key: Optional[str] = None,
        attempts: int = 0,
    ) -> None:
        self.attempts = attempts
        super().__init__(message, key=key)

    def __str__(self) -> str:
        if self.attempts:
            return f"{self.message} (after {self.attempts} attempts)"
        return self.message


class CacheDecodeError(CacheError):
    """
    Raised when stored text does not decode as JSON.

    CacheManager treats this as a miss on get() and falls back to the
    raw text on multi_get().
    """

    def __init__(self, key: str, raw: str) -> None:
        self.raw = raw
        super().__init__(f"Cached value for '{key}' is not valid JSON", key=key)
