"""Response-caching middleware for idempotent read endpoints.

GET requests under a configured path prefix are answered from the cache
when a stored envelope exists; otherwise the downstream handler runs and
its successful, non-empty JSON envelope is written to the cache in a
background task after the response has been handed back unchanged.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

import structlog
from starlette.background import BackgroundTask
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from ledger_api.cache.keys import CacheKeyGenerator
from ledger_api.cache.manager import CacheManager
from ledger_api.cache.ttl import CacheTTL

logger = structlog.get_logger(__name__)

SAFE_METHOD = "GET"
FROM_CACHE_FIELD = "fromCache"


@dataclass(frozen=True)
class CacheRule:
    """
    Response caching rule for one path prefix.

    Attributes:
        path_prefix: Requests whose path equals or lives under this prefix
        ttl: Expiry for stored responses in seconds
        key_builder: Optional custom key derivation from the request
    """

    path_prefix: str
    ttl: int = CacheTTL.API_RESPONSE.value
    key_builder: Optional[Callable[[Request], str]] = None

    def matches(self, path: str) -> bool:
        prefix = self.path_prefix.rstrip("/")
        return path == prefix or path.startswith(prefix + "/")


def _has_payload(data: Any) -> bool:
    return data is not None and data != [] and data != {} and data != ""


def cacheable_envelope(body: bytes) -> Optional[Dict[str, Any]]:
    """
    Extract the envelope to store from a response body.

    Returns:
        The decoded envelope without its ``fromCache`` marker when it has
        ``success: true`` and a non-empty ``data`` field, else None
    """
    try:
        envelope = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None

    if not isinstance(envelope, dict):
        return None
    if envelope.get("success") is not True or not _has_payload(envelope.get("data")):
        return None

    return {name: value for name, value in envelope.items() if name != FROM_CACHE_FIELD}


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """
    Short-circuit cached GET responses and populate the cache on success.

    The CacheManager is looked up on ``app.state.cache_manager`` at request
    time so the application factory stays the only owner of it.

    Example:
        >>> app.add_middleware(
        ...     ResponseCacheMiddleware,
        ...     rules=[CacheRule("/api/accounts", ttl=3600)],
        ...     identify=requester_id,
        ... )
    """

    def __init__(
        self,
        app: ASGIApp,
        rules: Sequence[CacheRule],
        identify: Optional[Callable[[Request], Optional[str]]] = None,
    ) -> None:
        super().__init__(app)
        self.rules = list(rules)
        self.identify = identify or (lambda request: None)

    def _match(self, path: str) -> Optional[CacheRule]:
        for rule in self.rules:
            if rule.matches(path):
                return rule
        return None

    def _cache_key(self, request: Request, rule: CacheRule) -> str:
        if rule.key_builder is not None:
            return rule.key_builder(request)
        return CacheKeyGenerator.response_key(
            request.url.path, request.query_params, self.identify(request)
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method != SAFE_METHOD:
            return await call_next(request)

        rule = self._match(request.url.path)
        cache: Optional[CacheManager] = getattr(request.app.state, "cache_manager", None)
        if rule is None or cache is None:
            return await call_next(request)

        try:
            cache_key = self._cache_key(request, rule)
        except Exception as e:
            logger.error(
                "response_cache_key_error",
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
            )
            return await call_next(request)

        cached = await cache.get(cache_key)
        if isinstance(cached, dict):
            logger.info("response_cache_hit", path=request.url.path, key=cache_key)
            return JSONResponse(
                {**cached, FROM_CACHE_FIELD: True},
                status_code=200,
                headers={"X-Cache": "HIT"},
            )

        response = await call_next(request)
        if response.status_code != 200:
            return response

        body = b"".join([chunk async for chunk in response.body_iterator])
        envelope = cacheable_envelope(body)

        background = None
        if envelope is not None:
            background = BackgroundTask(self._store, cache, cache_key, envelope, rule.ttl)

        return Response(
            content=body,
            status_code=response.status_code,
            headers=response.headers,
            background=background,
        )

    async def _store(
        self, cache: CacheManager, cache_key: str, envelope: Dict[str, Any], ttl: int
    ) -> None:
        stored = await cache.set(cache_key, envelope, ttl)
        logger.debug("response_cache_populated", key=cache_key, stored=stored)
