"""
FastAPI application factory.

Wires the record store, the cache backend and the services together,
installs the response-caching middleware, the error handlers and the
health check, and owns the cache client's lifetime.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ledger_api.cache.backends import CacheBackend, InMemoryBackend
from ledger_api.cache.connection import RedisCache
from ledger_api.cache.exceptions import CacheConnectionError
from ledger_api.cache.manager import CacheManager
from ledger_api.cache.middleware import CacheRule, ResponseCacheMiddleware
from ledger_api.cache.ttl import CacheTTL
from ledger_api.config import Settings
from ledger_api.exceptions import LedgerAPIError
from ledger_api.models.responses import ErrorResponse, HealthCheckResponse
from ledger_api.routes import routers
from ledger_api.routes.dependencies import requester_id
from ledger_api.services import (
    RESPONSE_CACHE_PREFIX,
    AccountService,
    ActivityService,
    PaymentService,
)
from ledger_api.store.base import RecordStore
from ledger_api.store.memory import InMemoryRecordStore
from ledger_api.utils.logger import bind_request_context, get_logger

logger = get_logger(__name__)

# Server metadata
SERVER_NAME = "ledger-api"
SERVER_VERSION = "1.0.0"
SERVER_DESCRIPTION = "Multi-tenant account ledger with a Redis cache-aside layer"


def build_cache_backend(settings: Settings) -> CacheBackend:
    """Select the cache backend named by ``CACHE_BACKEND``."""
    if settings.cache_backend == "memory":
        return InMemoryBackend()
    return RedisCache.from_settings(settings)


def create_app(
    settings: Optional[Settings] = None,
    cache_backend: Optional[CacheBackend] = None,
    store: Optional[RecordStore] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Runtime configuration (defaults when omitted)
        cache_backend: Backing store client; built from settings when omitted
        store: Record store; an in-memory store when omitted

    Returns:
        Configured application. The cache client connects on startup and
        is closed on shutdown.

    Example:
        >>> app = create_app(Settings(cache_backend="memory"))
        >>> uvicorn.run(app)
    """
    settings = settings or Settings()
    backend = cache_backend or build_cache_backend(settings)
    store = store or InMemoryRecordStore()
    cache_manager = CacheManager(backend, default_ttl=settings.cache_default_ttl)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await backend.connect()
        except CacheConnectionError as e:
            # Serve from the record store until the cache comes back
            logger.warning("cache_unavailable_at_startup", error=str(e))

        logger.info(
            "server_started",
            name=SERVER_NAME,
            version=SERVER_VERSION,
            environment=settings.environment,
            cache_backend=settings.cache_backend,
            cache_available=cache_manager.is_available(),
        )

        try:
            yield
        finally:
            await backend.close()
            logger.info("server_shutdown_complete")

    app = FastAPI(
        title=SERVER_NAME,
        version=SERVER_VERSION,
        description=SERVER_DESCRIPTION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.cache_manager = cache_manager
    app.state.account_service = AccountService(store, cache_manager)
    app.state.payment_service = PaymentService(store, cache_manager)
    app.state.activity_service = ActivityService(store, cache_manager)

    app.add_middleware(
        ResponseCacheMiddleware,
        rules=[CacheRule(RESPONSE_CACHE_PREFIX, ttl=CacheTTL.get_ttl("api_response"))],
        identify=requester_id,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next: Any) -> Any:
        bind_request_context(
            method=request.method,
            path=request.url.path,
            requester=requester_id(request),
        )
        start_time = time.time()

        response = await call_next(request)

        logger.info(
            "http_request",
            status_code=response.status_code,
            cache=response.headers.get("X-Cache", "MISS"),
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return response

    for router in routers:
        app.include_router(router)

    setup_error_handling(app)
    register_health_check(app)

    return app


def _error_response(status_code: int, message: str, errors: Any = None) -> JSONResponse:
    body = ErrorResponse(message=message, errors=errors)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def setup_error_handling(app: FastAPI) -> None:
    """
    Turn exceptions into ``{"success": false, "message": ...}`` responses.

    Error Codes:
        400: Invalid request (body, query or pagination)
        401: Missing requester identity
        404: Record missing, deleted or foreign
        409: Duplicate email, phone or transaction id
        503: Record store failure
        500: Anything unexpected
    """

    @app.exception_handler(LedgerAPIError)
    async def ledger_error_handler(request: Request, exc: LedgerAPIError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "request_failed",
                path=request.url.path,
                status_code=exc.status_code,
                error=exc.message,
                error_type=type(exc).__name__,
            )
        else:
            logger.warning(
                "request_rejected",
                path=request.url.path,
                status_code=exc.status_code,
                error=exc.message,
            )
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
        logger.warning("request_validation_failed", path=request.url.path, errors=errors)
        return _error_response(400, "Invalid request", errors)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unexpected_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=str(exc),
            exc_info=exc,
        )
        return _error_response(500, "Internal server error")


def register_health_check(app: FastAPI) -> None:
    """Register GET /health reporting cache and record store status."""

    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check(request: Request) -> Dict[str, Any]:
        """
        Health check endpoint for monitoring.

        A missing cache only degrades the service; a failing record store
        makes it unhealthy.
        """
        cache: CacheManager = request.app.state.cache_manager
        store: RecordStore = request.app.state.store

        try:
            store_ok = await store.ping()
        except Exception as e:
            logger.error("record_store_ping_failed", error=str(e), error_type=type(e).__name__)
            store_ok = False

        components = {
            "server": "healthy",
            "cache": "healthy" if await cache.ping() else "unavailable",
            "store": "healthy" if store_ok else "unhealthy",
        }

        if all(status == "healthy" for status in components.values()):
            overall_status = "healthy"
        elif components["store"] == "unhealthy":
            overall_status = "unhealthy"
        else:
            overall_status = "degraded"

        response = HealthCheckResponse(
            status=overall_status,
            version=SERVER_VERSION,
            components=components,
        )

        logger.debug("health_check_performed", status=overall_status)

        return response.model_dump()
