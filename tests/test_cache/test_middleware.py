"""Unit tests for the response-caching middleware."""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from ledger_api.cache.backends import InMemoryBackend
from ledger_api.cache.manager import CacheManager
from ledger_api.cache.middleware import CacheRule, ResponseCacheMiddleware, cacheable_envelope
from ledger_api.routes.dependencies import requester_id


def build_app(backend, rules=None):
    """Small app whose handlers count how often they run."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await backend.connect()
        yield
        await backend.close()

    app = FastAPI(lifespan=lifespan)
    app.state.cache_manager = CacheManager(backend)
    app.state.calls = 0
    app.add_middleware(
        ResponseCacheMiddleware,
        rules=rules or [CacheRule("/api/accounts", ttl=3600)],
        identify=requester_id,
    )

    @app.get("/api/accounts")
    async def list_accounts(request: Request, empty: bool = False):
        request.app.state.calls += 1
        return {
            "success": True,
            "total": 0 if empty else 1,
            "data": [] if empty else [{"id": "a1"}],
            "fromCache": False,
        }

    @app.post("/api/accounts")
    async def create_account(request: Request):
        request.app.state.calls += 1
        return {"success": True, "data": {"id": "a2"}}

    @app.get("/api/accounts/missing")
    async def missing(request: Request):
        request.app.state.calls += 1
        return JSONResponse({"success": False, "message": "not found"}, status_code=404)

    @app.get("/health")
    async def health(request: Request):
        request.app.state.calls += 1
        return {"success": True, "data": {"status": "ok"}}

    return app


class TestResponseCacheMiddleware:
    """Test suite for ResponseCacheMiddleware."""

    @pytest.fixture
    def memory_backend(self):
        return InMemoryBackend()

    @pytest.fixture
    def app(self, memory_backend):
        return build_app(memory_backend)

    @pytest.fixture
    def client(self, app):
        with TestClient(app) as client:
            yield client

    def test_miss_then_hit(self, app, client):
        """Test the second identical GET is served from the cache."""
        headers = {"X-User-Id": "u1"}

        first = client.get("/api/accounts", headers=headers)
        second = client.get("/api/accounts", headers=headers)

        assert first.status_code == 200
        assert first.json()["fromCache"] is False
        assert "X-Cache" not in first.headers

        assert second.status_code == 200
        assert second.json() == {
            "success": True,
            "total": 1,
            "data": [{"id": "a1"}],
            "fromCache": True,
        }
        assert second.headers["X-Cache"] == "HIT"
        assert app.state.calls == 1

    def test_query_order_shares_entry(self, app, client):
        """Test reordered query parameters hit the same entry."""
        client.get("/api/accounts?page=1&limit=5", headers={"X-User-Id": "u1"})
        response = client.get("/api/accounts?limit=5&page=1", headers={"X-User-Id": "u1"})

        assert response.headers.get("X-Cache") == "HIT"
        assert app.state.calls == 1

    def test_requesters_isolated(self, app, client):
        """Test one requester's cached response is never served to another."""
        client.get("/api/accounts", headers={"X-User-Id": "u1"})
        response = client.get("/api/accounts", headers={"X-User-Id": "u2"})

        assert response.json()["fromCache"] is False
        assert app.state.calls == 2

    def test_post_not_cached(self, app, client):
        """Test only GET requests are intercepted."""
        client.post("/api/accounts", headers={"X-User-Id": "u1"})
        client.post("/api/accounts", headers={"X-User-Id": "u1"})

        assert app.state.calls == 2

    def test_path_outside_prefix_not_cached(self, app, client):
        """Test paths outside the configured prefix pass through."""
        client.get("/health")
        response = client.get("/health")

        assert "X-Cache" not in response.headers
        assert app.state.calls == 2

    def test_empty_data_not_cached(self, app, client):
        """Test envelopes without data are not stored."""
        client.get("/api/accounts?empty=true", headers={"X-User-Id": "u1"})
        client.get("/api/accounts?empty=true", headers={"X-User-Id": "u1"})

        assert app.state.calls == 2

    def test_error_status_not_cached(self, app, client):
        """Test non-200 responses are not stored."""
        first = client.get("/api/accounts/missing", headers={"X-User-Id": "u1"})
        client.get("/api/accounts/missing", headers={"X-User-Id": "u1"})

        assert first.status_code == 404
        assert app.state.calls == 2

    def test_backend_down_passes_through(self, app, client, memory_backend):
        """Test requests still succeed when the cache is unreachable."""
        memory_backend.disconnect()

        first = client.get("/api/accounts", headers={"X-User-Id": "u1"})
        second = client.get("/api/accounts", headers={"X-User-Id": "u1"})

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["fromCache"] is False
        assert app.state.calls == 2

    def test_custom_key_builder(self, memory_backend):
        """Test a rule can derive its own cache key."""
        rule = CacheRule("/api/accounts", ttl=60, key_builder=lambda request: "fixed")
        app = build_app(memory_backend, rules=[rule])

        with TestClient(app) as client:
            client.get("/api/accounts", headers={"X-User-Id": "u1"})
            response = client.get("/api/accounts", headers={"X-User-Id": "u2"})

        assert response.headers["X-Cache"] == "HIT"
        assert app.state.calls == 1


class TestCacheRule:
    """Test suite for CacheRule path matching."""

    def test_matches_prefix_and_children(self):
        """Test the prefix itself and nested paths match."""
        rule = CacheRule("/api/accounts")

        assert rule.matches("/api/accounts")
        assert rule.matches("/api/accounts/a1/payments")
        assert not rule.matches("/api/accountsx")
        assert not rule.matches("/api/payments/bulk")


class TestCacheableEnvelope:
    """Test suite for cacheable_envelope()."""

    def test_strips_from_cache(self):
        """Test the fromCache marker is not stored."""
        body = b'{"success": true, "data": {"id": "1"}, "fromCache": false}'

        assert cacheable_envelope(body) == {"success": True, "data": {"id": "1"}}

    @pytest.mark.parametrize(
        "body",
        [
            b'{"success": false, "data": {"id": "1"}}',
            b'{"success": true, "data": null}',
            b'{"success": true, "data": []}',
            b'{"success": true}',
            b"[1, 2]",
            b"not json",
        ],
    )
    def test_rejects_unsuitable_bodies(self, body):
        """Test failures, empty payloads and non-envelopes are not cached."""
        assert cacheable_envelope(body) is None
