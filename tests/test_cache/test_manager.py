"""Unit tests for cache manager."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import BaseModel

from ledger_api.cache.exceptions import CacheConnectionError
from ledger_api.cache.manager import CacheManager, CacheResult


class Sample(BaseModel):
    id: str
    amount: float


@pytest.fixture
def mock_backend():
    """Create a mock backend that is always ready."""
    mock = MagicMock()
    mock.is_ready = MagicMock(return_value=True)
    mock.get = AsyncMock(return_value=None)
    mock.set_with_expiry = AsyncMock()
    mock.delete = AsyncMock(return_value=1)
    mock.delete_matching = AsyncMock(return_value=0)
    mock.increment = AsyncMock(return_value=1)
    mock.expire = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def mocked_manager(mock_backend):
    return CacheManager(mock_backend)


class TestCacheManager:
    """Test suite for CacheManager class."""

    @pytest.mark.asyncio
    async def test_get_cache_hit(self, cache_manager):
        """Test get() returns the decoded value on cache hit."""
        await cache_manager.set("account:1:u1", {"id": "1", "balance": 10})

        result = await cache_manager.get("account:1:u1")

        assert result == {"id": "1", "balance": 10}

    @pytest.mark.asyncio
    async def test_get_cache_miss(self, cache_manager):
        """Test get() returns None on cache miss."""
        assert await cache_manager.get("account:404:u1") is None

    @pytest.mark.asyncio
    async def test_get_invalid_json(self, mocked_manager, mock_backend):
        """Test get() deletes undecodable entries and reports a miss."""
        mock_backend.get.return_value = "invalid json {"

        result = await mocked_manager.get("test_key")

        assert result is None
        mock_backend.delete.assert_called_once_with("test_key")

    @pytest.mark.asyncio
    async def test_get_backend_error(self, mocked_manager, mock_backend):
        """Test get() returns None when the backend raises."""
        mock_backend.get.side_effect = CacheConnectionError("down")

        assert await mocked_manager.get("test_key") is None

    @pytest.mark.asyncio
    async def test_set_uses_default_ttl(self, mocked_manager, mock_backend):
        """Test set() applies the default TTL when none is given."""
        assert await mocked_manager.set("k", {"a": 1}) is True

        mock_backend.set_with_expiry.assert_called_once_with("k", json.dumps({"a": 1}), 3600)

    @pytest.mark.asyncio
    async def test_set_with_ttl(self, cache_manager):
        """Test set() stores the value with the given TTL."""
        await cache_manager.set("k", "v", ttl=120)

        assert await cache_manager.ttl("k") == 120

    @pytest.mark.asyncio
    async def test_set_pydantic_model(self, cache_manager):
        """Test pydantic models are stored as JSON objects."""
        await cache_manager.set("k", Sample(id="1", amount=2.5))

        assert await cache_manager.get("k") == {"id": "1", "amount": 2.5}

    @pytest.mark.asyncio
    async def test_set_unserializable(self, mocked_manager, mock_backend):
        """Test set() returns False for values that cannot be encoded."""
        assert await mocked_manager.set("k", object()) is False
        mock_backend.set_with_expiry.assert_not_called()

    @pytest.mark.asyncio
    async def test_set_backend_error(self, mocked_manager, mock_backend):
        """Test set() returns False when the backend raises."""
        mock_backend.set_with_expiry.side_effect = RuntimeError("boom")

        assert await mocked_manager.set("k", 1) is False

    @pytest.mark.asyncio
    async def test_delete(self, cache_manager):
        """Test delete() reports whether a key was removed."""
        await cache_manager.set("k", 1)

        assert await cache_manager.delete("k") is True
        assert await cache_manager.delete("k") is False

    @pytest.mark.asyncio
    async def test_delete_matching_scenario(self, cache_manager):
        """Test pattern delete removes one owner's views and nothing else."""
        await cache_manager.set("user_accounts:u1:1:10:%null:createdAt", [1])
        await cache_manager.set("user_accounts:u1:2:10:%null:name", [2])
        await cache_manager.set("user_accounts:u2:1:10:%null:createdAt", [3])
        await cache_manager.set("account:a1:u1", {"id": "a1"})

        assert await cache_manager.delete_matching("user_accounts:u1:*") is True

        assert await cache_manager.get("user_accounts:u1:1:10:%null:createdAt") is None
        assert await cache_manager.get("user_accounts:u1:2:10:%null:name") is None
        assert await cache_manager.get("user_accounts:u2:1:10:%null:createdAt") == [3]
        assert await cache_manager.get("account:a1:u1") == {"id": "a1"}

    @pytest.mark.asyncio
    async def test_delete_matching_nothing_matches(self, cache_manager):
        """Test a pattern with no matches is still a success."""
        assert await cache_manager.delete_matching("nothing:*") is True

    @pytest.mark.asyncio
    async def test_invalidate_reports_failure(self, mocked_manager, mock_backend):
        """Test invalidate() is False if any pattern failed."""
        mock_backend.delete_matching.side_effect = [0, CacheConnectionError("down")]

        assert await mocked_manager.invalidate("a:*", "b:*") is False
        assert mock_backend.delete_matching.await_count == 2

    @pytest.mark.asyncio
    async def test_exists_and_ttl(self, cache_manager):
        """Test exists() and ttl() for present and absent keys."""
        await cache_manager.set("k", 1, ttl=0)

        assert await cache_manager.exists("k") is True
        assert await cache_manager.ttl("k") == -1
        assert await cache_manager.exists("missing") is False
        assert await cache_manager.ttl("missing") == -2

    @pytest.mark.asyncio
    async def test_increment_sets_ttl_once(self, cache_manager, clock):
        """Test re-incrementing a counter never extends its lifetime."""
        assert await cache_manager.increment("hits", ttl=60) == 1
        clock.advance(30)

        assert await cache_manager.increment("hits", ttl=60) == 2
        assert await cache_manager.ttl("hits") == 30

        clock.advance(30)
        assert await cache_manager.get("hits") is None

    @pytest.mark.asyncio
    async def test_increment_by_amount(self, mocked_manager, mock_backend):
        """Test the expiry is applied when the new value equals the increment."""
        mock_backend.increment.return_value = 5

        assert await mocked_manager.increment("hits", by=5, ttl=10) == 5
        mock_backend.expire.assert_called_once_with("hits", 10)

    @pytest.mark.asyncio
    async def test_increment_failure(self, cache_manager, backend):
        """Test increment() returns 0 when the value is not an integer."""
        await backend.set_with_expiry("hits", "abc", None)

        assert await cache_manager.increment("hits") == 0

    @pytest.mark.asyncio
    async def test_multi_set_and_get(self, cache_manager, backend):
        """Test batched writes and reads, including undecodable entries."""
        assert await cache_manager.multi_set({"a": {"x": 1}, "b": [1, 2]}, ttl=60) is True
        await backend.set_with_expiry("raw", "not json", None)

        values = await cache_manager.multi_get(["a", "b", "raw", "missing"])

        assert values == {"a": {"x": 1}, "b": [1, 2], "raw": "not json", "missing": None}

    @pytest.mark.asyncio
    async def test_flush(self, cache_manager):
        """Test flush() clears every key."""
        await cache_manager.set("a", 1)
        await cache_manager.set("b", 2)

        assert await cache_manager.flush() is True
        assert await cache_manager.exists("a") is False

    def test_build_key(self, cache_manager):
        """Test build_key() delegates to the key generator."""
        assert cache_manager.build_key("account", "42", "u1") == "account:42:u1"


class TestUnavailableBackend:
    """Every operation returns its safe default when the store is down."""

    @pytest.fixture
    async def down_manager(self, backend):
        await backend.set_with_expiry("k", json.dumps(1), None)
        backend.disconnect()
        return CacheManager(backend)

    @pytest.mark.asyncio
    async def test_safe_defaults(self, down_manager):
        """Test no operation raises and each returns its documented default."""
        assert down_manager.is_available() is False
        assert await down_manager.ping() is False
        assert await down_manager.get("k") is None
        assert await down_manager.set("k", 2) is False
        assert await down_manager.delete("k") is False
        assert await down_manager.delete_matching("*") is False
        assert await down_manager.exists("k") is False
        assert await down_manager.ttl("k") == -2
        assert await down_manager.increment("k") == 0
        assert await down_manager.multi_set({"a": 1}) is False
        assert await down_manager.multi_get(["a"]) == {}
        assert await down_manager.flush() is False

    @pytest.mark.asyncio
    async def test_get_or_fetch_falls_back_to_source(self, down_manager):
        """Test the source of truth is served when the cache is down."""
        fetch = AsyncMock(return_value={"id": "1"})

        result = await down_manager.get_or_fetch("account:1:u1", fetch, ttl=60)

        assert result["data"] == {"id": "1"}
        assert result["metadata"]["cached"] is False
        fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_recovers_after_reconnect(self, backend):
        """Test the manager uses the store again once it is back."""
        manager = CacheManager(backend)
        backend.disconnect()
        assert await manager.set("k", 1) is False

        await backend.connect()

        assert await manager.set("k", 1) is True
        assert await manager.get("k") == 1


class TestGetOrFetch:
    """Test suite for the cache-aside read."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, cache_manager):
        """Test the first read populates the cache and the second is served from it."""
        fetch = AsyncMock(return_value={"total": 1, "data": [{"id": "a"}]})

        first = await cache_manager.get_or_fetch("user_accounts:u1:1", fetch, ttl=900)
        second = await cache_manager.get_or_fetch("user_accounts:u1:1", fetch, ttl=900)

        assert first["metadata"] == {"cached": False, "ttl": 900}
        assert second["metadata"] == {"cached": True, "ttl": 900}
        assert first["data"] == second["data"]
        fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, cache_manager, clock):
        """Test an expired entry is fetched again."""
        fetch = AsyncMock(return_value=[1])

        await cache_manager.get_or_fetch("k", fetch, ttl=10)
        clock.advance(10)
        result = await cache_manager.get_or_fetch("k", fetch, ttl=10)

        assert result["metadata"]["cached"] is False
        assert fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self, cache_manager):
        """Test source-of-truth failures are not swallowed."""
        fetch = AsyncMock(side_effect=LookupError("not found"))

        with pytest.raises(LookupError):
            await cache_manager.get_or_fetch("k", fetch)

        assert await cache_manager.exists("k") is False

    @pytest.mark.asyncio
    async def test_cache_write_failure_still_returns_data(self, mocked_manager, mock_backend):
        """Test a failed cache write does not fail the read."""
        mock_backend.set_with_expiry.side_effect = CacheConnectionError("down")
        fetch = AsyncMock(return_value={"id": "1"})

        result = await mocked_manager.get_or_fetch("k", fetch)

        assert result["data"] == {"id": "1"}


class TestCacheResult:
    """Test suite for CacheResult."""

    def test_unwrap_or(self):
        """Test unwrap_or() returns the value only on success."""
        assert CacheResult(ok=True, value=3).unwrap_or(0) == 3
        assert CacheResult(ok=False, error=RuntimeError()).unwrap_or(0) == 0
