"""Shared fixtures: an in-process cache backend with a controllable clock."""

import pytest

from ledger_api.cache.backends import InMemoryBackend
from ledger_api.cache.manager import CacheManager
from ledger_api.store.memory import InMemoryRecordStore


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def backend(clock):
    """Connected in-memory backend driven by the fake clock."""
    backend = InMemoryBackend(clock=clock)
    await backend.connect()
    yield backend
    await backend.close()


@pytest.fixture
def cache_manager(backend):
    return CacheManager(backend)


@pytest.fixture
def store():
    return InMemoryRecordStore()
