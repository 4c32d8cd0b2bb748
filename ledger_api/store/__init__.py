"""Record store (source of truth) contract and in-memory implementation."""

from ledger_api.store.base import ASCENDING, DESCENDING, Collection, RecordStore
from ledger_api.store.memory import InMemoryCollection, InMemoryRecordStore

__all__ = [
    "ASCENDING",
    "DESCENDING",
    "Collection",
    "RecordStore",
    "InMemoryCollection",
    "InMemoryRecordStore",
]
