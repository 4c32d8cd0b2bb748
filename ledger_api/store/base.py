"""
Record store contract.

The record store is the source of truth. Services read it on cache
misses and for every correctness-critical decision (balance checks,
uniqueness), and write to it before any cache invalidation.

Filters are plain mappings of field name to value. A set, frozenset,
list or tuple value means "field is one of these".
"""

from typing import Any, List, Mapping, Optional, Protocol, Sequence, Tuple, TypeVar

from ledger_api.models.records import Account, Activity, Payment, Record

R = TypeVar("R", bound=Record)

ASCENDING = 1
DESCENDING = -1

SortSpec = Sequence[Tuple[str, int]]


class Collection(Protocol[R]):
    """Async access to one record type."""

    async def find(
        self,
        filter: Mapping[str, Any],
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[R]:
        """Records matching filter, ordered by sort, then sliced."""
        ...

    async def find_one(self, filter: Mapping[str, Any]) -> Optional[R]:
        ...

    async def count(self, filter: Mapping[str, Any]) -> int:
        ...

    async def find_by_id(self, record_id: str) -> Optional[R]:
        ...

    async def save(self, record: R) -> R:
        """Insert or replace a record, stamping updated_at."""
        ...

    async def update(
        self,
        record_id: str,
        patch: Mapping[str, Any],
        where: Optional[Mapping[str, Any]] = None,
    ) -> Optional[R]:
        """
        Apply patch to the record if it exists and matches ``where``.

        Returns:
            The updated record, or None when nothing matched
        """
        ...


class RecordStore(Protocol):
    """The three collections of the ledger."""

    accounts: Collection[Account]
    payments: Collection[Payment]
    activities: Collection[Activity]

    async def ping(self) -> bool:
        ...
