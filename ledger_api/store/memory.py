"""
In-memory record store.

Implements the RecordStore contract in-process for local runs and tests.
Records are copied on the way in and out so callers can never mutate
stored state without going through save()/update().
"""

from typing import Any, Dict, Generic, List, Mapping, Optional, Type

import structlog
from pydantic import ValidationError as PydanticValidationError

from ledger_api.exceptions import SourceOfTruthError
from ledger_api.models.records import Account, Activity, Payment, utcnow
from ledger_api.store.base import DESCENDING, R, SortSpec

logger = structlog.get_logger(__name__)

_MEMBERSHIP_TYPES = (set, frozenset, list, tuple)


def _matches(record: Any, filter: Mapping[str, Any]) -> bool:
    for field, expected in filter.items():
        actual = getattr(record, field, None)
        if isinstance(expected, _MEMBERSHIP_TYPES):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


def _sort_key(field: str):
    def key(record: Any) -> Any:
        value = getattr(record, field, None)
        # None sorts first in ascending order
        return (value is not None, value)

    return key


class InMemoryCollection(Generic[R]):
    """
    One record type held in a dict keyed by id.

    Attributes:
        name: Collection name used in log events
        model: Record model class
    """

    def __init__(self, name: str, model: Type[R]) -> None:
        self.name = name
        self.model = model
        self._records: Dict[str, R] = {}

    async def find(
        self,
        filter: Mapping[str, Any],
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[R]:
        results = [r for r in self._records.values() if _matches(r, filter)]

        # Stable sorts applied from the least to the most significant field
        for field, direction in reversed(list(sort or [])):
            results.sort(key=_sort_key(field), reverse=direction == DESCENDING)

        end = None if limit is None else skip + limit
        return [r.model_copy(deep=True) for r in results[skip:end]]

    async def find_one(self, filter: Mapping[str, Any]) -> Optional[R]:
        for record in self._records.values():
            if _matches(record, filter):
                return record.model_copy(deep=True)
        return None

    async def count(self, filter: Mapping[str, Any]) -> int:
        return sum(1 for r in self._records.values() if _matches(r, filter))

    async def find_by_id(self, record_id: str) -> Optional[R]:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def save(self, record: R) -> R:
        stored = record.model_copy(deep=True, update={"updated_at": utcnow()})
        self._records[stored.id] = stored
        logger.debug("record_saved", collection=self.name, record_id=stored.id)
        return stored.model_copy(deep=True)

    async def update(
        self,
        record_id: str,
        patch: Mapping[str, Any],
        where: Optional[Mapping[str, Any]] = None,
    ) -> Optional[R]:
        current = self._records.get(record_id)
        if current is None or not _matches(current, where or {}):
            return None

        try:
            updated = self.model.model_validate(
                {**current.model_dump(), **patch, "updated_at": utcnow()}
            )
        except PydanticValidationError as e:
            raise SourceOfTruthError(
                f"Invalid update for {self.name} '{record_id}': {e.error_count()} errors",
                operation="update",
            ) from e

        self._records[record_id] = updated
        logger.debug("record_updated", collection=self.name, record_id=record_id, fields=list(patch))
        return updated.model_copy(deep=True)


class InMemoryRecordStore:
    """
    Record store holding accounts, payments and activities in memory.

    Example:
        >>> store = InMemoryRecordStore()
        >>> await store.accounts.save(Account(name="Acme", email="a@b.co", phone="12345678"))
    """

    def __init__(self) -> None:
        self.accounts: InMemoryCollection[Account] = InMemoryCollection("accounts", Account)
        self.payments: InMemoryCollection[Payment] = InMemoryCollection("payments", Payment)
        self.activities: InMemoryCollection[Activity] = InMemoryCollection("activities", Activity)

    async def ping(self) -> bool:
        return True
