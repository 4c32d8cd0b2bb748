"""
Shared plumbing for the ledger services.

Reads go through ``_cached_read`` (cache-aside); writes commit to the
record store first and then call ``_invalidate`` for every view family
the write can affect.
"""

import math
import time
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Mapping, Sequence, Tuple

import structlog

from ledger_api.cache.keys import CacheKeyGenerator
from ledger_api.cache.manager import CacheManager
from ledger_api.cache.ttl import CacheTTL
from ledger_api.exceptions import LedgerAPIError, NotFoundError, SourceOfTruthError, ValidationError
from ledger_api.models.records import Account
from ledger_api.store.base import Collection, RecordStore, SortSpec
from ledger_api.utils.logger import log_operation

logger = structlog.get_logger(__name__)

# Path prefix served through the response-caching middleware
RESPONSE_CACHE_PREFIX = "/api/accounts"


@contextmanager
def source_of_truth(operation: str) -> Iterator[None]:
    """
    Translate unexpected record store failures into SourceOfTruthError.

    Domain errors raised inside the block pass through untouched.
    """
    try:
        yield
    except LedgerAPIError:
        raise
    except Exception as e:
        logger.error(
            "record_store_error",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise SourceOfTruthError(
            f"Record store failed during {operation}", operation=operation
        ) from e


def validate_pagination(page: int, limit: int) -> None:
    if page <= 0 or limit <= 0:
        raise ValidationError("Invalid pagination parameters")


async def fetch_page(
    collection: Collection,
    filter: Mapping[str, Any],
    sort: SortSpec,
    page: int,
    limit: int,
) -> Dict[str, Any]:
    """
    Query one page plus the total count.

    Returns:
        Dictionary with total, page, limit, totalPages and data (public
        record dicts)
    """
    records = await collection.find(filter, sort=sort, skip=(page - 1) * limit, limit=limit)
    total = await collection.count(filter)
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit),
        "data": [record.public() for record in records],
    }


class LedgerService:
    """
    Base class holding the record store and the cache manager.

    Attributes:
        store: Source of truth
        cache: Cache manager (may be backed by an unavailable store)
    """

    def __init__(self, store: RecordStore, cache: CacheManager) -> None:
        self.store = store
        self.cache = cache

    async def _cached_read(
        self,
        operation: str,
        cache_key: str,
        fetch: Callable[[], Awaitable[Any]],
        **log_context: Any,
    ) -> Tuple[Any, bool]:
        """
        Cache-aside read.

        Args:
            operation: Read operation name (selects the TTL)
            cache_key: Key for this exact query shape
            fetch: Source-of-truth query run on a miss

        Returns:
            Tuple of (data, served_from_cache)
        """
        start_time = time.time()

        async def fetch_from_store() -> Any:
            with source_of_truth(operation):
                return await fetch()

        try:
            response = await self.cache.get_or_fetch(
                cache_key, fetch_from_store, CacheTTL.get_ttl(operation)
            )
        except Exception as e:
            log_operation(
                operation,
                (time.time() - start_time) * 1000,
                cached=False,
                error=str(e),
                **log_context,
            )
            raise

        cached = response["metadata"]["cached"]
        log_operation(operation, (time.time() - start_time) * 1000, cached=cached, **log_context)
        return response["data"], cached

    async def _invalidate(self, owner: str, *patterns: str) -> None:
        """
        Drop every derived view a write may have made stale.

        The owner's cached HTTP responses are always included. Failures
        are contained by the cache manager; stale entries then age out
        with their TTL.
        """
        all_patterns = (*patterns, CacheKeyGenerator.response_pattern(RESPONSE_CACHE_PREFIX, owner))
        if not await self.cache.invalidate(*all_patterns):
            logger.warning("cache_invalidation_incomplete", owner=owner, patterns=list(all_patterns))

    async def _owned_account(self, owner: str, account_id: str) -> Account:
        """Load a live account owned by the requester, or raise NotFoundError."""
        with source_of_truth("find_account"):
            account = await self.store.accounts.find_one(
                {"id": account_id, "created_by": owner, "is_deleted": False}
            )
        if account is None:
            raise NotFoundError("account", account_id)
        return account

    async def _owned_account_ids(self, owner: str, account_ids: Sequence[str]) -> List[str]:
        """Subset of account_ids that belong to the requester and are live."""
        accounts = await self.store.accounts.find(
            {"id": set(account_ids), "created_by": owner, "is_deleted": False}
        )
        return [account.id for account in accounts]
