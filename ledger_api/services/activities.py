"""Activity log service."""

from typing import Any, Dict, List

import structlog

from ledger_api.models.records import Activity, ActivityCreate
from ledger_api.services import views
from ledger_api.services.base import (
    LedgerService,
    fetch_page,
    source_of_truth,
    validate_pagination,
)
from ledger_api.store.base import DESCENDING

logger = structlog.get_logger(__name__)

NEWEST_FIRST = [("timestamp", DESCENDING)]


class ActivityService(LedgerService):
    """Append activity entries to owned accounts and serve them back."""

    async def log_activity(
        self, owner: str, account_id: str, payload: ActivityCreate
    ) -> Dict[str, Any]:
        await self._owned_account(owner, account_id)

        with source_of_truth("log_activity"):
            activity = await self.store.activities.save(
                Activity(
                    account_id=account_id,
                    type=payload.type,
                    message=payload.message,
                    created_by=owner,
                )
            )

        await self._invalidate(
            owner,
            views.activity_list_pattern(account_id),
            views.bulk_pattern(views.BULK_ACTIVITIES, owner),
        )

        logger.info(
            "activity_logged",
            activity_id=activity.id,
            account_id=account_id,
            owner=owner,
            type=payload.type.value,
        )

        return activity.public()

    async def list_activities(
        self, owner: str, account_id: str, page: int = 1, limit: int = 10
    ) -> Dict[str, Any]:
        validate_pagination(page, limit)

        async def fetch() -> Dict[str, Any]:
            await self._owned_account(owner, account_id)
            return await fetch_page(
                self.store.activities, {"account_id": account_id}, NEWEST_FIRST, page, limit
            )

        result, cached = await self._cached_read(
            "list_activities",
            views.activity_list_key(account_id, owner, page, limit),
            fetch,
            owner=owner,
            account_id=account_id,
        )
        return {**result, "fromCache": cached}

    async def bulk_activities(
        self, owner: str, account_ids: List[str], page: int = 1, limit: int = 10
    ) -> Dict[str, Any]:
        """Activities across several owned accounts; foreign ids are ignored."""
        validate_pagination(page, limit)

        async def fetch() -> Dict[str, Any]:
            owned = await self._owned_account_ids(owner, account_ids)
            return await fetch_page(
                self.store.activities, {"account_id": set(owned)}, NEWEST_FIRST, page, limit
            )

        result, cached = await self._cached_read(
            "bulk_activities",
            views.bulk_key(views.BULK_ACTIVITIES, owner, account_ids, page, limit),
            fetch,
            owner=owner,
            accounts=len(account_ids),
        )
        return {**result, "fromCache": cached}
