"""
Account service.

Reads use the cache-aside protocol (single record: 30 minutes, list
views: 15 minutes). Every write commits to the record store first, then
refreshes or drops the canonical account key and invalidates all of the
owner's account list views, whatever page, sort or filter they cover.
"""

from typing import Any, Dict, Optional, Tuple

import structlog

from ledger_api.cache.ttl import CacheTTL
from ledger_api.exceptions import ConflictError, NotFoundError, ValidationError
from ledger_api.models.records import Account, AccountCreate, AccountStatus, AccountUpdate, Address
from ledger_api.services import views
from ledger_api.services.base import (
    LedgerService,
    fetch_page,
    source_of_truth,
    validate_pagination,
)
from ledger_api.store.base import ASCENDING

logger = structlog.get_logger(__name__)

# Public sort names mapped to record fields
SORT_FIELDS = {
    "createdAt": "created_at",
    "name": "name",
    "email": "email",
    "balance": "balance",
}
DEFAULT_SORT = "createdAt"


class AccountService(LedgerService):
    """
    Create, read, update and soft-delete accounts owned by a requester.

    Example:
        >>> service = AccountService(store, cache_manager)
        >>> page = await service.list_accounts("u1", page=1, limit=10)
        >>> page["fromCache"]
        False
    """

    async def create_account(self, owner: str, payload: AccountCreate) -> Dict[str, Any]:
        """
        Create an account for the requester.

        Raises:
            ConflictError: If a live account already uses the email or phone
        """
        email = payload.email.strip().lower()

        with source_of_truth("create_account"):
            if await self.store.accounts.find_one({"email": email, "is_deleted": False}):
                raise ConflictError("Email already exists.")

            if await self.store.accounts.find_one({"phone": payload.phone, "is_deleted": False}):
                raise ConflictError("Phone number already exists.")

            account = await self.store.accounts.save(
                Account(
                    name=payload.name,
                    email=email,
                    phone=payload.phone,
                    address=payload.address or Address(),
                    balance=payload.balance,
                    created_by=owner,
                )
            )

        data = account.public()

        await self.cache.set(views.account_key(account.id, owner), data, CacheTTL.RECORD.value)
        await self._invalidate(owner, views.account_list_pattern(owner))

        logger.info("account_created", account_id=account.id, owner=owner)

        return data

    async def list_accounts(
        self,
        owner: str,
        page: int = 1,
        limit: int = 10,
        sort: str = DEFAULT_SORT,
        status: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        List the requester's live accounts.

        Unknown sort fields fall back to ``createdAt``.

        Returns:
            Page dict (total, page, limit, totalPages, data) plus fromCache

        Raises:
            ValidationError: If status is not an account status
        """
        validate_pagination(page, limit)
        if sort not in SORT_FIELDS:
            sort = DEFAULT_SORT
        if status is not None:
            try:
                status = AccountStatus(status).value
            except ValueError:
                raise ValidationError(
                    f"unknown account status {status!r}", field="status"
                ) from None

        async def fetch() -> Dict[str, Any]:
            filter: Dict[str, Any] = {"created_by": owner, "is_deleted": False}
            if status is not None:
                filter["status"] = status
            return await fetch_page(
                self.store.accounts, filter, [(SORT_FIELDS[sort], ASCENDING)], page, limit
            )

        result, cached = await self._cached_read(
            "list_accounts",
            views.account_list_key(owner, page, limit, status, sort),
            fetch,
            owner=owner,
            page=page,
            limit=limit,
        )
        return {**result, "fromCache": cached}

    async def get_account(self, owner: str, account_id: str) -> Tuple[Dict[str, Any], bool]:
        """
        Fetch one account.

        Returns:
            Tuple of (account data, served_from_cache)

        Raises:
            NotFoundError: If missing, deleted or owned by someone else
        """

        async def fetch() -> Dict[str, Any]:
            account = await self.store.accounts.find_by_id(account_id)
            if account is None or account.is_deleted or account.created_by != owner:
                raise NotFoundError("account", account_id)
            return account.public()

        return await self._cached_read(
            "get_account",
            views.account_key(account_id, owner),
            fetch,
            owner=owner,
            account_id=account_id,
        )

    async def update_account(
        self, owner: str, account_id: str, payload: AccountUpdate
    ) -> Dict[str, Any]:
        """
        Apply a partial update.

        Raises:
            ConflictError: If the new phone belongs to another live account
            NotFoundError: If the account is missing, deleted or foreign
        """
        changes = payload.changes()

        with source_of_truth("update_account"):
            if changes.get("phone"):
                existing = await self.store.accounts.find_one(
                    {"phone": changes["phone"], "is_deleted": False}
                )
                if existing is not None and existing.id != account_id:
                    raise ConflictError("Phone number already exists.")

            account = await self.store.accounts.update(
                account_id, changes, where={"created_by": owner, "is_deleted": False}
            )

        if account is None:
            raise NotFoundError("account", account_id)

        data = account.public()

        await self.cache.set(views.account_key(account_id, owner), data, CacheTTL.RECORD.value)
        await self._invalidate(owner, views.account_list_pattern(owner))

        logger.info("account_updated", account_id=account_id, owner=owner, fields=sorted(changes))

        return data

    async def delete_account(self, owner: str, account_id: str) -> None:
        """
        Soft-delete an account.

        Payment and activity views of the account are dropped as well,
        since they are no longer reachable.
        """
        with source_of_truth("delete_account"):
            account = await self.store.accounts.update(
                account_id,
                {"is_deleted": True},
                where={"created_by": owner, "is_deleted": False},
            )

        if account is None:
            raise NotFoundError("account", account_id)

        await self.cache.delete(views.account_key(account_id, owner))
        await self._invalidate(
            owner,
            views.account_list_pattern(owner),
            views.payment_list_pattern(account_id),
            views.activity_list_pattern(account_id),
            views.bulk_pattern(views.BULK_PAYMENTS, owner),
            views.bulk_pattern(views.BULK_ACTIVITIES, owner),
        )

        logger.info("account_deleted", account_id=account_id, owner=owner)
