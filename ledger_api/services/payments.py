"""
Payment service.

Recording a payment debits the account, so it refreshes the canonical
account key and drops both the account views and the payment views.
Balance checks always read the record store: a cached account may lag
behind a concurrent debit by up to its TTL.
"""

from typing import Any, Dict, List

import structlog

from ledger_api.cache.ttl import CacheTTL
from ledger_api.exceptions import ConflictError, NotFoundError, ValidationError
from ledger_api.models.records import Payment, PaymentCreate, PaymentStatus
from ledger_api.services import views
from ledger_api.services.base import (
    LedgerService,
    fetch_page,
    source_of_truth,
    validate_pagination,
)
from ledger_api.store.base import DESCENDING

logger = structlog.get_logger(__name__)

NEWEST_FIRST = [("paid_at", DESCENDING)]


class PaymentService(LedgerService):
    """Record payments against owned accounts and serve payment history."""

    async def record_payment(
        self, owner: str, account_id: str, payload: PaymentCreate
    ) -> Dict[str, Any]:
        """
        Record a completed payment and debit the account.

        Raises:
            NotFoundError: If the account is missing, deleted or foreign
            ValidationError: If the balance does not cover the amount
            ConflictError: If the transaction id was already recorded
        """
        account = await self._owned_account(owner, account_id)

        if account.balance < payload.amount:
            raise ValidationError("Insufficient account balance", field="amount")

        with source_of_truth("record_payment"):
            if payload.transaction_id:
                duplicate = await self.store.payments.find_one(
                    {"transaction_id": payload.transaction_id}
                )
                if duplicate is not None:
                    raise ConflictError("Duplicate transaction ID")

            payment = await self.store.payments.save(
                Payment(
                    account_id=account_id,
                    amount=payload.amount,
                    method=payload.method,
                    transaction_id=payload.transaction_id,
                    status=PaymentStatus.COMPLETED,
                    created_by=owner,
                )
            )

            debited = await self.store.accounts.update(
                account_id,
                {"balance": account.balance - payload.amount},
                where={"created_by": owner, "is_deleted": False},
            )

        if debited is not None:
            await self.cache.set(
                views.account_key(account_id, owner), debited.public(), CacheTTL.RECORD.value
            )

        await self._invalidate(
            owner,
            views.account_list_pattern(owner),
            views.payment_list_pattern(account_id),
            views.bulk_pattern(views.BULK_PAYMENTS, owner),
        )

        logger.info(
            "payment_recorded",
            payment_id=payment.id,
            account_id=account_id,
            owner=owner,
            amount=payload.amount,
        )

        return payment.public()

    async def list_payments(
        self, owner: str, account_id: str, page: int = 1, limit: int = 10
    ) -> Dict[str, Any]:
        """Payment history of one owned account, newest first."""
        validate_pagination(page, limit)

        async def fetch() -> Dict[str, Any]:
            await self._owned_account(owner, account_id)
            return await fetch_page(
                self.store.payments, {"account_id": account_id}, NEWEST_FIRST, page, limit
            )

        result, cached = await self._cached_read(
            "list_payments",
            views.payment_list_key(account_id, owner, page, limit),
            fetch,
            owner=owner,
            account_id=account_id,
        )
        return {**result, "fromCache": cached}

    async def bulk_payments(
        self, owner: str, account_ids: List[str], page: int = 1, limit: int = 10
    ) -> Dict[str, Any]:
        """
        Payments across several accounts.

        Ids that are not live accounts of the requester are ignored. The
        cache key uses the sorted id set, so the order of ``account_ids``
        does not matter.
        """
        validate_pagination(page, limit)

        async def fetch() -> Dict[str, Any]:
            owned = await self._owned_account_ids(owner, account_ids)
            return await fetch_page(
                self.store.payments, {"account_id": set(owned)}, NEWEST_FIRST, page, limit
            )

        result, cached = await self._cached_read(
            "bulk_payments",
            views.bulk_key(views.BULK_PAYMENTS, owner, account_ids, page, limit),
            fetch,
            owner=owner,
            accounts=len(account_ids),
        )
        return {**result, "fromCache": cached}

    async def update_payment_status(
        self, owner: str, payment_id: str, status: PaymentStatus
    ) -> Dict[str, Any]:
        with source_of_truth("update_payment_status"):
            payment = await self.store.payments.update(
                payment_id, {"status": status}, where={"created_by": owner}
            )

        if payment is None:
            raise NotFoundError("payment", payment_id)

        await self._invalidate(
            owner,
            views.payment_list_pattern(payment.account_id),
            views.bulk_pattern(views.BULK_PAYMENTS, owner),
        )

        logger.info(
            "payment_status_updated", payment_id=payment_id, owner=owner, status=status.value
        )

        return payment.public()
