"""Tests for PaymentService."""

from unittest.mock import AsyncMock

import pytest

from ledger_api.exceptions import ConflictError, NotFoundError, ValidationError
from ledger_api.models.records import AccountCreate, PaymentCreate, PaymentMethod, PaymentStatus
from ledger_api.services import AccountService, PaymentService
from ledger_api.services import views


class TestPaymentService:
    """Test suite for PaymentService."""

    @pytest.fixture
    def accounts(self, store, cache_manager):
        return AccountService(store, cache_manager)

    @pytest.fixture
    def service(self, store, cache_manager):
        return PaymentService(store, cache_manager)

    @pytest.fixture
    async def account(self, accounts):
        return await accounts.create_account(
            "u1",
            AccountCreate(name="Acme", email="acme@example.com", phone="12345678", balance=100),
        )

    @pytest.mark.asyncio
    async def test_record_payment_debits_account(self, service, accounts, account):
        """Test a payment is completed and debited from the balance."""
        payment = await service.record_payment(
            "u1", account["id"], PaymentCreate(amount=40, method=PaymentMethod.CARD)
        )

        refreshed, cached = await accounts.get_account("u1", account["id"])

        assert payment["status"] == "COMPLETED"
        assert payment["accountId"] == account["id"]
        assert refreshed["balance"] == 60
        assert cached is True

    @pytest.mark.asyncio
    async def test_balance_checked_against_store(self, service, cache_manager, account):
        """Test a stale cached balance cannot authorize a payment."""
        stale = {**account, "balance": 1000}
        await cache_manager.set(views.account_key(account["id"], "u1"), stale)

        with pytest.raises(ValidationError, match="Insufficient"):
            await service.record_payment("u1", account["id"], PaymentCreate(amount=500))

    @pytest.mark.asyncio
    async def test_duplicate_transaction_id(self, service, account):
        """Test a transaction id can only be recorded once."""
        await service.record_payment("u1", account["id"], PaymentCreate(amount=1, transaction_id="tx-1"))

        with pytest.raises(ConflictError):
            await service.record_payment(
                "u1", account["id"], PaymentCreate(amount=1, transaction_id="tx-1")
            )

    @pytest.mark.asyncio
    async def test_record_payment_foreign_account(self, service, account):
        """Test paying from another requester's account is not found."""
        with pytest.raises(NotFoundError):
            await service.record_payment("u2", account["id"], PaymentCreate(amount=1))

    @pytest.mark.asyncio
    async def test_list_payments_newest_first(self, service, account):
        """Test payment history is ordered by payment time, descending."""
        first = await service.record_payment("u1", account["id"], PaymentCreate(amount=1))
        second = await service.record_payment("u1", account["id"], PaymentCreate(amount=2))

        page = await service.list_payments("u1", account["id"])

        assert page["total"] == 2
        ids = [p["id"] for p in page["data"]]
        assert set(ids) == {first["id"], second["id"]}
        paid_at = [p["paidAt"] for p in page["data"]]
        assert paid_at == sorted(paid_at, reverse=True)

    @pytest.mark.asyncio
    async def test_payment_invalidates_payment_views(self, service, account):
        """Test recording a payment drops the cached history."""
        await service.list_payments("u1", account["id"])
        cached = await service.list_payments("u1", account["id"])
        assert cached["fromCache"] is True

        await service.record_payment("u1", account["id"], PaymentCreate(amount=5))
        page = await service.list_payments("u1", account["id"])

        assert page["fromCache"] is False
        assert page["total"] == 1

    @pytest.mark.asyncio
    async def test_payment_invalidates_account_lists(self, service, accounts, account):
        """Test account list views show the new balance after a payment."""
        await accounts.list_accounts("u1")

        await service.record_payment("u1", account["id"], PaymentCreate(amount=30))
        page = await accounts.list_accounts("u1")

        assert page["fromCache"] is False
        assert page["data"][0]["balance"] == 70

    @pytest.mark.asyncio
    async def test_list_payments_foreign_account(self, service, account):
        """Test another requester cannot read the history."""
        with pytest.raises(NotFoundError):
            await service.list_payments("u2", account["id"])

    @pytest.mark.asyncio
    async def test_bulk_payments_id_order_irrelevant(self, service, accounts, account, store):
        """Test bulk lookups with reordered ids share one cache entry."""
        other = await accounts.create_account(
            "u1", AccountCreate(name="Beta", email="b@example.com", phone="22345678", balance=50)
        )
        await service.record_payment("u1", account["id"], PaymentCreate(amount=1))
        await service.record_payment("u1", other["id"], PaymentCreate(amount=2))
        store.payments.find = AsyncMock(wraps=store.payments.find)

        first = await service.bulk_payments("u1", [account["id"], other["id"]])
        second = await service.bulk_payments("u1", [other["id"], account["id"]])

        assert first["total"] == 2
        assert second["fromCache"] is True
        assert store.payments.find.await_count == 1

    @pytest.mark.asyncio
    async def test_bulk_payments_ignores_foreign_ids(self, service, accounts, account):
        """Test ids of other requesters' accounts contribute nothing."""
        foreign = await accounts.create_account(
            "u2", AccountCreate(name="Other", email="o@example.com", phone="32345678", balance=50)
        )
        await service.record_payment("u2", foreign["id"], PaymentCreate(amount=5))

        page = await service.bulk_payments("u1", [account["id"], foreign["id"]])

        assert page["total"] == 0

    @pytest.mark.asyncio
    async def test_bulk_invalidated_by_payment(self, service, account):
        """Test a new payment drops the owner's bulk views."""
        await service.bulk_payments("u1", [account["id"]])

        await service.record_payment("u1", account["id"], PaymentCreate(amount=5))
        page = await service.bulk_payments("u1", [account["id"]])

        assert page["fromCache"] is False
        assert page["total"] == 1

    @pytest.mark.asyncio
    async def test_update_payment_status(self, service, account):
        """Test a status change is visible in the next history read."""
        payment = await service.record_payment("u1", account["id"], PaymentCreate(amount=5))
        await service.list_payments("u1", account["id"])

        updated = await service.update_payment_status("u1", payment["id"], PaymentStatus.REFUNDED)
        page = await service.list_payments("u1", account["id"])

        assert updated["status"] == "REFUNDED"
        assert page["fromCache"] is False
        assert page["data"][0]["status"] == "REFUNDED"

    @pytest.mark.asyncio
    async def test_update_payment_status_foreign(self, service, account):
        """Test another requester cannot change a payment."""
        payment = await service.record_payment("u1", account["id"], PaymentCreate(amount=5))

        with pytest.raises(NotFoundError):
            await service.update_payment_status("u2", payment["id"], PaymentStatus.FAILED)
