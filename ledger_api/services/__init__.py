"""Ledger services: record-store access wrapped in cache-aside reads and write invalidation."""

from ledger_api.services.accounts import AccountService
from ledger_api.services.activities import ActivityService
from ledger_api.services.base import RESPONSE_CACHE_PREFIX, LedgerService
from ledger_api.services.payments import PaymentService

__all__ = [
    "AccountService",
    "ActivityService",
    "LedgerService",
    "PaymentService",
    "RESPONSE_CACHE_PREFIX",
]
