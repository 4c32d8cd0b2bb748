"""
Cache key families used by the ledger services.

Single records are keyed by id and requester; derived views by their
scope followed by every query discriminator, so one wildcard per scope
covers all pages, sorts and filters.
"""

from typing import Any, Optional, Sequence

from ledger_api.cache.keys import CacheKeyGenerator

ACCOUNT = "account"
USER_ACCOUNTS = "user_accounts"
ACCOUNT_PAYMENTS = "account_payments"
BULK_PAYMENTS = "bulk_payments"
ACCOUNT_ACTIVITIES = "account_activities"
BULK_ACTIVITIES = "bulk_activities"


def account_key(account_id: str, owner: str) -> str:
    return CacheKeyGenerator.build(ACCOUNT, account_id, owner)


def account_list_key(owner: str, page: int, limit: int, status: Optional[str], sort: str) -> str:
    return CacheKeyGenerator.build(USER_ACCOUNTS, owner, page, limit, status, sort)


def account_list_pattern(owner: str) -> str:
    return CacheKeyGenerator.pattern(USER_ACCOUNTS, owner)


def payment_list_key(account_id: str, owner: str, page: int, limit: int) -> str:
    return CacheKeyGenerator.build(ACCOUNT_PAYMENTS, account_id, owner, page, limit)


def payment_list_pattern(account_id: str) -> str:
    return CacheKeyGenerator.pattern(ACCOUNT_PAYMENTS, account_id)


def activity_list_key(account_id: str, owner: str, page: int, limit: int) -> str:
    return CacheKeyGenerator.build(ACCOUNT_ACTIVITIES, account_id, owner, page, limit)


def activity_list_pattern(account_id: str) -> str:
    return CacheKeyGenerator.pattern(ACCOUNT_ACTIVITIES, account_id)


def bulk_key(namespace: str, owner: str, account_ids: Sequence[Any], page: int, limit: int) -> str:
    """Bulk views are keyed by the de-duplicated, sorted id set."""
    return CacheKeyGenerator.build(namespace, owner, sorted(set(account_ids)), page, limit)


def bulk_pattern(namespace: str, owner: str) -> str:
    return CacheKeyGenerator.pattern(namespace, owner)
