"""TTL (Time To Live) policies for different cached views.

This module defines cache expiration policies based on how volatile
the cached content is.
"""

from enum import Enum

import structlog

logger = structlog.get_logger(__name__)


class CacheTTL(Enum):
    """
    Cache TTL policies for ledger content.

    - Multi-record views (lists, bulk lookups): short TTL, any write in
      the scope invalidates them and they are cheap to lose
    - Single-record lookups: longer TTL, refreshed on every write
    - Whole HTTP responses: one hour, invalidated alongside the views

    Values are in seconds.
    """

    DEFAULT = 3600  # 1 hour
    RECORD = 1800  # 30 minutes
    LIST_VIEW = 900  # 15 minutes
    API_RESPONSE = 3600  # 1 hour

    @staticmethod
    def get_ttl(operation: str) -> int:
        """
        Determine TTL for a read operation.

        Args:
            operation: Name of the read operation

        Returns:
            TTL in seconds

        Example:
            >>> CacheTTL.get_ttl("list_accounts")
            900
        """
        if operation == "get_account":
            ttl = CacheTTL.RECORD.value

        elif operation in (
            "list_accounts",
            "list_payments",
            "bulk_payments",
            "list_activities",
            "bulk_activities",
        ):
            ttl = CacheTTL.LIST_VIEW.value

        elif operation == "api_response":
            ttl = CacheTTL.API_RESPONSE.value

        else:
            ttl = CacheTTL.DEFAULT.value
            logger.warning(
                "unknown_operation_using_default_ttl",
                operation=operation,
                default_ttl=ttl,
            )

        logger.debug("ttl_determined", operation=operation, ttl_seconds=ttl)

        return ttl
