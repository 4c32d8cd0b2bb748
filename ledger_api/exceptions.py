"""
Domain exceptions for the ledger API.

Each exception carries the HTTP status code the error handler in
ledger_api.server answers with.
"""

from typing import Optional


class LedgerAPIError(Exception):
    """
    Base exception for all ledger API errors.

    Use this for catching any error that should become a
    ``{"success": false, "message": ...}`` response.
    """

    def __init__(self, message: str, status_code: int = 500) -> None:
        """
        Initialize LedgerAPIError.

        Args:
            message: Error description
            status_code: HTTP status code to respond with
        """
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class AuthenticationError(LedgerAPIError):
    """
    Raised when a request carries no requester identity.

    Credential verification happens upstream; this service only needs
    the resolved user id.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, status_code=401)


class ValidationError(LedgerAPIError):
    """
    Raised when request parameters are invalid.

    Example:
        >>> raise ValidationError("must be greater than 0", field="amount")
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field

        if field:
            message = f"{field}: {message}"

        super().__init__(message, status_code=400)


class NotFoundError(LedgerAPIError):
    """
    Raised when a record does not exist, is soft-deleted, or belongs to
    another requester.

    Example:
        >>> raise NotFoundError("account", "42")
    """

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: Optional[str] = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id

        if message is None:
            message = f"{resource_type.capitalize()} '{resource_id}' not found"

        super().__init__(message, status_code=404)


class ConflictError(LedgerAPIError):
    """Raised when a write would duplicate a unique field."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=409)


class SourceOfTruthError(LedgerAPIError):
    """
    Raised when the authoritative record store fails.

    Unlike cache failures this propagates to the caller: the cache is
    never a substitute for the store.
    """

    def __init__(self, message: str = "Record store unavailable", operation: Optional[str] = None) -> None:
        self.operation = operation
        super().__init__(message, status_code=503)
