"""
FastAPI dependencies shared by the route modules.

Requester identity is resolved upstream (credential issuance is not this
service's concern) and forwarded in the ``X-User-Id`` header.
"""

from typing import Optional

from fastapi import Request

from ledger_api.exceptions import AuthenticationError
from ledger_api.services import AccountService, ActivityService, PaymentService

REQUESTER_HEADER = "X-User-Id"


def requester_id(request: Request) -> Optional[str]:
    """Requester id from the request headers, or None when absent or blank."""
    value = request.headers.get(REQUESTER_HEADER, "").strip()
    return value or None


def require_requester(request: Request) -> str:
    """
    Resolve the requester or reject the request.

    Raises:
        AuthenticationError: If the identity header is missing
    """
    owner = requester_id(request)
    if owner is None:
        raise AuthenticationError(f"Missing {REQUESTER_HEADER} header")
    return owner


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service


def get_activity_service(request: Request) -> ActivityService:
    return request.app.state.activity_service
