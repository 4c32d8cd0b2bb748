"""
Account routes.

Every GET under ``/api/accounts`` also passes through the response-caching
middleware; the service layer underneath keeps its own cache-aside views.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ledger_api.models.records import AccountCreate, AccountStatus, AccountUpdate
from ledger_api.models.responses import MessageEnvelope, PageEnvelope, RecordEnvelope
from ledger_api.routes.dependencies import get_account_service, require_requester
from ledger_api.services import AccountService

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@router.post("", response_model=RecordEnvelope, status_code=status.HTTP_201_CREATED)
async def create_account(
    payload: AccountCreate,
    owner: str = Depends(require_requester),
    service: AccountService = Depends(get_account_service),
) -> RecordEnvelope:
    data = await service.create_account(owner, payload)
    return RecordEnvelope(message="Account created successfully", data=data)


@router.get("", response_model=PageEnvelope)
async def list_accounts(
    page: int = Query(1, description="Page number (1-based)"),
    limit: int = Query(10, description="Accounts per page"),
    sort: str = Query("createdAt", description="createdAt, name, email or balance"),
    status_filter: Optional[AccountStatus] = Query(None, alias="status"),
    owner: str = Depends(require_requester),
    service: AccountService = Depends(get_account_service),
) -> PageEnvelope:
    """List the requester's accounts, ascending by the sort field."""
    result = await service.list_accounts(owner, page=page, limit=limit, sort=sort, status=status_filter)
    return PageEnvelope.model_validate(result)


@router.get("/{account_id}", response_model=RecordEnvelope)
async def get_account(
    account_id: str,
    owner: str = Depends(require_requester),
    service: AccountService = Depends(get_account_service),
) -> RecordEnvelope:
    data, cached = await service.get_account(owner, account_id)
    return RecordEnvelope(data=data, from_cache=cached)


@router.put("/{account_id}", response_model=RecordEnvelope)
async def update_account(
    account_id: str,
    payload: AccountUpdate,
    owner: str = Depends(require_requester),
    service: AccountService = Depends(get_account_service),
) -> RecordEnvelope:
    """Partially update name, phone, address, status or balance."""
    data = await service.update_account(owner, account_id, payload)
    return RecordEnvelope(message="Account updated successfully", data=data)


@router.delete("/{account_id}", response_model=MessageEnvelope)
async def delete_account(
    account_id: str,
    owner: str = Depends(require_requester),
    service: AccountService = Depends(get_account_service),
) -> MessageEnvelope:
    await service.delete_account(owner, account_id)
    return MessageEnvelope(message="Account deleted successfully")
