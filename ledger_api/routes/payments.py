"""Payment routes."""

from fastapi import APIRouter, Depends, Query, status

from ledger_api.models.records import BulkLookup, PaymentCreate, PaymentStatusUpdate
from ledger_api.models.responses import PageEnvelope, RecordEnvelope
from ledger_api.routes.dependencies import get_payment_service, require_requester
from ledger_api.services import PaymentService

router = APIRouter(prefix="/api", tags=["payments"])


@router.post(
    "/accounts/{account_id}/payments",
    response_model=RecordEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def record_payment(
    account_id: str,
    payload: PaymentCreate,
    owner: str = Depends(require_requester),
    service: PaymentService = Depends(get_payment_service),
) -> RecordEnvelope:
    """Record a completed payment and debit the account balance."""
    data = await service.record_payment(owner, account_id, payload)
    return RecordEnvelope(message="Payment recorded successfully", data=data)


@router.get("/accounts/{account_id}/payments", response_model=PageEnvelope)
async def list_payments(
    account_id: str,
    page: int = Query(1),
    limit: int = Query(10),
    owner: str = Depends(require_requester),
    service: PaymentService = Depends(get_payment_service),
) -> PageEnvelope:
    result = await service.list_payments(owner, account_id, page=page, limit=limit)
    return PageEnvelope.model_validate(result)


@router.post("/payments/bulk", response_model=PageEnvelope)
async def bulk_payments(
    lookup: BulkLookup,
    page: int = Query(1),
    limit: int = Query(10),
    owner: str = Depends(require_requester),
    service: PaymentService = Depends(get_payment_service),
) -> PageEnvelope:
    """Payments across several of the requester's accounts, newest first."""
    result = await service.bulk_payments(owner, lookup.account_ids, page=page, limit=limit)
    return PageEnvelope.model_validate(result)


@router.put("/payments/{payment_id}", response_model=RecordEnvelope)
async def update_payment_status(
    payment_id: str,
    update: PaymentStatusUpdate,
    owner: str = Depends(require_requester),
    service: PaymentService = Depends(get_payment_service),
) -> RecordEnvelope:
    data = await service.update_payment_status(owner, payment_id, update.status)
    return RecordEnvelope(message="Payment status updated", data=data)
