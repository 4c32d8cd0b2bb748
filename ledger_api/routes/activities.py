"""Activity log routes."""

from fastapi import APIRouter, Depends, Query, status

from ledger_api.models.records import ActivityCreate, BulkLookup
from ledger_api.models.responses import PageEnvelope, RecordEnvelope
from ledger_api.routes.dependencies import get_activity_service, require_requester
from ledger_api.services import ActivityService

router = APIRouter(prefix="/api", tags=["activities"])


@router.post(
    "/accounts/{account_id}/activities",
    response_model=RecordEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def log_activity(
    account_id: str,
    payload: ActivityCreate,
    owner: str = Depends(require_requester),
    service: ActivityService = Depends(get_activity_service),
) -> RecordEnvelope:
    data = await service.log_activity(owner, account_id, payload)
    return RecordEnvelope(message="Activity logged", data=data)


@router.get("/accounts/{account_id}/activities", response_model=PageEnvelope)
async def list_activities(
    account_id: str,
    page: int = Query(1),
    limit: int = Query(10),
    owner: str = Depends(require_requester),
    service: ActivityService = Depends(get_activity_service),
) -> PageEnvelope:
    result = await service.list_activities(owner, account_id, page=page, limit=limit)
    return PageEnvelope.model_validate(result)


@router.post("/activities/bulk", response_model=PageEnvelope)
async def bulk_activities(
    lookup: BulkLookup,
    page: int = Query(1),
    limit: int = Query(10),
    owner: str = Depends(require_requester),
    service: ActivityService = Depends(get_activity_service),
) -> PageEnvelope:
    result = await service.bulk_activities(owner, lookup.account_ids, page=page, limit=limit)
    return PageEnvelope.model_validate(result)
