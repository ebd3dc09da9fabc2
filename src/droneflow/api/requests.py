"""Service request API routes.

Learn: Routes translate HTTP to service calls and map service errors to
status codes. The service gets the app's BroadcastDispatcher as its
event sink, so every successful create/update/delete is pushed to SSE
subscribers after the commit.

- GET    /requests              → filtered, paginated list
- GET    /requests/stats        → dashboard counters
- GET    /requests/:request_id  → one request
- POST   /requests              → create  (broadcasts request-created)
- PUT    /requests/:request_id  → update  (broadcasts request-updated)
- DELETE /requests/:request_id  → delete  (broadcasts request-deleted)
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from droneflow.db.engine import get_db
from droneflow.realtime.dependencies import get_dispatcher
from droneflow.realtime.dispatcher import BroadcastDispatcher
from droneflow.schemas.service_request import (
    RequestStats,
    ServiceRequestCreate,
    ServiceRequestPage,
    ServiceRequestRead,
    ServiceRequestUpdate,
)
from droneflow.services.request_service import (
    RequestNotFoundError,
    ServiceRequestService,
)

router = APIRouter()


def _get_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: BroadcastDispatcher = Depends(get_dispatcher),
) -> ServiceRequestService:
    return ServiceRequestService(db=db, events=dispatcher)


# ─── List / stats ────────────────────────────────────────


@router.get("/requests", response_model=ServiceRequestPage)
async def list_requests(
    status: Optional[str] = Query(None, description="Filter by status"),
    service_type: Optional[str] = Query(None, description="Filter by service type"),
    priority: Optional[str] = Query(None, description="Filter by priority"),
    search: Optional[str] = Query(
        None, description="Match request code, client name or location"
    ),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    svc: ServiceRequestService = Depends(_get_service),
):
    """List requests, newest first."""
    items, total = await svc.list_requests(
        status=status,
        service_type=service_type,
        priority=priority,
        search=search,
        limit=limit,
        offset=offset,
    )
    return ServiceRequestPage(
        items=[ServiceRequestRead.model_validate(r) for r in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/requests/stats", response_model=RequestStats)
async def request_stats(svc: ServiceRequestService = Depends(_get_service)):
    """Counts for the operator dashboard."""
    return await svc.get_stats()


# ─── Single request ──────────────────────────────────────


@router.get("/requests/{request_id}", response_model=ServiceRequestRead)
async def get_request(
    request_id: str,
    svc: ServiceRequestService = Depends(_get_service),
):
    req = await svc.get_request(request_id)
    if not req:
        raise HTTPException(status_code=404, detail="Request not found")
    return req


@router.post("/requests", response_model=ServiceRequestRead, status_code=201)
async def create_request(
    body: ServiceRequestCreate,
    svc: ServiceRequestService = Depends(_get_service),
):
    """Client submits a new service request (starts as 'pending')."""
    return await svc.create_request(body)


@router.put("/requests/{request_id}", response_model=ServiceRequestRead)
async def update_request(
    request_id: str,
    body: ServiceRequestUpdate,
    svc: ServiceRequestService = Depends(_get_service),
):
    """Operator updates a request — status, notes, schedule."""
    try:
        return await svc.update_request(request_id, body)
    except RequestNotFoundError:
        raise HTTPException(status_code=404, detail="Request not found")


@router.delete("/requests/{request_id}")
async def delete_request(
    request_id: str,
    svc: ServiceRequestService = Depends(_get_service),
):
    try:
        await svc.delete_request(request_id)
    except RequestNotFoundError:
        raise HTTPException(status_code=404, detail="Request not found")
    return {"request_id": request_id, "message": "Request deleted successfully"}
