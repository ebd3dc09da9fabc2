"""Service request service — CRUD for drone service requests.

Learn: Every mutation follows the same shape:
1. Apply the change to the ORM object
2. Commit
3. Only then emit the SSE event (request-created / -updated / -deleted)

If the database rejects the change, the exception propagates before
step 3, so dashboards never hear about a change that didn't happen.
The service only knows the EventSink protocol: the API wires in the
BroadcastDispatcher, tests wire in a recording fake.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from droneflow.db.models import ServiceRequest
from droneflow.events.types import (
    REQUEST_CREATED,
    REQUEST_DELETED,
    REQUEST_UPDATED,
    EventSink,
    RequestChangedPayload,
    RequestDeletedPayload,
)
from droneflow.schemas.service_request import (
    RequestStats,
    ServiceRequestCreate,
    ServiceRequestRead,
    ServiceRequestUpdate,
)

logger = structlog.get_logger()

# Status → the timestamp column stamped when a request first enters it
STATUS_TIMESTAMPS = {
    "confirmed": "confirmed_at",
    "in_progress": "started_at",
    "completed": "completed_at",
}

MAX_ID_ATTEMPTS = 1000


class RequestNotFoundError(Exception):
    """Raised when no request has the given request_id."""


class RequestIdExhaustedError(Exception):
    """Raised when no free request_id could be generated."""


def generate_request_id(now: Optional[datetime] = None) -> str:
    """Human-readable request code: DR-<year>-<6 digits>."""
    year = (now or datetime.now(timezone.utc)).year
    return f"DR-{year}-{secrets.randbelow(1_000_000):06d}"


def _window_starts(now: datetime) -> tuple[datetime, datetime, datetime]:
    """Start of the current UTC day, ISO week (Monday) and month."""
    day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return day, day - timedelta(days=day.weekday()), day.replace(day=1)


class ServiceRequestService:
    """Business logic for service request CRUD."""

    def __init__(self, db: AsyncSession, events: EventSink):
        self.db = db
        self.events = events

    # ─── Create ──────────────────────────────────────────

    async def create_request(self, data: ServiceRequestCreate) -> ServiceRequest:
        """Persist a new request in 'pending' status and announce it."""
        req = ServiceRequest(
            request_id=await self._unique_request_id(),
            status="pending",
            **data.model_dump(),
        )
        self.db.add(req)
        await self.db.commit()

        logger.info("request.created", request_id=req.request_id)
        self.events.emit(
            REQUEST_CREATED,
            RequestChangedPayload(
                request=ServiceRequestRead.model_validate(req),
                message=f"New service request: {req.request_id}",
            ),
        )
        return req

    # ─── Read ────────────────────────────────────────────

    async def get_request(self, request_id: str) -> Optional[ServiceRequest]:
        result = await self.db.execute(
            select(ServiceRequest).where(ServiceRequest.request_id == request_id)
        )
        return result.scalars().first()

    async def list_requests(
        self,
        *,
        status: Optional[str] = None,
        service_type: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ServiceRequest], int]:
        """Filtered, newest-first page plus the total match count."""
        q = select(ServiceRequest)
        if status:
            q = q.where(ServiceRequest.status == status)
        if service_type:
            q = q.where(ServiceRequest.service_type == service_type)
        if priority:
            q = q.where(ServiceRequest.priority == priority)
        if search:
            pattern = f"%{search}%"
            q = q.where(
                or_(
                    ServiceRequest.request_id.ilike(pattern),
                    ServiceRequest.client_name.ilike(pattern),
                    ServiceRequest.location.ilike(pattern),
                )
            )

        total = await self.db.scalar(select(func.count()).select_from(q.subquery()))

        result = await self.db.execute(
            q.order_by(ServiceRequest.created_at.desc()).limit(limit).offset(offset)
        )
        return list(result.scalars().all()), total or 0

    async def get_stats(self) -> RequestStats:
        """Dashboard counters, one grouped query."""
        result = await self.db.execute(
            select(ServiceRequest.status, ServiceRequest.priority, func.count())
            .group_by(ServiceRequest.status, ServiceRequest.priority)
        )

        by_status: dict[str, int] = {}
        by_priority: dict[str, int] = {}
        for status, priority, count in result.all():
            by_status[status] = by_status.get(status, 0) + count
            by_priority[priority] = by_priority.get(priority, 0) + count

        day, week, month = _window_starts(datetime.now(timezone.utc))
        windows = await self.db.execute(
            select(
                func.count(case((ServiceRequest.created_at >= day, 1))),
                func.count(case((ServiceRequest.created_at >= week, 1))),
                func.count(case((ServiceRequest.created_at >= month, 1))),
            )
        )
        today, this_week, this_month = windows.one()

        return RequestStats(
            total=sum(by_status.values()),
            pending=by_status.get("pending", 0) + by_status.get("confirmed", 0),
            in_progress=by_status.get("in_progress", 0),
            completed=by_status.get("completed", 0),
            cancelled=by_status.get("cancelled", 0),
            urgent=by_priority.get("urgent", 0),
            high_priority=by_priority.get("high", 0),
            today_requests=today,
            this_week_requests=this_week,
            this_month_requests=this_month,
        )

    # ─── Update ──────────────────────────────────────────

    async def update_request(
        self,
        request_id: str,
        changes: ServiceRequestUpdate,
    ) -> ServiceRequest:
        """Apply a partial update and announce the resulting record."""
        req = await self._get_or_raise(request_id)
        now = datetime.now(timezone.utc)

        fields = {
            k: v for k, v in changes.model_dump(exclude_unset=True).items()
            if v is not None
        }
        for key, value in fields.items():
            setattr(req, key, value)

        new_status = fields.get("status")
        stamp = STATUS_TIMESTAMPS.get(new_status) if new_status else None
        if stamp and getattr(req, stamp) is None:
            setattr(req, stamp, now)

        req.updated_at = now
        await self.db.commit()

        logger.info(
            "request.updated",
            request_id=req.request_id,
            status=req.status,
            fields=sorted(fields),
        )
        self.events.emit(
            REQUEST_UPDATED,
            RequestChangedPayload(
                request=ServiceRequestRead.model_validate(req),
                message=f"Request {req.request_id} status updated to {req.status}",
            ),
        )
        return req

    # ─── Delete ──────────────────────────────────────────

    async def delete_request(self, request_id: str) -> None:
        """Delete a request and announce its code."""
        req = await self._get_or_raise(request_id)
        await self.db.delete(req)
        await self.db.commit()

        logger.info("request.deleted", request_id=request_id)
        self.events.emit(
            REQUEST_DELETED,
            RequestDeletedPayload(
                request_id=request_id,
                message=f"Request {request_id} has been deleted",
            ),
        )

    # ─── Helpers ─────────────────────────────────────────

    async def _get_or_raise(self, request_id: str) -> ServiceRequest:
        req = await self.get_request(request_id)
        if not req:
            raise RequestNotFoundError(f"Request {request_id} not found")
        return req

    async def _unique_request_id(self) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = generate_request_id()
            taken = await self.db.scalar(
                select(ServiceRequest.id).where(ServiceRequest.request_id == candidate)
            )
            if taken is None:
                return candidate
        raise RequestIdExhaustedError(
            f"Unable to generate unique request ID after {MAX_ID_ATTEMPTS} attempts"
        )
