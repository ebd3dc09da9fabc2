"""Pydantic schemas for drone service requests.

Learn: Separate schemas for create/update/read keeps the API clean.
- ServiceRequestCreate: what the public form POSTs (fully validated)
- ServiceRequestUpdate: what operators PUT (all optional, partial)
- ServiceRequestRead: what the API and the SSE channel return
Enumerations are plain strings checked by regex patterns, mirroring
the CHECK constraints on the service_requests table.
"""

import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

SERVICE_TYPES = (
    "aerial_photography",
    "delivery",
    "agriculture_spraying",
    "surveillance",
    "inspection",
    "mapping",
    "other",
)
PREFERRED_TIMES = ("morning", "afternoon", "evening")
PRIORITIES = ("normal", "high", "urgent")
BUDGETS = ("under_500", "500_1000", "1000_2500", "2500_5000", "over_5000")
STATUSES = ("pending", "confirmed", "in_progress", "completed", "cancelled")

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


def _one_of(choices: tuple[str, ...]) -> str:
    return "^(" + "|".join(choices) + ")$"


# ─── Create (public form → platform) ─────────────────────


class ServiceRequestCreate(BaseModel):
    """A client submits a new drone service request."""
    client_name: str = Field(..., min_length=2, max_length=255)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    phone: str = Field(..., min_length=10, max_length=50)
    service_type: str = Field(..., pattern=_one_of(SERVICE_TYPES))
    location: str = Field(..., min_length=10)
    preferred_date: date
    preferred_time: str = Field(..., pattern=_one_of(PREFERRED_TIMES))
    priority: str = Field(default="normal", pattern=_one_of(PRIORITIES))
    budget: Optional[str] = Field(None, pattern=_one_of(BUDGETS))
    description: str = Field(..., min_length=20)
    terms: bool = False
    updates: bool = False

    model_config = {"str_strip_whitespace": True}

    @field_validator("preferred_date")
    @classmethod
    def preferred_date_in_future(cls, value: date) -> date:
        if value <= date.today():
            raise ValueError("Preferred date must be in the future")
        return value


# ─── Update (operator → platform) ────────────────────────


class ServiceRequestUpdate(BaseModel):
    """Partial update — only non-None fields are applied.

    request_id and created_at are read-only and silently ignored.
    """
    client_name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[str] = Field(None, max_length=255, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(None, min_length=10, max_length=50)
    service_type: Optional[str] = Field(None, pattern=_one_of(SERVICE_TYPES))
    location: Optional[str] = Field(None, min_length=10)
    preferred_date: Optional[date] = None
    preferred_time: Optional[str] = Field(None, pattern=_one_of(PREFERRED_TIMES))
    priority: Optional[str] = Field(None, pattern=_one_of(PRIORITIES))
    budget: Optional[str] = Field(None, pattern=_one_of(BUDGETS))
    description: Optional[str] = Field(None, min_length=20)
    status: Optional[str] = Field(None, pattern=_one_of(STATUSES))
    estimated_completion: Optional[datetime] = None
    operator_notes: Optional[str] = None
    assigned_operator_id: Optional[uuid.UUID] = None

    model_config = {"str_strip_whitespace": True}


# ─── Read (platform → client) ────────────────────────────


class ServiceRequestRead(BaseModel):
    """Full service request with all fields."""
    id: uuid.UUID
    request_id: str
    client_name: str
    email: str
    phone: str
    service_type: str
    location: str
    preferred_date: date
    preferred_time: str
    priority: str
    budget: Optional[str]
    description: str
    terms: bool
    updates: bool
    status: str
    created_at: datetime
    updated_at: datetime
    confirmed_at: Optional[datetime]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    estimated_completion: Optional[datetime]
    operator_notes: Optional[str]
    assigned_operator_id: Optional[uuid.UUID]
    attachments: list[Any]
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")

    model_config = {"from_attributes": True}


class ServiceRequestPage(BaseModel):
    """One page of a filtered listing."""
    items: list[ServiceRequestRead]
    total: int
    limit: int
    offset: int


class RequestStats(BaseModel):
    """Dashboard counters."""
    total: int
    pending: int  # pending + confirmed
    in_progress: int
    completed: int
    cancelled: int
    urgent: int
    high_priority: int
    today_requests: int  # created since 00:00 UTC
    this_week_requests: int  # since Monday 00:00 UTC
    this_month_requests: int  # since the 1st, 00:00 UTC
