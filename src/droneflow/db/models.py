"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Alembic migrations are written against these models.

Types are the portable ones (Uuid, JSON) so the same model runs on
PostgreSQL in production and SQLite in tests. Enumerated columns are
plain strings; the allowed values live in schemas.service_request.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Index,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class ServiceRequest(Base):
    """A client's drone service request.

    Learn: `id` is the internal key; `request_id` (DR-2024-001234) is the
    code clients and operators see, and the one every route uses.
    Status timestamps (confirmed_at, started_at, completed_at) are stamped
    by the service the first time the request enters that status.
    """

    __tablename__ = "service_requests"
    __table_args__ = (
        Index("idx_service_requests_status_created", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    request_id: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )

    # Client
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)

    # Service
    service_type: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True
    )  # aerial_photography, delivery, agriculture_spraying, ...
    location: Mapped[str] = mapped_column(Text, nullable=False)
    preferred_date: Mapped[date] = mapped_column(Date, nullable=False)
    preferred_time: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # morning, afternoon, evening
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default="normal"
    )  # normal, high, urgent
    budget: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    terms: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updates: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Workflow
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending"
    )  # pending, confirmed, in_progress, completed, cancelled
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    estimated_completion: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Operator
    operator_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assigned_operator_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, nullable=True
    )

    # Free-form
    attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    meta: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )  # "metadata" is reserved on declarative classes
