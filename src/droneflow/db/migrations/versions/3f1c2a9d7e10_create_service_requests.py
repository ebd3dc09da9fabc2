"""Create service_requests table

Learn: One table holds every drone service request. CHECK constraints
mirror the enumerations validated by the API schemas so raw SQL inserts
can't sneak in an unknown status.

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2024-01-05 09:12:41.204331
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "service_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("request_id", sa.String(20), nullable=False),
        sa.Column("client_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=False),
        sa.Column("service_type", sa.String(50), nullable=False),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("preferred_date", sa.Date(), nullable=False),
        sa.Column("preferred_time", sa.String(20), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False, server_default="normal"),
        sa.Column("budget", sa.String(20), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("terms", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updates", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_completion", sa.DateTime(timezone=True), nullable=True),
        sa.Column("operator_notes", sa.Text(), nullable=True),
        sa.Column("assigned_operator_id", sa.Uuid(), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default="{}"),
        sa.CheckConstraint(
            "service_type IN ('aerial_photography', 'delivery', 'agriculture_spraying', "
            "'surveillance', 'inspection', 'mapping', 'other')",
            name="ck_service_requests_service_type",
        ),
        sa.CheckConstraint(
            "preferred_time IN ('morning', 'afternoon', 'evening')",
            name="ck_service_requests_preferred_time",
        ),
        sa.CheckConstraint(
            "priority IN ('normal', 'high', 'urgent')",
            name="ck_service_requests_priority",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'cancelled')",
            name="ck_service_requests_status",
        ),
    )
    op.create_index(
        "ix_service_requests_request_id", "service_requests", ["request_id"], unique=True
    )
    op.create_index("ix_service_requests_email", "service_requests", ["email"])
    op.create_index("ix_service_requests_service_type", "service_requests", ["service_type"])
    op.create_index(
        "idx_service_requests_status_created", "service_requests", ["status", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("idx_service_requests_status_created", table_name="service_requests")
    op.drop_index("ix_service_requests_service_type", table_name="service_requests")
    op.drop_index("ix_service_requests_email", table_name="service_requests")
    op.drop_index("ix_service_requests_request_id", table_name="service_requests")
    op.drop_table("service_requests")
