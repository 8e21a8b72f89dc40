# backend/alembic/versions/001_scheduling_core.py
"""Scheduling core - users, tutor availability, date overrides and bookings

Revision ID: 001_scheduling_core
Revises:
Create Date: 2025-01-06 00:00:00.000000

Bookings store their own start instant, end instant and duration so they
stay valid when a tutor later edits availability. Only pending, accepted and
confirmed bookings hold a tutor's time; the partial unique index below keeps
two of those from starting at the same instant.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_scheduling_core"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_STATUS_PREDICATE = "status IN ('pending', 'accepted', 'confirmed')"


def upgrade() -> None:
    """Create scheduling tables."""
    print("Creating scheduling tables...")

    op.create_table(
        "users",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column("skills", sa.JSON(), nullable=False),
        sa.Column("bio", sa.String(1000), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "tutor_availability",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("tutor_id", sa.String(26), nullable=False),
        sa.Column("timezone", sa.String(50), nullable=False, server_default="UTC"),
        sa.Column("weekly_schedule", sa.JSON(), nullable=False),
        sa.Column("subjects", sa.JSON(), nullable=False),
        sa.Column("session_durations", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["tutor_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        comment="One recurring weekly schedule per tutor",
    )
    op.create_index("ix_tutor_availability_tutor_id", "tutor_availability", ["tutor_id"], unique=True)

    op.create_table(
        "availability_date_overrides",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("availability_id", sa.String(26), nullable=False),
        sa.Column("override_date", sa.Date(), nullable=False),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("slots", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["availability_id"], ["tutor_availability.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("availability_id", "override_date", name="unique_availability_override_date"),
        comment="Replaces the weekly schedule for a single calendar date",
    )
    op.create_index(
        "idx_availability_overrides_date",
        "availability_date_overrides",
        ["availability_id", "override_date"],
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("student_id", sa.String(26), nullable=False),
        sa.Column("tutor_id", sa.String(26), nullable=False),
        sa.Column("subject", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("meeting_link", sa.String(500), nullable=True),
        sa.Column("google_calendar_event_id", sa.String(255), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by_id", sa.String(26), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["tutor_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["cancelled_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'confirmed', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint("duration > 0", name="check_duration_positive"),
        sa.CheckConstraint("student_id <> tutor_id", name="ck_bookings_distinct_parties"),
        comment="Tutoring sessions; never deleted, terminal states are kept",
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_student_id", "bookings", ["student_id"])
    op.create_index("ix_bookings_tutor_id", "bookings", ["tutor_id"])
    op.create_index("ix_bookings_scheduled_at", "bookings", ["scheduled_at"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    # Conflict checks filter on tutor and compare both window ends
    op.create_index("ix_bookings_tutor_window", "bookings", ["tutor_id", "scheduled_at", "ends_at"])
    op.create_index(
        "uq_bookings_tutor_start_active",
        "bookings",
        ["tutor_id", "scheduled_at"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_STATUS_PREDICATE),
        sqlite_where=sa.text(ACTIVE_STATUS_PREDICATE),
    )

    print("Scheduling tables created")


def downgrade() -> None:
    """Drop scheduling tables."""
    op.drop_index("uq_bookings_tutor_start_active", table_name="bookings")
    op.drop_index("ix_bookings_tutor_window", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_scheduled_at", table_name="bookings")
    op.drop_index("ix_bookings_tutor_id", table_name="bookings")
    op.drop_index("ix_bookings_student_id", table_name="bookings")
    op.drop_index("ix_bookings_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("idx_availability_overrides_date", table_name="availability_date_overrides")
    op.drop_table("availability_date_overrides")

    op.drop_index("ix_tutor_availability_tutor_id", table_name="tutor_availability")
    op.drop_table("tutor_availability")

    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
