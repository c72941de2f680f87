"""Initial migration - scheduling reference data, slots, appointments and waitlist.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    # gen_random_uuid()
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        "departments",
        _uuid_pk(),
        sa.Column("name", sa.VARCHAR(length=200), nullable=False),
        sa.Column("code", sa.VARCHAR(length=20), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="departments_code_key"),
    )

    op.create_table(
        "locations",
        _uuid_pk(),
        sa.Column("name", sa.VARCHAR(length=200), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("building", sa.VARCHAR(length=100), nullable=True),
        sa.Column("floor", sa.VARCHAR(length=20), nullable=True),
        sa.Column("room", sa.VARCHAR(length=50), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "providers",
        _uuid_pk(),
        sa.Column("department_id", postgresql.UUID(), nullable=True),
        sa.Column("first_name", sa.VARCHAR(length=100), nullable=False),
        sa.Column("last_name", sa.VARCHAR(length=100), nullable=False),
        sa.Column("title", sa.VARCHAR(length=50), nullable=True),
        sa.Column("specialty", sa.VARCHAR(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_providers_department_id", "providers", ["department_id"])

    op.create_table(
        "patients",
        _uuid_pk(),
        sa.Column("medical_record_number", sa.VARCHAR(length=50), nullable=True),
        sa.Column("first_name", sa.VARCHAR(length=100), nullable=False),
        sa.Column("last_name", sa.VARCHAR(length=100), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("phone", sa.VARCHAR(length=20), nullable=True),
        sa.Column("email", sa.VARCHAR(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("medical_record_number", name="patients_mrn_key"),
    )

    op.create_table(
        "time_slots",
        _uuid_pk(),
        sa.Column("provider_id", postgresql.UUID(), nullable=False),
        sa.Column("department_id", postgresql.UUID(), nullable=False),
        sa.Column("location_id", postgresql.UUID(), nullable=False),
        sa.Column("start_time", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_time", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("capacity", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("is_available", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("recurring_pattern", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("capacity >= 1", name="time_slots_capacity_check"),
        sa.CheckConstraint("end_time > start_time", name="time_slots_window_check"),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_time_slots_provider_id", "time_slots", ["provider_id"])
    op.create_index("ix_time_slots_department_id", "time_slots", ["department_id"])
    op.create_index("ix_time_slots_start_time", "time_slots", ["start_time"])
    op.create_index(
        "idx_time_slots_department_start", "time_slots", ["department_id", "start_time"]
    )
    op.create_index("idx_time_slots_provider_start", "time_slots", ["provider_id", "start_time"])

    op.create_table(
        "appointments",
        _uuid_pk(),
        sa.Column("confirmation_code", sa.VARCHAR(length=12), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("provider_id", postgresql.UUID(), nullable=False),
        sa.Column("department_id", postgresql.UUID(), nullable=False),
        sa.Column("time_slot_id", postgresql.UUID(), nullable=True),
        sa.Column("location_id", postgresql.UUID(), nullable=False),
        sa.Column("scheduled_start", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("scheduled_end", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("actual_start", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("actual_end", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("status", sa.VARCHAR(length=20), server_default="scheduled", nullable=False),
        sa.Column("appointment_type", sa.VARCHAR(length=50), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("provider_notes", sa.Text(), nullable=True),
        sa.Column("no_show_risk", sa.VARCHAR(length=10), nullable=True),
        *_timestamps(),
        sa.Column("cancelled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'checked_in', 'in_progress', 'completed', "
            "'cancelled', 'no_show', 'rescheduled')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "no_show_risk IS NULL OR no_show_risk IN ('low', 'medium', 'high')",
            name="appointments_no_show_risk_check",
        ),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"]),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"]),
        sa.ForeignKeyConstraint(["time_slot_id"], ["time_slots.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("confirmation_code", name="appointments_confirmation_code_key"),
    )
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("ix_appointments_provider_id", "appointments", ["provider_id"])
    op.create_index("ix_appointments_time_slot_id", "appointments", ["time_slot_id"])
    op.create_index(
        "idx_appointments_slot_status", "appointments", ["time_slot_id", "status"]
    )
    op.create_index("idx_appointments_scheduled_start", "appointments", ["scheduled_start"])

    op.create_table(
        "waitlist_entries",
        _uuid_pk(),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("department_id", postgresql.UUID(), nullable=False),
        sa.Column("provider_id", postgresql.UUID(), nullable=True),
        sa.Column("preferred_dates", postgresql.JSON(), nullable=True),
        sa.Column("preferred_time_of_day", postgresql.JSON(), nullable=True),
        sa.Column("priority", sa.VARCHAR(length=10), nullable=False),
        sa.Column("medical_urgency", sa.Text(), nullable=True),
        sa.Column("status", sa.VARCHAR(length=20), server_default="active", nullable=False),
        sa.Column("requested_date", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("expires_at", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("notifications_sent", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_notification_sent", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("converted_to_appointment_id", postgresql.UUID(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "priority IN ('low', 'medium', 'high', 'urgent')",
            name="waitlist_entries_priority_check",
        ),
        sa.CheckConstraint(
            "status IN ('active', 'contacted', 'converted', 'expired', 'cancelled')",
            name="waitlist_entries_status_check",
        ),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"]),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"]),
        sa.ForeignKeyConstraint(["converted_to_appointment_id"], ["appointments.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_waitlist_entries_patient_id", "waitlist_entries", ["patient_id"])
    op.create_index("ix_waitlist_entries_department_id", "waitlist_entries", ["department_id"])
    op.create_index("ix_waitlist_entries_status", "waitlist_entries", ["status"])
    op.create_index(
        "idx_waitlist_entries_status_expires", "waitlist_entries", ["status", "expires_at"]
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table("waitlist_entries")
    op.drop_table("appointments")
    op.drop_table("time_slots")
    op.drop_table("patients")
    op.drop_table("providers")
    op.drop_table("locations")
    op.drop_table("departments")
