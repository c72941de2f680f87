"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Uuid,
    func,
)

from app.models.base import metadata

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("confirmation_code", String(12), nullable=False, unique=True),
    # Ownership / references
    Column(
        "patient_id",
        Uuid,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("provider_id", Uuid, ForeignKey("providers.id"), nullable=False, index=True),
    Column("department_id", Uuid, ForeignKey("departments.id"), nullable=False),
    # RESTRICT so the store refuses to drop a slot out from under its bookings
    Column(
        "time_slot_id",
        Uuid,
        ForeignKey("time_slots.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    ),
    Column("location_id", Uuid, ForeignKey("locations.id"), nullable=False),
    # Copied from the slot at booking time, independently mutable afterwards
    Column("scheduled_start", DateTime(timezone=True), nullable=False),
    Column("scheduled_end", DateTime(timezone=True), nullable=False),
    Column("actual_start", DateTime(timezone=True), nullable=True),
    Column("actual_end", DateTime(timezone=True), nullable=True),
    # Status management
    Column("status", String(20), nullable=False, server_default="scheduled"),
    Column("appointment_type", String(50), nullable=False),
    Column("reason", Text, nullable=True),
    Column("notes", Text, nullable=True),
    Column("provider_notes", Text, nullable=True),
    # Produced by the external predictor, stored only
    Column("no_show_risk", String(10), nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    Column("cancellation_reason", Text, nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('scheduled', 'confirmed', 'checked_in', 'in_progress', 'completed', "
        "'cancelled', 'no_show', 'rescheduled')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "no_show_risk IS NULL OR no_show_risk IN ('low', 'medium', 'high')",
        name="appointments_no_show_risk_check",
    ),
)

# Capacity counts filter on slot + status
Index("idx_appointments_slot_status", appointments.c.time_slot_id, appointments.c.status)
Index("idx_appointments_scheduled_start", appointments.c.scheduled_start)
