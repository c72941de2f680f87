"""Time slot table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Table,
    Text,
    Uuid,
    false,
    func,
    text,
    true,
)

from app.models.base import metadata

time_slots = Table(
    "time_slots",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # References
    Column(
        "provider_id",
        Uuid,
        ForeignKey("providers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column(
        "department_id",
        Uuid,
        ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column(
        "location_id",
        Uuid,
        ForeignKey("locations.id", ondelete="CASCADE"),
        nullable=False,
    ),
    # Window
    Column("start_time", DateTime(timezone=True), nullable=False, index=True),
    Column("end_time", DateTime(timezone=True), nullable=False),
    Column("duration", Integer, nullable=False),  # minutes, informational
    # Simultaneous bookings allowed. The booked count is never stored here,
    # it is derived from appointments on every read.
    Column("capacity", Integer, nullable=False, server_default=text("1")),
    # False when administratively blocked
    Column("is_available", Boolean, nullable=False, server_default=true()),
    # Recurrence template, opaque to scheduling
    Column("is_recurring", Boolean, nullable=False, server_default=false()),
    Column("recurring_pattern", Text),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint("capacity >= 1", name="time_slots_capacity_check"),
    CheckConstraint("end_time > start_time", name="time_slots_window_check"),
)

Index(
    "idx_time_slots_department_start",
    time_slots.c.department_id,
    time_slots.c.start_time,
)
Index(
    "idx_time_slots_provider_start",
    time_slots.c.provider_id,
    time_slots.c.start_time,
)
