"""Waitlist entries table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from app.models.base import metadata

waitlist_entries = Table(
    "waitlist_entries",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # References
    Column(
        "patient_id",
        Uuid,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("department_id", Uuid, ForeignKey("departments.id"), nullable=False, index=True),
    Column("provider_id", Uuid, ForeignKey("providers.id"), nullable=True),  # optional preference
    # Preferences (descriptive unless matching is asked to respect them)
    Column("preferred_dates", JSON),
    # Example: ["2026-11-02", "2026-11-04"]
    Column("preferred_time_of_day", JSON),
    # Example: ["morning", "evening"]
    Column("priority", String(10), nullable=False),
    Column("medical_urgency", Text),
    # Status management
    Column("status", String(20), nullable=False, server_default="active", index=True),
    Column("requested_date", DateTime(timezone=True), nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("notifications_sent", Integer, nullable=False, server_default=text("0")),
    Column("last_notification_sent", DateTime(timezone=True)),
    Column("converted_to_appointment_id", Uuid, ForeignKey("appointments.id"), nullable=True),
    Column("notes", Text),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint(
        "priority IN ('low', 'medium', 'high', 'urgent')",
        name="waitlist_entries_priority_check",
    ),
    CheckConstraint(
        "status IN ('active', 'contacted', 'converted', 'expired', 'cancelled')",
        name="waitlist_entries_status_check",
    ),
)

Index("idx_waitlist_entries_status_expires", waitlist_entries.c.status, waitlist_entries.c.expires_at)
