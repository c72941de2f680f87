"""Patient reference table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, String, Table, Uuid, func

from app.models.base import metadata

patients = Table(
    "patients",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("medical_record_number", String(50), unique=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("date_of_birth", Date),
    # Contact
    Column("phone", String(20)),
    Column("email", String(255)),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
