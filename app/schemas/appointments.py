"""Appointment schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.schemas.common import UTCDateTime


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"


class NoShowRisk(str, Enum):
    """No-show risk category assigned by the external predictor."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AppointmentCreate(BaseModel):
    """Schema for creating a new appointment."""

    patient_id: UUID
    provider_id: UUID
    department_id: UUID
    time_slot_id: UUID
    location_id: UUID
    scheduled_start: UTCDateTime
    scheduled_end: UTCDateTime
    appointment_type: str = Field(..., min_length=1, max_length=50)
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)
    no_show_risk: NoShowRisk | None = None

    @field_validator("scheduled_end")
    @classmethod
    def validate_end_time(cls, v: datetime, info: Any) -> datetime:
        """Validate end time is after start time."""
        start = info.data.get("scheduled_start")
        if start and v <= start:
            raise ValueError("End time must be after start time")
        return v


class AppointmentUpdate(BaseModel):
    """Schema for updating an existing appointment."""

    scheduled_start: UTCDateTime | None = None
    scheduled_end: UTCDateTime | None = None
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)
    provider_notes: str | None = Field(None, max_length=2000)


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str | None = Field(None, max_length=500)


class AppointmentReschedule(BaseModel):
    """Schema for rescheduling an appointment."""

    new_start: UTCDateTime
    new_end: UTCDateTime
    new_time_slot_id: UUID | None = None

    @field_validator("new_end")
    @classmethod
    def validate_end_time(cls, v: datetime, info: Any) -> datetime:
        """Validate the new end time is after the new start time."""
        start = info.data.get("new_start")
        if start and v <= start:
            raise ValueError("End time must be after start time")
        return v


class AppointmentComplete(BaseModel):
    """Schema for completing an appointment."""

    provider_notes: str | None = Field(None, max_length=2000)


class AppointmentResponse(BaseModel):
    """Schema for appointment response, with joined display fields."""

    id: UUID
    confirmation_code: str
    patient_id: UUID
    provider_id: UUID
    department_id: UUID
    time_slot_id: UUID | None
    location_id: UUID
    scheduled_start: UTCDateTime
    scheduled_end: UTCDateTime
    actual_start: UTCDateTime | None = None
    actual_end: UTCDateTime | None = None
    status: AppointmentStatus
    appointment_type: str
    reason: str | None = None
    notes: str | None = None
    provider_notes: str | None = None
    no_show_risk: NoShowRisk | None = None
    cancelled_at: UTCDateTime | None = None
    cancellation_reason: str | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime

    # Display fields
    patient_first_name: str | None = None
    patient_last_name: str | None = None
    patient_phone: str | None = None
    provider_first_name: str | None = None
    provider_last_name: str | None = None
    provider_title: str | None = None
    department_name: str | None = None
    location_name: str | None = None

    model_config = {"from_attributes": True}


class PaginationMeta(BaseModel):
    """Pagination metadata."""

    page: int
    page_size: int
    total: int
    total_pages: int


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    data: list[AppointmentResponse]
    pagination: PaginationMeta


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    patient_id: UUID | None = None
    provider_id: UUID | None = None
    department_id: UUID | None = None
    status: AppointmentStatus | None = None
    start_date: UTCDateTime | None = None
    end_date: UTCDateTime | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=100)
