"""Time slot schemas for request/response validation."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.schemas.common import UTCDateTime


class TimeSlotCreate(BaseModel):
    """Schema for creating a time slot."""

    provider_id: UUID
    department_id: UUID
    location_id: UUID
    start_time: UTCDateTime
    end_time: UTCDateTime
    duration: int = Field(..., ge=1, description="Length in minutes")
    capacity: int = Field(default=1, ge=1, description="Simultaneous bookings allowed")
    is_recurring: bool = False
    recurring_pattern: str | None = None

    @field_validator("end_time")
    @classmethod
    def validate_end_time(cls, v: datetime, info: Any) -> datetime:
        """Validate end time is after start time."""
        start = info.data.get("start_time")
        if start and v <= start:
            raise ValueError("End time must be after start time")
        return v


class TimeSlotUpdate(BaseModel):
    """Schema for updating a time slot."""

    start_time: UTCDateTime | None = None
    end_time: UTCDateTime | None = None
    duration: int | None = Field(None, ge=1)
    capacity: int | None = Field(None, ge=1)


class TimeSlotBlock(BaseModel):
    """Schema for blocking or unblocking a time slot."""

    is_blocked: bool


class RecurringSlotsCreate(BaseModel):
    """Schema for generating a series of slots from one template."""

    template: TimeSlotCreate
    recurrence_count: int = Field(..., ge=1, le=104)
    interval_days: int = Field(default=7, ge=1, le=365)


class SlotSearchFilters(BaseModel):
    """Filters for slot availability search.

    ``is_available=None`` means "all slots": neither the administrative flag
    nor remaining capacity is filtered.
    """

    start_date: UTCDateTime
    end_date: UTCDateTime
    department_id: UUID | None = None
    provider_id: UUID | None = None
    location_id: UUID | None = None
    is_available: bool | None = True


class TimeSlotResponse(BaseModel):
    """Schema for time slot response with derived capacity."""

    id: UUID
    provider_id: UUID
    department_id: UUID
    location_id: UUID
    start_time: UTCDateTime
    end_time: UTCDateTime
    duration: int
    capacity: int
    is_available: bool
    is_recurring: bool
    recurring_pattern: str | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime

    # Derived, never stored
    booked_count: int
    available_capacity: int

    # Display fields
    provider_first_name: str | None = None
    provider_last_name: str | None = None
    provider_title: str | None = None
    department_name: str | None = None
    department_code: str | None = None
    location_name: str | None = None
    location_building: str | None = None
    location_floor: str | None = None
    location_room: str | None = None

    model_config = {"from_attributes": True}


class TimeSlotDeleteResponse(BaseModel):
    """Schema for slot deletion result."""

    success: bool
