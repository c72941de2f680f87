"""Waitlist schemas for request/response validation."""

from datetime import date
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import UTCDateTime


class WaitlistPriority(str, Enum):
    """Waitlist priority enumeration."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class WaitlistStatus(str, Enum):
    """Waitlist entry status enumeration."""

    ACTIVE = "active"
    CONTACTED = "contacted"
    CONVERTED = "converted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class TimeOfDay(str, Enum):
    """Preferred part of the day."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class WaitlistEntryCreate(BaseModel):
    """Schema for creating a waitlist entry."""

    patient_id: UUID
    department_id: UUID
    provider_id: UUID | None = None
    preferred_dates: list[date] | None = None
    preferred_time_of_day: list[TimeOfDay] | None = None
    priority: WaitlistPriority
    medical_urgency: str | None = Field(None, max_length=1000)
    notes: str | None = Field(None, max_length=1000)


class WaitlistEntryUpdate(BaseModel):
    """Schema for updating a waitlist entry."""

    preferred_dates: list[date] | None = None
    preferred_time_of_day: list[TimeOfDay] | None = None
    priority: WaitlistPriority | None = None
    medical_urgency: str | None = Field(None, max_length=1000)
    notes: str | None = Field(None, max_length=1000)


class WaitlistConvert(BaseModel):
    """Schema for converting a waitlist entry."""

    appointment_id: UUID


class WaitlistFilters(BaseModel):
    """Schema for waitlist filtering."""

    department_id: UUID | None = None
    provider_id: UUID | None = None
    status: WaitlistStatus | None = None
    priority: WaitlistPriority | None = None


class WaitlistEntryResponse(BaseModel):
    """Schema for waitlist entry response, with joined display fields."""

    id: UUID
    patient_id: UUID
    department_id: UUID
    provider_id: UUID | None = None
    preferred_dates: list[date] | None = None
    preferred_time_of_day: list[TimeOfDay] | None = None
    priority: WaitlistPriority
    medical_urgency: str | None = None
    status: WaitlistStatus
    requested_date: UTCDateTime
    expires_at: UTCDateTime
    notifications_sent: int
    last_notification_sent: UTCDateTime | None = None
    converted_to_appointment_id: UUID | None = None
    notes: str | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime

    # Display fields
    patient_first_name: str | None = None
    patient_last_name: str | None = None
    patient_phone: str | None = None
    patient_email: str | None = None
    department_name: str | None = None
    department_code: str | None = None
    provider_first_name: str | None = None
    provider_last_name: str | None = None
    provider_title: str | None = None

    model_config = {"from_attributes": True}


class WaitlistStats(BaseModel):
    """Waitlist counts by status and priority."""

    total_entries: int = 0
    active_entries: int = 0
    contacted_entries: int = 0
    converted_entries: int = 0
    expired_entries: int = 0
    cancelled_entries: int = 0
    urgent_entries: int = 0
    high_priority_entries: int = 0
    medium_priority_entries: int = 0
    low_priority_entries: int = 0
    average_wait_time_days: float | None = None


class WaitlistExpiryResult(BaseModel):
    """Result of an expiry sweep."""

    expired_count: int
