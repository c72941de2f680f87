"""Waitlist endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.dependencies import Cache, CurrentUserId, DatabaseSession
from app.schemas.time_slots import TimeSlotResponse
from app.schemas.waitlist import (
    WaitlistConvert,
    WaitlistEntryCreate,
    WaitlistEntryResponse,
    WaitlistEntryUpdate,
    WaitlistExpiryResult,
    WaitlistFilters,
    WaitlistPriority,
    WaitlistStats,
    WaitlistStatus,
)
from app.services.waitlist_service import WaitlistService

router = APIRouter()


def get_waitlist_service(db: DatabaseSession, cache: Cache) -> WaitlistService:
    """Get waitlist service instance."""
    return WaitlistService(db, cache)


@router.get(
    "/",
    response_model=list[WaitlistEntryResponse],
    summary="List waitlist entries",
)
async def get_waitlist_entries(
    _: CurrentUserId,
    db: DatabaseSession,
    cache: Cache,
    department_id: UUID | None = Query(None),
    provider_id: UUID | None = Query(None),
    status_filter: WaitlistStatus | None = Query(None, alias="status"),
    priority: WaitlistPriority | None = Query(None),
) -> list[WaitlistEntryResponse]:
    """
    List waitlist entries, most urgent first.

    Entries are ordered by priority (urgent, high, medium, low) and then by
    the date they joined the waitlist, oldest first.
    """
    filters = WaitlistFilters(
        department_id=department_id,
        provider_id=provider_id,
        status=status_filter,
        priority=priority,
    )
    service = get_waitlist_service(db, cache)
    return await service.get_waitlist_entries(filters)


@router.get(
    "/stats",
    response_model=WaitlistStats,
    summary="Waitlist statistics",
)
async def get_waitlist_stats(
    _: CurrentUserId,
    db: DatabaseSession,
    cache: Cache,
    department_id: UUID | None = Query(None),
) -> WaitlistStats:
    """Counts by status and priority, optionally for a single department."""
    service = get_waitlist_service(db, cache)
    return await service.get_waitlist_stats(department_id)


@router.post(
    "/expire",
    response_model=WaitlistExpiryResult,
    summary="Expire overdue waitlist entries",
)
async def expire_old_entries(
    _: CurrentUserId,
    db: DatabaseSession,
    cache: Cache,
) -> WaitlistExpiryResult:
    """Move open entries past their expiry date to expired."""
    service = get_waitlist_service(db, cache)
    return await service.expire_old_entries()


@router.get(
    "/patient/{patient_id}",
    response_model=list[WaitlistEntryResponse],
    summary="Waitlist entries for a patient",
)
async def get_patient_waitlist_entries(
    patient_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
    cache: Cache,
) -> list[WaitlistEntryResponse]:
    """A patient's active and contacted entries, most urgent first."""
    service = get_waitlist_service(db, cache)
    return await service.get_patient_waitlist_entries(patient_id)


@router.get(
    "/{entry_id}",
    response_model=WaitlistEntryResponse,
    summary="Get waitlist entry by ID",
)
async def get_waitlist_entry(
    entry_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
    cache: Cache,
) -> WaitlistEntryResponse:
    service = get_waitlist_service(db, cache)
    return await service.get_waitlist_entry(entry_id)


@router.post(
    "/",
    response_model=WaitlistEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add patient to waitlist",
)
async def create_waitlist_entry(
    data: WaitlistEntryCreate,
    _: CurrentUserId,
    db: DatabaseSession,
    cache: Cache,
) -> WaitlistEntryResponse:
    """Create an active waitlist entry that expires after WAITLIST_EXPIRY_DAYS."""
    service = get_waitlist_service(db, cache)
    try:
        return await service.create_waitlist_entry(data)
    except IntegrityError as e:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Referenced patient, department or provider does not exist",
        ) from e


@router.put(
    "/{entry_id}",
    response_model=WaitlistEntryResponse,
    summary="Update waitlist entry",
)
async def update_waitlist_entry(
    entry_id: UUID,
    data: WaitlistEntryUpdate,
    _: CurrentUserId,
    db: DatabaseSession,
    cache: Cache,
) -> WaitlistEntryResponse:
    service = get_waitlist_service(db, cache)
    return await service.update_waitlist_entry(entry_id, data)


@router.post(
    "/{entry_id}/cancel",
    response_model=WaitlistEntryResponse,
    summary="Cancel waitlist entry",
)
async def cancel_waitlist_entry(
    entry_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
    cache: Cache,
) -> WaitlistEntryResponse:
    service = get_waitlist_service(db, cache)
    return await service.cancel_waitlist_entry(entry_id)


@router.post(
    "/{entry_id}/contacted",
    response_model=WaitlistEntryResponse,
    summary="Record patient contact",
)
async def mark_as_contacted(
    entry_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
    cache: Cache,
) -> WaitlistEntryResponse:
    """Mark the entry contacted and bump its notification counter."""
    service = get_waitlist_service(db, cache)
    return await service.mark_as_contacted(entry_id)


@router.post(
    "/{entry_id}/convert",
    response_model=WaitlistEntryResponse,
    summary="Convert waitlist entry to appointment",
)
async def convert_to_appointment(
    entry_id: UUID,
    data: WaitlistConvert,
    _: CurrentUserId,
    db: DatabaseSession,
    cache: Cache,
) -> WaitlistEntryResponse:
    """
    Link the entry to an appointment that has already been booked.

    The appointment must be created first, through the appointments API.
    """
    service = get_waitlist_service(db, cache)
    try:
        return await service.convert_to_appointment(entry_id, data.appointment_id)
    except IntegrityError as e:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Appointment does not exist",
        ) from e


@router.get(
    "/{entry_id}/matching-slots",
    response_model=list[TimeSlotResponse],
    summary="Find slots for a waitlist entry",
)
async def find_matching_slots(
    entry_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
    cache: Cache,
    limit: int | None = Query(None, ge=1, le=100),
    respect_preferences: bool = Query(False, alias="respectPreferences"),
) -> list[TimeSlotResponse]:
    """
    Future bookable slots in the entry's department (and provider, if set).

    Pass ``respectPreferences=true`` to also filter by the entry's preferred
    dates and times of day.
    """
    service = get_waitlist_service(db, cache)
    return await service.find_matching_slots(
        entry_id,
        limit or settings.default_matching_limit,
        respect_preferences,
    )
