"""Time slot endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError

from app.dependencies import CurrentUserId, DatabaseSession
from app.schemas.time_slots import (
    RecurringSlotsCreate,
    SlotSearchFilters,
    TimeSlotBlock,
    TimeSlotCreate,
    TimeSlotDeleteResponse,
    TimeSlotResponse,
    TimeSlotUpdate,
)
from app.services.slot_service import SlotService

router = APIRouter()


def get_slot_service(db: DatabaseSession) -> SlotService:
    """Get slot service instance."""
    return SlotService(db)


def _filters(
    start_date: datetime,
    end_date: datetime,
    department_id: UUID | None,
    provider_id: UUID | None,
    location_id: UUID | None,
    is_available: bool | None,
) -> SlotSearchFilters:
    return SlotSearchFilters(
        start_date=start_date,
        end_date=end_date,
        department_id=department_id,
        provider_id=provider_id,
        location_id=location_id,
        is_available=is_available,
    )


@router.get(
    "/available",
    response_model=list[TimeSlotResponse],
    summary="Search available time slots",
)
async def search_available_slots(
    _: CurrentUserId,
    db: DatabaseSession,
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
    department_id: UUID | None = Query(None),
    provider_id: UUID | None = Query(None),
    location_id: UUID | None = Query(None),
    is_available: bool | None = Query(True),
) -> list[TimeSlotResponse]:
    """
    Search slots in a date range.

    With ``is_available=true`` (the default) only slots that are open and
    still have free capacity are returned.
    """
    service = get_slot_service(db)
    return await service.search_available_slots(
        _filters(start_date, end_date, department_id, provider_id, location_id, is_available)
    )


@router.get(
    "/calendar",
    response_model=dict[str, list[TimeSlotResponse]],
    summary="Calendar view of time slots",
)
async def get_calendar_view(
    _: CurrentUserId,
    db: DatabaseSession,
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
    department_id: UUID | None = Query(None),
    provider_id: UUID | None = Query(None),
    location_id: UUID | None = Query(None),
) -> dict[str, list[TimeSlotResponse]]:
    """Every slot in the range, full or blocked included, grouped by day (YYYY-MM-DD)."""
    service = get_slot_service(db)
    return await service.get_calendar_view(
        _filters(start_date, end_date, department_id, provider_id, location_id, None)
    )


@router.get(
    "/next-available",
    response_model=TimeSlotResponse | None,
    summary="Next bookable slot",
)
async def get_next_available_slot(
    _: CurrentUserId,
    db: DatabaseSession,
    department_id: UUID = Query(...),
    provider_id: UUID | None = Query(None),
) -> TimeSlotResponse | None:
    """Earliest future slot in a department that can still be booked, or null."""
    service = get_slot_service(db)
    return await service.get_next_available_slot(department_id, provider_id)


@router.get(
    "/provider/{provider_id}/schedule",
    response_model=list[TimeSlotResponse],
    summary="Provider schedule",
)
async def get_provider_schedule(
    provider_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
) -> list[TimeSlotResponse]:
    """All of a provider's slots in a date range, including full and blocked ones."""
    service = get_slot_service(db)
    return await service.get_provider_schedule(provider_id, start_date, end_date)


@router.post(
    "/",
    response_model=TimeSlotResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create time slot",
)
async def create_time_slot(
    data: TimeSlotCreate,
    _: CurrentUserId,
    db: DatabaseSession,
) -> TimeSlotResponse:
    """Create a single bookable slot."""
    service = get_slot_service(db)
    try:
        return await service.create_time_slot(data)
    except IntegrityError as e:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Referenced provider, department or location does not exist",
        ) from e


@router.post(
    "/recurring",
    response_model=list[TimeSlotResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create recurring time slots",
)
async def create_recurring_slots(
    data: RecurringSlotsCreate,
    _: CurrentUserId,
    db: DatabaseSession,
) -> list[TimeSlotResponse]:
    """Create a series of slots, each shifted by ``interval_days`` from the last."""
    service = get_slot_service(db)
    try:
        return await service.create_recurring_slots(data)
    except IntegrityError as e:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Referenced provider, department or location does not exist",
        ) from e


@router.get(
    "/{slot_id}",
    response_model=TimeSlotResponse,
    summary="Get time slot by ID",
)
async def get_time_slot(
    slot_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
) -> TimeSlotResponse:
    """Get a slot with its current booked count."""
    service = get_slot_service(db)
    return await service.get_time_slot(slot_id)


@router.put(
    "/{slot_id}",
    response_model=TimeSlotResponse,
    summary="Update time slot",
)
async def update_time_slot(
    slot_id: UUID,
    data: TimeSlotUpdate,
    _: CurrentUserId,
    db: DatabaseSession,
) -> TimeSlotResponse:
    """Update slot times or capacity. Capacity cannot drop below the booked count."""
    service = get_slot_service(db)
    return await service.update_time_slot(slot_id, data)


@router.post(
    "/{slot_id}/block",
    response_model=TimeSlotResponse,
    summary="Block or unblock time slot",
)
async def block_time_slot(
    slot_id: UUID,
    data: TimeSlotBlock,
    _: CurrentUserId,
    db: DatabaseSession,
) -> TimeSlotResponse:
    """Take a slot out of (or back into) circulation without touching its bookings."""
    service = get_slot_service(db)
    return await service.block_time_slot(slot_id, data.is_blocked)


@router.delete(
    "/{slot_id}",
    response_model=TimeSlotDeleteResponse,
    summary="Delete time slot",
)
async def delete_time_slot(
    slot_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
) -> TimeSlotDeleteResponse:
    """Delete a slot that has no active appointments."""
    service = get_slot_service(db)
    await service.delete_time_slot(slot_id)
    return TimeSlotDeleteResponse(success=True)
