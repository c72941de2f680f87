"""Appointment endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.dependencies import CurrentUserId, DatabaseSession
from app.schemas.appointments import (
    AppointmentCancel,
    AppointmentComplete,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
)
from app.services.appointment_service import AppointmentService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    _: CurrentUserId,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Book an appointment against a time slot.

    With ENFORCE_SLOT_CAPACITY enabled the slot is locked and a full or
    blocked slot is rejected with 409; otherwise the appointment is written
    unconditionally.
    """
    service = AppointmentService(db)
    try:
        if settings.enforce_slot_capacity:
            return await service.book_appointment(data)
        return await service.create_appointment(data)
    except IntegrityError as e:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Referenced patient, provider, department, location or slot does not exist",
        ) from e


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    _: CurrentUserId,
    db: DatabaseSession,
    patient_id: UUID | None = Query(None),
    provider_id: UUID | None = Query(None),
    department_id: UUID | None = Query(None),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
) -> AppointmentListResponse:
    """List appointments with filtering and pagination."""
    filters = AppointmentFilters(
        patient_id=patient_id,
        provider_id=provider_id,
        department_id=department_id,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
    )

    service = AppointmentService(db)
    return await service.list_appointments(filters)


@router.get(
    "/patient/{patient_id}/upcoming",
    response_model=list[AppointmentResponse],
    summary="Upcoming appointments for a patient",
)
async def get_upcoming_appointments(
    patient_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
    limit: int = Query(10, ge=1, le=100),
) -> list[AppointmentResponse]:
    """Get a patient's open future appointments, soonest first."""
    service = AppointmentService(db)
    return await service.get_upcoming_appointments(patient_id, limit)


@router.get(
    "/patient/{patient_id}/history",
    response_model=list[AppointmentResponse],
    summary="Appointment history for a patient",
)
async def get_appointment_history(
    patient_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
    limit: int = Query(20, ge=1, le=100),
) -> list[AppointmentResponse]:
    """Get all of a patient's appointments, most recent first."""
    service = AppointmentService(db)
    return await service.get_appointment_history(patient_id, limit)


@router.get(
    "/confirmation/{code}",
    response_model=AppointmentResponse,
    summary="Get appointment by confirmation code",
)
async def get_appointment_by_code(
    code: str,
    _: CurrentUserId,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Look up an appointment by its confirmation code."""
    service = AppointmentService(db)
    return await service.get_by_confirmation_code(code)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        NotFoundException: If appointment not found
    """
    service = AppointmentService(db)
    return await service.get_appointment(appointment_id)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    _: CurrentUserId,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Update schedule, reason or notes of an appointment."""
    service = AppointmentService(db)
    return await service.update_appointment(appointment_id, data)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
    data: AppointmentCancel | None = None,
) -> AppointmentResponse:
    """Cancel an appointment, freeing its place in the slot."""
    service = AppointmentService(db)
    return await service.cancel_appointment(appointment_id, data.reason if data else None)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    _: CurrentUserId,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Move an appointment. The destination slot's capacity is not checked."""
    service = AppointmentService(db)
    return await service.reschedule_appointment(appointment_id, data)


@router.post(
    "/{appointment_id}/check-in",
    response_model=AppointmentResponse,
    summary="Check in patient",
)
async def check_in_appointment(
    appointment_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Mark the patient as arrived."""
    service = AppointmentService(db)
    return await service.check_in_appointment(appointment_id)


@router.post(
    "/{appointment_id}/start",
    response_model=AppointmentResponse,
    summary="Start appointment",
)
async def start_appointment(
    appointment_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Mark the visit as in progress."""
    service = AppointmentService(db)
    return await service.start_appointment(appointment_id)


@router.post(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    summary="Complete appointment",
)
async def complete_appointment(
    appointment_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
    data: AppointmentComplete | None = None,
) -> AppointmentResponse:
    """Mark the visit as completed, optionally storing provider notes."""
    service = AppointmentService(db)
    return await service.complete_appointment(
        appointment_id, data.provider_notes if data else None
    )


@router.post(
    "/{appointment_id}/no-show",
    response_model=AppointmentResponse,
    summary="Mark appointment as no-show",
)
async def mark_no_show(
    appointment_id: UUID,
    _: CurrentUserId,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Record that the patient did not attend."""
    service = AppointmentService(db)
    return await service.mark_no_show(appointment_id)
