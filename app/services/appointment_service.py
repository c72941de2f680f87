"""Appointment service: booking and the appointment lifecycle.

This service is the only writer of appointment status. Slot availability is
never adjusted here directly; it follows from the statuses written, because
the capacity ledger recounts appointments on every read.

``create_appointment`` does not look at slot capacity. A caller that searched
for availability first can still lose a race with a concurrent booking and
overbook the slot. ``book_appointment`` closes that window by locking the slot
row and counting inside the same transaction as the insert.
"""

import math
import secrets
import string
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import Select, and_, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    AppException,
    BadRequestException,
    CapacityExceededException,
    NotFoundException,
)
from app.models.appointments import appointments
from app.models.departments import departments
from app.models.locations import locations
from app.models.patients import patients
from app.models.providers import providers
from app.models.time_slots import time_slots
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
    PaginationMeta,
)
from app.services.capacity import booked_count

logger = structlog.get_logger()

CONFIRMATION_CODE_ALPHABET = string.ascii_uppercase + string.digits

# Statuses that no longer count as upcoming
CLOSED_STATUSES = (
    AppointmentStatus.CANCELLED.value,
    AppointmentStatus.COMPLETED.value,
    AppointmentStatus.NO_SHOW.value,
)


def generate_confirmation_code(length: int = 6) -> str:
    """Draw a random code of uppercase letters and digits."""
    return "".join(secrets.choice(CONFIRMATION_CODE_ALPHABET) for _ in range(length))


def appointment_query() -> Select[Any]:
    """Select appointments with joined display fields."""
    return select(
        appointments,
        patients.c.first_name.label("patient_first_name"),
        patients.c.last_name.label("patient_last_name"),
        patients.c.phone.label("patient_phone"),
        providers.c.first_name.label("provider_first_name"),
        providers.c.last_name.label("provider_last_name"),
        providers.c.title.label("provider_title"),
        departments.c.name.label("department_name"),
        locations.c.name.label("location_name"),
    ).select_from(
        appointments.outerjoin(patients, appointments.c.patient_id == patients.c.id)
        .outerjoin(providers, appointments.c.provider_id == providers.c.id)
        .outerjoin(departments, appointments.c.department_id == departments.c.id)
        .outerjoin(locations, appointments.c.location_id == locations.c.id)
    )


class AppointmentService:
    """Service for managing appointments."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Args:
            appointment_id: Appointment ID

        Returns:
            Appointment details

        Raises:
            NotFoundException: If appointment not found
        """
        result = await self.db.execute(
            appointment_query().where(appointments.c.id == appointment_id)
        )
        row = result.fetchone()

        if not row:
            raise NotFoundException("Appointment not found")

        return AppointmentResponse.model_validate(dict(row._mapping))

    async def get_by_confirmation_code(self, code: str) -> AppointmentResponse:
        """
        Look up an appointment by its patient-facing confirmation code.

        Raises:
            NotFoundException: If no appointment carries the code
        """
        result = await self.db.execute(
            appointment_query().where(appointments.c.confirmation_code == code.upper())
        )
        row = result.fetchone()

        if not row:
            raise NotFoundException("Appointment not found")

        return AppointmentResponse.model_validate(dict(row._mapping))

    async def list_appointments(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Args:
            filters: Filter and pagination parameters

        Returns:
            Page of appointments, newest first, with pagination metadata
        """
        conditions = []

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.provider_id:
            conditions.append(appointments.c.provider_id == filters.provider_id)

        if filters.department_id:
            conditions.append(appointments.c.department_id == filters.department_id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.start_date:
            conditions.append(appointments.c.scheduled_start >= filters.start_date)

        if filters.end_date:
            conditions.append(appointments.c.scheduled_end <= filters.end_date)

        # Count total
        count_stmt = select(func.count()).select_from(appointments).where(*conditions)
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        # Get paginated results
        offset = (filters.page - 1) * filters.page_size

        stmt = (
            appointment_query()
            .where(*conditions)
            .order_by(appointments.c.scheduled_start.desc())
            .limit(filters.page_size)
            .offset(offset)
        )

        result = await self.db.execute(stmt)
        items = [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

        return AppointmentListResponse(
            data=items,
            pagination=PaginationMeta(
                page=filters.page,
                page_size=filters.page_size,
                total=total,
                total_pages=math.ceil(total / filters.page_size),
            ),
        )

    async def get_upcoming_appointments(
        self,
        patient_id: UUID,
        limit: int = 10,
    ) -> list[AppointmentResponse]:
        """Get a patient's open future appointments, soonest first."""
        stmt = (
            appointment_query()
            .where(
                and_(
                    appointments.c.patient_id == patient_id,
                    appointments.c.scheduled_start >= datetime.now(UTC),
                    appointments.c.status.not_in(CLOSED_STATUSES),
                )
            )
            .order_by(appointments.c.scheduled_start.asc())
            .limit(limit)
        )

        result = await self.db.execute(stmt)
        return [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def get_appointment_history(
        self,
        patient_id: UUID,
        limit: int = 20,
    ) -> list[AppointmentResponse]:
        """Get all of a patient's appointments, most recent first."""
        stmt = (
            appointment_query()
            .where(appointments.c.patient_id == patient_id)
            .order_by(appointments.c.scheduled_start.desc())
            .limit(limit)
        )

        result = await self.db.execute(stmt)
        return [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_appointment(self, data: AppointmentCreate) -> AppointmentResponse:
        """
        Create a new appointment without checking slot capacity.

        Callers are expected to have consulted slot availability first; two
        concurrent creates against the last free place will both succeed.

        Args:
            data: Appointment creation data

        Returns:
            Created appointment
        """
        appointment_id = await self._insert_appointment(data)
        await self.db.commit()

        return await self.get_appointment(appointment_id)

    async def book_appointment(self, data: AppointmentCreate) -> AppointmentResponse:
        """
        Create an appointment only if its slot still has room.

        The slot row is locked for the rest of the transaction, so concurrent
        bookings against the same slot are serialized by the store.

        Args:
            data: Appointment creation data

        Returns:
            Created appointment

        Raises:
            NotFoundException: If the slot does not exist
            CapacityExceededException: If the slot is blocked or full
        """
        result = await self.db.execute(
            select(time_slots.c.id, time_slots.c.capacity, time_slots.c.is_available)
            .where(time_slots.c.id == data.time_slot_id)
            .with_for_update()
        )
        slot = result.fetchone()

        if not slot:
            await self.db.rollback()
            raise NotFoundException("Time slot not found")

        count = await booked_count(self.db, slot.id)

        if not slot.is_available or count >= slot.capacity:
            await self.db.rollback()
            logger.warning(
                "capacity_exceeded",
                slot_id=str(slot.id),
                capacity=slot.capacity,
                booked_count=count,
                is_available=slot.is_available,
            )
            raise CapacityExceededException()

        appointment_id = await self._insert_appointment(data)
        await self.db.commit()

        return await self.get_appointment(appointment_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def update_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Update schedule, reason or notes of an appointment.

        Only the supplied fields change; with nothing supplied the current
        state is returned unchanged.

        Raises:
            NotFoundException: If appointment not found
            BadRequestException: If the resulting window ends before it starts
        """
        current = await self.get_appointment(appointment_id)

        update_values = data.model_dump(exclude_unset=True, exclude_none=True)

        if not update_values:
            return current

        start = update_values.get("scheduled_start", current.scheduled_start)
        end = update_values.get("scheduled_end", current.scheduled_end)
        if end <= start:
            raise BadRequestException("End time must be after start time")

        return await self._apply(appointment_id, update_values)

    async def cancel_appointment(
        self,
        appointment_id: UUID,
        reason: str | None = None,
    ) -> AppointmentResponse:
        """Cancel an appointment, releasing its slot place."""
        await self.get_appointment(appointment_id)

        return await self._apply(
            appointment_id,
            {
                "status": AppointmentStatus.CANCELLED.value,
                "cancelled_at": datetime.now(UTC),
                "cancellation_reason": reason,
            },
        )

    async def reschedule_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentReschedule,
    ) -> AppointmentResponse:
        """
        Move an appointment to a new time, and optionally a new slot.

        The destination slot's capacity is not checked; callers must confirm
        availability first. Without ``new_time_slot_id`` the appointment keeps
        its current slot.
        """
        await self.get_appointment(appointment_id)

        update_values: dict[str, Any] = {
            "scheduled_start": data.new_start,
            "scheduled_end": data.new_end,
            "status": AppointmentStatus.RESCHEDULED.value,
        }
        if data.new_time_slot_id:
            update_values["time_slot_id"] = data.new_time_slot_id

        return await self._apply(appointment_id, update_values)

    async def check_in_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        """Mark the patient as arrived."""
        await self.get_appointment(appointment_id)

        return await self._apply(
            appointment_id,
            {"status": AppointmentStatus.CHECKED_IN.value, "actual_start": datetime.now(UTC)},
        )

    async def start_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        """Mark the visit as in progress, keeping an earlier check-in time."""
        current = await self.get_appointment(appointment_id)

        return await self._apply(
            appointment_id,
            {
                "status": AppointmentStatus.IN_PROGRESS.value,
                "actual_start": current.actual_start or datetime.now(UTC),
            },
        )

    async def complete_appointment(
        self,
        appointment_id: UUID,
        provider_notes: str | None = None,
    ) -> AppointmentResponse:
        """Mark the visit as completed. The slot place stays consumed."""
        await self.get_appointment(appointment_id)

        update_values: dict[str, Any] = {
            "status": AppointmentStatus.COMPLETED.value,
            "actual_end": datetime.now(UTC),
        }
        if provider_notes is not None:
            update_values["provider_notes"] = provider_notes

        return await self._apply(appointment_id, update_values)

    async def mark_no_show(self, appointment_id: UUID) -> AppointmentResponse:
        """Mark the patient as not having attended, releasing the slot place."""
        await self.get_appointment(appointment_id)

        return await self._apply(appointment_id, {"status": AppointmentStatus.NO_SHOW.value})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _apply(self, appointment_id: UUID, values: dict[str, Any]) -> AppointmentResponse:
        """Write ``values`` to an existing appointment and return the reloaded row."""
        values["updated_at"] = datetime.now(UTC)

        await self.db.execute(
            update(appointments).where(appointments.c.id == appointment_id).values(**values)
        )
        await self.db.commit()

        if "status" in values:
            logger.info(
                "appointment_status_changed",
                appointment_id=str(appointment_id),
                status=values["status"],
            )

        return await self.get_appointment(appointment_id)

    async def _insert_appointment(self, data: AppointmentCreate) -> UUID:
        """Insert an appointment row in the current transaction."""
        appointment_id = uuid4()
        confirmation_code = await self._unique_confirmation_code()
        now = datetime.now(UTC)

        await self.db.execute(
            insert(appointments).values(
                id=appointment_id,
                confirmation_code=confirmation_code,
                patient_id=data.patient_id,
                provider_id=data.provider_id,
                department_id=data.department_id,
                time_slot_id=data.time_slot_id,
                location_id=data.location_id,
                scheduled_start=data.scheduled_start,
                scheduled_end=data.scheduled_end,
                status=AppointmentStatus.SCHEDULED.value,
                appointment_type=data.appointment_type,
                reason=data.reason,
                notes=data.notes,
                no_show_risk=data.no_show_risk.value if data.no_show_risk else None,
                created_at=now,
                updated_at=now,
            )
        )

        logger.info(
            "appointment_created",
            appointment_id=str(appointment_id),
            time_slot_id=str(data.time_slot_id),
            confirmation_code=confirmation_code,
        )

        return appointment_id

    async def _unique_confirmation_code(self) -> str:
        """
        Generate a confirmation code not yet in use.

        The unique constraint on the column still guards against a concurrent
        insert picking the same code between this check and the write.
        """
        for _ in range(settings.confirmation_code_max_attempts):
            code = generate_confirmation_code(settings.confirmation_code_length)
            result = await self.db.execute(
                select(appointments.c.id).where(appointments.c.confirmation_code == code)
            )
            if result.first() is None:
                return code

            logger.warning("confirmation_code_collision", code=code)

        raise AppException("Could not allocate a unique confirmation code")
