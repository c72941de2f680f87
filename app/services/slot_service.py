"""Time slot service: availability search, calendar and slot management."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import Select, and_, delete, insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException, ConflictException, NotFoundException
from app.models.appointments import appointments
from app.models.departments import departments
from app.models.locations import locations
from app.models.providers import providers
from app.models.time_slots import time_slots
from app.schemas.common import as_utc
from app.schemas.time_slots import (
    RecurringSlotsCreate,
    SlotSearchFilters,
    TimeSlotCreate,
    TimeSlotResponse,
    TimeSlotUpdate,
)
from app.services.calendar import group_slots_by_day
from app.services.capacity import (
    available_capacity,
    booked_count,
    booked_count_subquery,
    has_capacity_condition,
)

logger = structlog.get_logger()


def slot_query() -> Select[Any]:
    """Select time slots with their live booked count and display fields."""
    return select(
        time_slots,
        booked_count_subquery().label("booked_count"),
        providers.c.first_name.label("provider_first_name"),
        providers.c.last_name.label("provider_last_name"),
        providers.c.title.label("provider_title"),
        departments.c.name.label("department_name"),
        departments.c.code.label("department_code"),
        locations.c.name.label("location_name"),
        locations.c.building.label("location_building"),
        locations.c.floor.label("location_floor"),
        locations.c.room.label("location_room"),
    ).select_from(
        time_slots.outerjoin(providers, time_slots.c.provider_id == providers.c.id)
        .outerjoin(departments, time_slots.c.department_id == departments.c.id)
        .outerjoin(locations, time_slots.c.location_id == locations.c.id)
    )


def to_slot_response(row: Row[Any]) -> TimeSlotResponse:
    """Build a slot response, attaching the derived available capacity."""
    data = dict(row._mapping)
    data["booked_count"] = data["booked_count"] or 0
    data["available_capacity"] = available_capacity(data)
    return TimeSlotResponse.model_validate(data)


class SlotService:
    """Service for time slot inventory and availability."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def search_available_slots(self, filters: SlotSearchFilters) -> list[TimeSlotResponse]:
        """
        Search time slots in a date range.

        When ``filters.is_available`` is True only unblocked slots with free
        capacity are returned. When it is None every slot in range is returned,
        full or blocked, which is what calendar views need.

        Args:
            filters: Date bounds plus optional department/provider/location

        Returns:
            Slots ordered by start time
        """
        conditions = [
            time_slots.c.start_time >= filters.start_date,
            time_slots.c.end_time <= filters.end_date,
        ]

        if filters.department_id:
            conditions.append(time_slots.c.department_id == filters.department_id)

        if filters.provider_id:
            conditions.append(time_slots.c.provider_id == filters.provider_id)

        if filters.location_id:
            conditions.append(time_slots.c.location_id == filters.location_id)

        if filters.is_available is not None:
            conditions.append(time_slots.c.is_available == filters.is_available)

        if filters.is_available:
            conditions.append(has_capacity_condition())

        stmt = slot_query().where(and_(*conditions)).order_by(time_slots.c.start_time.asc())

        result = await self.db.execute(stmt)
        return [to_slot_response(row) for row in result.fetchall()]

    async def get_calendar_view(self, filters: SlotSearchFilters) -> dict[str, list[TimeSlotResponse]]:
        """
        Get every slot in range, booked or not, grouped by day.

        Args:
            filters: Search filters; the availability flag is ignored

        Returns:
            Mapping of ``YYYY-MM-DD`` to that day's slots
        """
        slots = await self.search_available_slots(filters.model_copy(update={"is_available": None}))
        return group_slots_by_day(slots)

    async def get_time_slot(self, slot_id: UUID) -> TimeSlotResponse:
        """
        Get time slot by ID.

        Raises:
            NotFoundException: If the slot does not exist
        """
        result = await self.db.execute(slot_query().where(time_slots.c.id == slot_id))
        row = result.fetchone()

        if not row:
            raise NotFoundException("Time slot not found")

        return to_slot_response(row)

    async def create_time_slot(self, data: TimeSlotCreate) -> TimeSlotResponse:
        """
        Create a new time slot.

        Args:
            data: Slot creation data

        Returns:
            Created slot
        """
        slot_id = await self._insert_slot(data)
        await self.db.commit()

        logger.info("time_slot_created", slot_id=str(slot_id), provider_id=str(data.provider_id))

        return await self.get_time_slot(slot_id)

    async def create_recurring_slots(self, data: RecurringSlotsCreate) -> list[TimeSlotResponse]:
        """
        Create a series of independent slots from one template.

        Occurrence ``i`` starts ``i * interval_days`` after the template.

        Args:
            data: Template, number of occurrences and spacing

        Returns:
            Created slots in chronological order
        """
        step = timedelta(days=data.interval_days)
        slot_ids = []

        for i in range(data.recurrence_count):
            occurrence = data.template.model_copy(
                update={
                    "start_time": data.template.start_time + step * i,
                    "end_time": data.template.end_time + step * i,
                    "is_recurring": True,
                }
            )
            slot_ids.append(await self._insert_slot(occurrence))

        await self.db.commit()

        logger.info(
            "recurring_time_slots_created",
            provider_id=str(data.template.provider_id),
            count=len(slot_ids),
        )

        return [await self.get_time_slot(slot_id) for slot_id in slot_ids]

    async def update_time_slot(self, slot_id: UUID, data: TimeSlotUpdate) -> TimeSlotResponse:
        """
        Update a time slot's window, duration or capacity.

        Raises:
            NotFoundException: If the slot does not exist
            BadRequestException: If the resulting window ends before it starts
            ConflictException: If capacity would drop below current bookings
        """
        current = await self.get_time_slot(slot_id)

        update_values: dict[str, Any] = data.model_dump(exclude_unset=True, exclude_none=True)

        if not update_values:
            return current

        start = update_values.get("start_time", current.start_time)
        end = update_values.get("end_time", current.end_time)
        if end <= start:
            raise BadRequestException("End time must be after start time")

        capacity = update_values.get("capacity")
        if capacity is not None and capacity < current.booked_count:
            raise ConflictException(
                f"Capacity {capacity} is below the {current.booked_count} active appointments"
            )

        update_values["updated_at"] = datetime.now(UTC)

        await self.db.execute(
            update(time_slots).where(time_slots.c.id == slot_id).values(**update_values)
        )
        await self.db.commit()

        return await self.get_time_slot(slot_id)

    async def block_time_slot(self, slot_id: UUID, is_blocked: bool) -> TimeSlotResponse:
        """
        Block or unblock a slot. Capacity and bookings are left untouched.

        Raises:
            NotFoundException: If the slot does not exist
        """
        await self.get_time_slot(slot_id)

        await self.db.execute(
            update(time_slots)
            .where(time_slots.c.id == slot_id)
            .values(is_available=not is_blocked, updated_at=datetime.now(UTC))
        )
        await self.db.commit()

        logger.info("time_slot_block_changed", slot_id=str(slot_id), is_blocked=is_blocked)

        return await self.get_time_slot(slot_id)

    async def delete_time_slot(self, slot_id: UUID) -> None:
        """
        Delete a slot that no active appointment holds.

        Raises:
            NotFoundException: If the slot does not exist
            ConflictException: If the slot still has active appointments
        """
        await self.get_time_slot(slot_id)

        count = await booked_count(self.db, slot_id)
        if count > 0:
            raise ConflictException("Cannot delete time slot with active appointments")

        # Cancelled and no-show history stays, detached from the slot
        await self.db.execute(
            update(appointments)
            .where(appointments.c.time_slot_id == slot_id)
            .values(time_slot_id=None)
        )
        await self.db.execute(delete(time_slots).where(time_slots.c.id == slot_id))
        await self.db.commit()

        logger.info("time_slot_deleted", slot_id=str(slot_id))

    async def get_provider_schedule(
        self,
        provider_id: UUID,
        start_date: datetime,
        end_date: datetime,
    ) -> list[TimeSlotResponse]:
        """Get all of a provider's slots in a date range, full or not."""
        start_date, end_date = as_utc(start_date), as_utc(end_date)

        stmt = (
            slot_query()
            .where(
                and_(
                    time_slots.c.provider_id == provider_id,
                    time_slots.c.start_time >= start_date,
                    time_slots.c.end_time <= end_date,
                )
            )
            .order_by(time_slots.c.start_time.asc())
        )

        result = await self.db.execute(stmt)
        return [to_slot_response(row) for row in result.fetchall()]

    async def get_next_available_slot(
        self,
        department_id: UUID,
        provider_id: UUID | None = None,
    ) -> TimeSlotResponse | None:
        """
        Get the earliest future slot that can still be booked.

        Args:
            department_id: Department to search
            provider_id: Optional provider constraint

        Returns:
            The slot, or None when nothing is offerable
        """
        conditions = [
            time_slots.c.start_time > datetime.now(UTC),
            time_slots.c.is_available.is_(True),
            time_slots.c.department_id == department_id,
            has_capacity_condition(),
        ]

        if provider_id:
            conditions.append(time_slots.c.provider_id == provider_id)

        stmt = slot_query().where(and_(*conditions)).order_by(time_slots.c.start_time.asc()).limit(1)

        result = await self.db.execute(stmt)
        row = result.fetchone()

        return to_slot_response(row) if row else None

    async def _insert_slot(self, data: TimeSlotCreate) -> UUID:
        """Insert one slot row without committing."""
        slot_id = uuid4()
        now = datetime.now(UTC)

        await self.db.execute(
            insert(time_slots).values(
                id=slot_id,
                provider_id=data.provider_id,
                department_id=data.department_id,
                location_id=data.location_id,
                start_time=data.start_time,
                end_time=data.end_time,
                duration=data.duration,
                capacity=data.capacity,
                is_available=True,
                is_recurring=data.is_recurring,
                recurring_pattern=data.recurring_pattern,
                created_at=now,
                updated_at=now,
            )
        )

        return slot_id
