"""Slot capacity accounting.

A slot's booked count is the number of appointments that reference it and
still consume capacity. It is derived from live appointment rows every time a
slot is read and never stored on the slot, so it cannot drift. Every read path
that exposes availability (search, calendar, next-available, waitlist
matching, booking) builds on the expressions in this module.
"""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import ColumnElement, ScalarSelect

from app.models.appointments import appointments
from app.models.time_slots import time_slots
from app.schemas.appointments import AppointmentStatus

# Statuses that release their slot; everything else (including completed) holds it
NON_CONSUMING_STATUSES: frozenset[str] = frozenset(
    {AppointmentStatus.CANCELLED.value, AppointmentStatus.NO_SHOW.value}
)


def consumes_capacity(status: str) -> bool:
    """Return True if an appointment in ``status`` occupies its slot."""
    return status not in NON_CONSUMING_STATUSES


def booked_count_subquery() -> ScalarSelect[int]:
    """Correlated subquery counting capacity-consuming appointments per slot."""
    return (
        select(func.count())
        .select_from(appointments)
        .where(
            and_(
                appointments.c.time_slot_id == time_slots.c.id,
                appointments.c.status.not_in(NON_CONSUMING_STATUSES),
            )
        )
        .correlate(time_slots)
        .scalar_subquery()
    )


def has_capacity_condition() -> ColumnElement[bool]:
    """SQL condition true for slots with at least one free place."""
    return booked_count_subquery() < time_slots.c.capacity


async def booked_count(db: AsyncSession, slot_id: UUID) -> int:
    """
    Count appointments currently holding a slot.

    Args:
        db: Database session
        slot_id: Time slot ID

    Returns:
        Number of non-cancelled, non-no-show appointments for the slot
    """
    stmt = (
        select(func.count())
        .select_from(appointments)
        .where(
            and_(
                appointments.c.time_slot_id == slot_id,
                appointments.c.status.not_in(NON_CONSUMING_STATUSES),
            )
        )
    )
    result = await db.execute(stmt)
    return result.scalar() or 0


def available_capacity(slot: Mapping[str, Any]) -> int:
    """Capacity left on a slot row carrying ``capacity`` and ``booked_count``."""
    return int(slot["capacity"]) - int(slot["booked_count"] or 0)


def is_offerable(slot: Mapping[str, Any]) -> bool:
    """A slot can be offered when it is not blocked and has capacity left."""
    return bool(slot["is_available"]) and available_capacity(slot) > 0
