"""Tests for the waitlist service."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import update

from app.core.exceptions import NotFoundException
from app.models.waitlist_entries import waitlist_entries
from app.schemas.waitlist import (
    TimeOfDay,
    WaitlistEntryCreate,
    WaitlistEntryUpdate,
    WaitlistFilters,
    WaitlistPriority,
    WaitlistStatus,
)
from app.services.appointment_service import AppointmentService
from app.services.slot_service import SlotService
from app.services.waitlist_service import WaitlistService, matches_preferences, time_of_day
from helpers import in_days


def _entry(clinic, priority=WaitlistPriority.MEDIUM, **overrides) -> WaitlistEntryCreate:
    data = {
        "patient_id": clinic["patient_id"],
        "department_id": clinic["department_id"],
        "priority": priority,
    }
    data.update(overrides)
    return WaitlistEntryCreate(**data)


async def _set_requested_date(db_session, entry_id, when: datetime) -> None:
    await db_session.execute(
        update(waitlist_entries).where(waitlist_entries.c.id == entry_id).values(requested_date=when)
    )
    await db_session.commit()


@pytest.mark.parametrize(
    ("hour", "bucket"),
    [
        (0, TimeOfDay.MORNING),
        (11, TimeOfDay.MORNING),
        (12, TimeOfDay.AFTERNOON),
        (16, TimeOfDay.AFTERNOON),
        (17, TimeOfDay.EVENING),
        (23, TimeOfDay.EVENING),
    ],
)
def test_time_of_day(hour, bucket):
    assert time_of_day(datetime(2026, 3, 2, hour, 30, tzinfo=UTC)) == bucket


@pytest.mark.asyncio
async def test_create_waitlist_entry(db_session, clinic):
    entry = await WaitlistService(db_session).create_waitlist_entry(
        _entry(
            clinic,
            WaitlistPriority.HIGH,
            preferred_dates=[in_days(3).date()],
            preferred_time_of_day=[TimeOfDay.MORNING],
            medical_urgency="Worsening angina",
        )
    )

    assert entry.status == WaitlistStatus.ACTIVE
    assert entry.priority == WaitlistPriority.HIGH
    assert entry.notifications_sent == 0
    assert entry.preferred_dates == [in_days(3).date()]
    assert entry.preferred_time_of_day == [TimeOfDay.MORNING]
    assert entry.expires_at - entry.requested_date == timedelta(days=30)
    assert entry.patient_first_name == "Alan"
    assert entry.department_name == "Cardiology"


@pytest.mark.asyncio
async def test_entries_ordered_by_priority_then_age(db_session, clinic):
    service = WaitlistService(db_session)
    low = await service.create_waitlist_entry(_entry(clinic, WaitlistPriority.LOW))
    newer_medium = await service.create_waitlist_entry(_entry(clinic, WaitlistPriority.MEDIUM))
    older_medium = await service.create_waitlist_entry(_entry(clinic, WaitlistPriority.MEDIUM))
    urgent = await service.create_waitlist_entry(_entry(clinic, WaitlistPriority.URGENT))
    high = await service.create_waitlist_entry(_entry(clinic, WaitlistPriority.HIGH))

    now = datetime.now(UTC)
    await _set_requested_date(db_session, newer_medium.id, now - timedelta(days=1))
    await _set_requested_date(db_session, older_medium.id, now - timedelta(days=5))

    entries = await service.get_waitlist_entries(WaitlistFilters())

    assert [e.id for e in entries] == [urgent.id, high.id, older_medium.id, newer_medium.id, low.id]


@pytest.mark.asyncio
async def test_filter_entries(db_session, clinic):
    service = WaitlistService(db_session)
    urgent = await service.create_waitlist_entry(_entry(clinic, WaitlistPriority.URGENT))
    low = await service.create_waitlist_entry(_entry(clinic, WaitlistPriority.LOW))
    await service.cancel_waitlist_entry(low.id)

    by_priority = await service.get_waitlist_entries(
        WaitlistFilters(priority=WaitlistPriority.URGENT)
    )
    assert [e.id for e in by_priority] == [urgent.id]

    by_status = await service.get_waitlist_entries(
        WaitlistFilters(status=WaitlistStatus.CANCELLED)
    )
    assert [e.id for e in by_status] == [low.id]

    other_department = await service.get_waitlist_entries(
        WaitlistFilters(department_id=uuid4())
    )
    assert other_department == []


@pytest.mark.asyncio
async def test_patient_entries_only_open(db_session, clinic):
    service = WaitlistService(db_session)
    active = await service.create_waitlist_entry(_entry(clinic))
    cancelled = await service.create_waitlist_entry(_entry(clinic))
    await service.cancel_waitlist_entry(cancelled.id)

    entries = await service.get_patient_waitlist_entries(clinic["patient_id"])

    assert [e.id for e in entries] == [active.id]


@pytest.mark.asyncio
async def test_get_missing_entry(db_session):
    with pytest.raises(NotFoundException):
        await WaitlistService(db_session).get_waitlist_entry(uuid4())


@pytest.mark.asyncio
async def test_update_waitlist_entry(db_session, clinic):
    service = WaitlistService(db_session)
    entry = await service.create_waitlist_entry(_entry(clinic))

    updated = await service.update_waitlist_entry(
        entry.id,
        WaitlistEntryUpdate(
            priority=WaitlistPriority.URGENT,
            preferred_time_of_day=[TimeOfDay.EVENING],
        ),
    )

    assert updated.priority == WaitlistPriority.URGENT
    assert updated.preferred_time_of_day == [TimeOfDay.EVENING]
    assert updated.status == WaitlistStatus.ACTIVE


@pytest.mark.asyncio
async def test_mark_as_contacted_counts_notifications(db_session, clinic):
    service = WaitlistService(db_session)
    entry = await service.create_waitlist_entry(_entry(clinic))

    await service.mark_as_contacted(entry.id)
    contacted = await service.mark_as_contacted(entry.id)

    assert contacted.status == WaitlistStatus.CONTACTED
    assert contacted.notifications_sent == 2
    assert contacted.last_notification_sent is not None


@pytest.mark.asyncio
async def test_convert_to_appointment(db_session, clinic, make_slot, appointment_data):
    service = WaitlistService(db_session)
    entry = await service.create_waitlist_entry(_entry(clinic))
    slot = await make_slot()
    appointment = await AppointmentService(db_session).book_appointment(appointment_data(slot))

    converted = await service.convert_to_appointment(entry.id, appointment.id)

    assert converted.status == WaitlistStatus.CONVERTED
    assert converted.converted_to_appointment_id == appointment.id
    assert await service.get_patient_waitlist_entries(clinic["patient_id"]) == []


@pytest.mark.asyncio
async def test_lifecycle_on_missing_entry(db_session):
    service = WaitlistService(db_session)

    with pytest.raises(NotFoundException):
        await service.cancel_waitlist_entry(uuid4())
    with pytest.raises(NotFoundException):
        await service.mark_as_contacted(uuid4())
    with pytest.raises(NotFoundException):
        await service.convert_to_appointment(uuid4(), uuid4())
    with pytest.raises(NotFoundException):
        await service.find_matching_slots(uuid4())


@pytest.mark.asyncio
async def test_find_matching_slots(db_session, clinic, make_slot, appointment_data):
    """Only future, open slots with free capacity in the entry's department match."""
    service = WaitlistService(db_session)
    entry = await service.create_waitlist_entry(_entry(clinic))

    await make_slot(start=in_days(-1))  # past
    full = await make_slot(start=in_days(1, hour=9))
    blocked = await make_slot(start=in_days(1, hour=10))
    first_open = await make_slot(start=in_days(2, hour=9))
    second_open = await make_slot(start=in_days(3, hour=9), capacity=2)

    await AppointmentService(db_session).create_appointment(appointment_data(full))
    await SlotService(db_session).block_time_slot(blocked.id, True)

    matches = await service.find_matching_slots(entry.id)
    assert [s.id for s in matches] == [first_open.id, second_open.id]

    limited = await service.find_matching_slots(entry.id, limit=1)
    assert [s.id for s in limited] == [first_open.id]


@pytest.mark.asyncio
async def test_find_matching_slots_respects_provider(db_session, clinic, make_slot):
    service = WaitlistService(db_session)
    entry = await service.create_waitlist_entry(_entry(clinic, provider_id=clinic["provider_id"]))
    slot = await make_slot()

    assert [s.id for s in await service.find_matching_slots(entry.id)] == [slot.id]


@pytest.mark.asyncio
async def test_preferences_ignored_unless_requested(db_session, clinic, make_slot):
    service = WaitlistService(db_session)
    entry = await service.create_waitlist_entry(
        _entry(
            clinic,
            preferred_dates=[in_days(2).date()],
            preferred_time_of_day=[TimeOfDay.AFTERNOON],
        )
    )
    morning_day_two = await make_slot(start=in_days(2, hour=9))
    afternoon_day_one = await make_slot(start=in_days(1, hour=14))
    afternoon_day_two = await make_slot(start=in_days(2, hour=14))

    all_matches = await service.find_matching_slots(entry.id)
    assert [s.id for s in all_matches] == [
        afternoon_day_one.id,
        morning_day_two.id,
        afternoon_day_two.id,
    ]

    preferred = await service.find_matching_slots(entry.id, respect_preferences=True)
    assert [s.id for s in preferred] == [afternoon_day_two.id]


@pytest.mark.asyncio
async def test_matches_preferences_without_preferences(db_session, clinic, make_slot):
    entry = await WaitlistService(db_session).create_waitlist_entry(_entry(clinic))
    slot = await make_slot()

    assert matches_preferences(slot, entry) is True


@pytest.mark.asyncio
async def test_expire_old_entries(db_session, clinic):
    service = WaitlistService(db_session)
    overdue = await service.create_waitlist_entry(_entry(clinic))
    contacted_overdue = await service.create_waitlist_entry(_entry(clinic))
    fresh = await service.create_waitlist_entry(_entry(clinic))
    cancelled_overdue = await service.create_waitlist_entry(_entry(clinic))
    await service.mark_as_contacted(contacted_overdue.id)
    await service.cancel_waitlist_entry(cancelled_overdue.id)

    past = datetime.now(UTC) - timedelta(days=1)
    await db_session.execute(
        update(waitlist_entries)
        .where(
            waitlist_entries.c.id.in_([overdue.id, contacted_overdue.id, cancelled_overdue.id])
        )
        .values(expires_at=past)
    )
    await db_session.commit()

    result = await service.expire_old_entries()

    assert result.expired_count == 2
    assert (await service.get_waitlist_entry(overdue.id)).status == WaitlistStatus.EXPIRED
    assert (await service.get_waitlist_entry(contacted_overdue.id)).status == WaitlistStatus.EXPIRED
    assert (await service.get_waitlist_entry(fresh.id)).status == WaitlistStatus.ACTIVE
    assert (await service.get_waitlist_entry(cancelled_overdue.id)).status == WaitlistStatus.CANCELLED

    again = await service.expire_old_entries()
    assert again.expired_count == 0


@pytest.mark.asyncio
async def test_waitlist_stats(db_session, clinic, make_slot, appointment_data):
    service = WaitlistService(db_session)
    await service.create_waitlist_entry(_entry(clinic, WaitlistPriority.URGENT))
    contacted = await service.create_waitlist_entry(_entry(clinic, WaitlistPriority.HIGH))
    converted = await service.create_waitlist_entry(_entry(clinic, WaitlistPriority.LOW))
    await service.mark_as_contacted(contacted.id)

    slot = await make_slot()
    appointment = await AppointmentService(db_session).create_appointment(appointment_data(slot))
    await service.convert_to_appointment(converted.id, appointment.id)

    stats = await service.get_waitlist_stats()

    assert stats.total_entries == 3
    assert stats.active_entries == 1
    assert stats.contacted_entries == 1
    assert stats.converted_entries == 1
    assert stats.urgent_entries == 1
    assert stats.high_priority_entries == 1
    assert stats.low_priority_entries == 1
    assert stats.medium_priority_entries == 0
    assert stats.average_wait_time_days is not None
    assert stats.average_wait_time_days >= 0


@pytest.mark.asyncio
async def test_waitlist_stats_empty_department(db_session, clinic):
    await WaitlistService(db_session).create_waitlist_entry(_entry(clinic))

    stats = await WaitlistService(db_session).get_waitlist_stats(uuid4())

    assert stats.total_entries == 0
    assert stats.average_wait_time_days is None
