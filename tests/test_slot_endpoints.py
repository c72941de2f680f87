"""Tests for the time slots API."""

from datetime import timedelta, timezone
from uuid import uuid4

import pytest
from httpx import AsyncClient

from helpers import in_days


def _window(days: int = 7) -> dict:
    return {
        "start_date": in_days(0, hour=0).isoformat(),
        "end_date": in_days(days, hour=23).isoformat(),
    }


def _slot_payload(clinic, start, minutes: int = 30, **overrides) -> dict:
    payload = {
        "provider_id": str(clinic["provider_id"]),
        "department_id": str(clinic["department_id"]),
        "location_id": str(clinic["location_id"]),
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(minutes=minutes)).isoformat(),
        "duration": minutes,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_and_get_slot(client: AsyncClient, auth_headers, clinic) -> None:
    response = await client.post(
        "/api/v1/slots/", json=_slot_payload(clinic, in_days(1), capacity=2), headers=auth_headers
    )

    assert response.status_code == 201
    created = response.json()
    assert created["capacity"] == 2
    assert created["booked_count"] == 0
    assert created["available_capacity"] == 2

    fetched = await client.get(f"/api/v1/slots/{created['id']}", headers=auth_headers)
    assert fetched.status_code == 200
    assert fetched.json()["provider_last_name"] == "Hopper"


@pytest.mark.asyncio
async def test_create_slot_unknown_provider(client: AsyncClient, auth_headers, clinic) -> None:
    response = await client.post(
        "/api/v1/slots/",
        json=_slot_payload(clinic, in_days(1), provider_id=str(uuid4())),
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_slot_zero_capacity_rejected(
    client: AsyncClient, auth_headers, clinic
) -> None:
    response = await client.post(
        "/api/v1/slots/", json=_slot_payload(clinic, in_days(1), capacity=0), headers=auth_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_recurring_slots(client: AsyncClient, auth_headers, clinic) -> None:
    response = await client.post(
        "/api/v1/slots/recurring",
        json={"template": _slot_payload(clinic, in_days(1)), "recurrence_count": 3},
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert len(response.json()) == 3


@pytest.mark.asyncio
async def test_search_available(
    client: AsyncClient, auth_headers, clinic, make_slot, appointment_data, db_session
) -> None:
    from app.services.appointment_service import AppointmentService

    open_slot = await make_slot(start=in_days(1, hour=9))
    full_slot = await make_slot(start=in_days(1, hour=10))
    await AppointmentService(db_session).create_appointment(appointment_data(full_slot))

    response = await client.get(
        "/api/v1/slots/available",
        params={**_window(), "department_id": str(clinic["department_id"])},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert [s["id"] for s in response.json()] == [str(open_slot.id)]


@pytest.mark.asyncio
async def test_search_requires_date_range(client: AsyncClient, auth_headers) -> None:
    response = await client.get("/api/v1/slots/available", headers=auth_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_calendar(client: AsyncClient, auth_headers, clinic, make_slot) -> None:
    await make_slot(start=in_days(1, hour=9))
    await make_slot(start=in_days(1, hour=11))
    await make_slot(start=in_days(3, hour=9))

    response = await client.get("/api/v1/slots/calendar", params=_window(), headers=auth_headers)

    assert response.status_code == 200
    calendar = response.json()
    assert len(calendar[in_days(1).date().isoformat()]) == 2
    assert len(calendar[in_days(3).date().isoformat()]) == 1


@pytest.mark.asyncio
async def test_next_available(client: AsyncClient, auth_headers, clinic, make_slot) -> None:
    slot = await make_slot(start=in_days(2))

    response = await client.get(
        "/api/v1/slots/next-available",
        params={"department_id": str(clinic["department_id"])},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["id"] == str(slot.id)

    none_found = await client.get(
        "/api/v1/slots/next-available",
        params={"department_id": str(uuid4())},
        headers=auth_headers,
    )
    assert none_found.status_code == 200
    assert none_found.json() is None


@pytest.mark.asyncio
async def test_provider_schedule(client: AsyncClient, auth_headers, clinic, make_slot) -> None:
    await make_slot(start=in_days(1))
    await make_slot(start=in_days(2))

    response = await client.get(
        f"/api/v1/slots/provider/{clinic['provider_id']}/schedule",
        params=_window(),
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert len(response.json()) == 2


@pytest.mark.asyncio
async def test_provider_schedule_offset_bounds(
    client: AsyncClient, auth_headers, clinic, make_slot
) -> None:
    slot = await make_slot(start=in_days(1, hour=9))
    await make_slot(start=in_days(1, hour=10))
    plus_five = timezone(timedelta(hours=5))

    response = await client.get(
        f"/api/v1/slots/provider/{clinic['provider_id']}/schedule",
        params={
            "start_date": slot.start_time.astimezone(plus_five).isoformat(),
            "end_date": slot.end_time.astimezone(plus_five).isoformat(),
        },
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert [s["id"] for s in response.json()] == [str(slot.id)]


@pytest.mark.asyncio
async def test_update_block_and_delete(client: AsyncClient, auth_headers, make_slot) -> None:
    slot = await make_slot()
    base = f"/api/v1/slots/{slot.id}"

    updated = await client.put(base, json={"capacity": 4}, headers=auth_headers)
    assert updated.status_code == 200
    assert updated.json()["capacity"] == 4

    blocked = await client.post(f"{base}/block", json={"is_blocked": True}, headers=auth_headers)
    assert blocked.json()["is_available"] is False
    assert blocked.json()["capacity"] == 4

    deleted = await client.delete(base, headers=auth_headers)
    assert deleted.status_code == 200
    assert deleted.json() == {"success": True}

    missing = await client.get(base, headers=auth_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_delete_booked_slot_conflicts(
    client: AsyncClient, auth_headers, make_slot, appointment_data, db_session
) -> None:
    from app.services.appointment_service import AppointmentService

    slot = await make_slot()
    await AppointmentService(db_session).create_appointment(appointment_data(slot))

    response = await client.delete(f"/api/v1/slots/{slot.id}", headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["message"] == "Cannot delete time slot with active appointments"
