"""Tests for the waitlist API."""

from uuid import uuid4

import pytest
from httpx import AsyncClient

from helpers import in_days


def _payload(clinic, **overrides) -> dict:
    payload = {
        "patient_id": str(clinic["patient_id"]),
        "department_id": str(clinic["department_id"]),
        "priority": "medium",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_and_get_entry(client: AsyncClient, auth_headers, clinic) -> None:
    response = await client.post(
        "/api/v1/waitlist/",
        json=_payload(clinic, priority="urgent", preferred_time_of_day=["morning"]),
        headers=auth_headers,
    )

    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "active"
    assert created["priority"] == "urgent"
    assert created["preferred_time_of_day"] == ["morning"]

    fetched = await client.get(f"/api/v1/waitlist/{created['id']}", headers=auth_headers)
    assert fetched.status_code == 200
    assert fetched.json()["id"] == created["id"]


@pytest.mark.asyncio
async def test_create_entry_invalid_priority(client: AsyncClient, auth_headers, clinic) -> None:
    response = await client.post(
        "/api/v1/waitlist/", json=_payload(clinic, priority="asap"), headers=auth_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_entry_unknown_patient(client: AsyncClient, auth_headers, clinic) -> None:
    response = await client.post(
        "/api/v1/waitlist/", json=_payload(clinic, patient_id=str(uuid4())), headers=auth_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_entries_in_priority_order(client: AsyncClient, auth_headers, clinic) -> None:
    for priority in ("low", "urgent", "medium"):
        await client.post(
            "/api/v1/waitlist/", json=_payload(clinic, priority=priority), headers=auth_headers
        )

    response = await client.get("/api/v1/waitlist/", headers=auth_headers)

    assert response.status_code == 200
    assert [e["priority"] for e in response.json()] == ["urgent", "medium", "low"]

    filtered = await client.get(
        "/api/v1/waitlist/", params={"priority": "low"}, headers=auth_headers
    )
    assert [e["priority"] for e in filtered.json()] == ["low"]


@pytest.mark.asyncio
async def test_missing_entry(client: AsyncClient, auth_headers) -> None:
    response = await client.get(f"/api/v1/waitlist/{uuid4()}", headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Waitlist entry not found"


@pytest.mark.asyncio
async def test_entry_lifecycle(client: AsyncClient, auth_headers, clinic) -> None:
    created = (
        await client.post("/api/v1/waitlist/", json=_payload(clinic), headers=auth_headers)
    ).json()
    base = f"/api/v1/waitlist/{created['id']}"

    updated = await client.put(base, json={"priority": "high"}, headers=auth_headers)
    assert updated.json()["priority"] == "high"

    contacted = await client.post(f"{base}/contacted", headers=auth_headers)
    assert contacted.json()["status"] == "contacted"
    assert contacted.json()["notifications_sent"] == 1

    patient_entries = await client.get(
        f"/api/v1/waitlist/patient/{clinic['patient_id']}", headers=auth_headers
    )
    assert [e["id"] for e in patient_entries.json()] == [created["id"]]

    cancelled = await client.post(f"{base}/cancel", headers=auth_headers)
    assert cancelled.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_match_book_and_convert(
    client: AsyncClient, auth_headers, clinic, make_slot
) -> None:
    """A waitlisted patient is matched to a slot, booked, and the entry converted."""
    slot = await make_slot(start=in_days(2, hour=15))
    entry = (
        await client.post(
            "/api/v1/waitlist/",
            json=_payload(clinic, preferred_time_of_day=["afternoon"]),
            headers=auth_headers,
        )
    ).json()

    matches = await client.get(
        f"/api/v1/waitlist/{entry['id']}/matching-slots",
        params={"respectPreferences": "true"},
        headers=auth_headers,
    )
    assert matches.status_code == 200
    assert [s["id"] for s in matches.json()] == [str(slot.id)]

    booked = await client.post(
        "/api/v1/appointments/",
        json={
            "patient_id": entry["patient_id"],
            "provider_id": str(slot.provider_id),
            "department_id": entry["department_id"],
            "time_slot_id": str(slot.id),
            "location_id": str(slot.location_id),
            "scheduled_start": slot.start_time.isoformat(),
            "scheduled_end": slot.end_time.isoformat(),
            "appointment_type": "follow_up",
        },
        headers=auth_headers,
    )
    assert booked.status_code == 201

    converted = await client.post(
        f"/api/v1/waitlist/{entry['id']}/convert",
        json={"appointment_id": booked.json()["id"]},
        headers=auth_headers,
    )
    assert converted.status_code == 200
    assert converted.json()["status"] == "converted"
    assert converted.json()["converted_to_appointment_id"] == booked.json()["id"]

    # The slot is now full, so nothing else matches
    rematch = await client.get(
        f"/api/v1/waitlist/{entry['id']}/matching-slots", headers=auth_headers
    )
    assert rematch.json() == []


@pytest.mark.asyncio
async def test_matching_slots_limit(client: AsyncClient, auth_headers, clinic, make_slot) -> None:
    for day in (1, 2, 3):
        await make_slot(start=in_days(day))
    entry = (
        await client.post("/api/v1/waitlist/", json=_payload(clinic), headers=auth_headers)
    ).json()

    response = await client.get(
        f"/api/v1/waitlist/{entry['id']}/matching-slots",
        params={"limit": 2},
        headers=auth_headers,
    )
    assert len(response.json()) == 2


@pytest.mark.asyncio
async def test_stats_and_expire(client: AsyncClient, auth_headers, clinic) -> None:
    await client.post("/api/v1/waitlist/", json=_payload(clinic), headers=auth_headers)

    stats = await client.get("/api/v1/waitlist/stats", headers=auth_headers)
    assert stats.status_code == 200
    assert stats.json()["total_entries"] == 1
    assert stats.json()["active_entries"] == 1

    expired = await client.post("/api/v1/waitlist/expire", headers=auth_headers)
    assert expired.status_code == 200
    assert expired.json() == {"expired_count": 0}
