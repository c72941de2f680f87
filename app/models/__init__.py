"""Database models."""

from app.models.appointments import appointments
from app.models.base import metadata
from app.models.departments import departments
from app.models.locations import locations
from app.models.patients import patients
from app.models.providers import providers
from app.models.time_slots import time_slots
from app.models.waitlist_entries import waitlist_entries

__all__ = [
    "appointments",
    "departments",
    "locations",
    "metadata",
    "patients",
    "providers",
    "time_slots",
    "waitlist_entries",
]
