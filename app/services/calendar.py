"""Calendar projection of slot search results."""

from collections.abc import Iterable

from app.schemas.time_slots import TimeSlotResponse


def group_slots_by_day(slots: Iterable[TimeSlotResponse]) -> dict[str, list[TimeSlotResponse]]:
    """
    Group slots by the calendar date of their start time.

    The key is the date portion of the stored instant (``YYYY-MM-DD``); no
    timezone conversion is applied, so callers wanting local-day buckets must
    normalize instants first. Days appear in first-seen order and slots keep
    their incoming order within a day.
    """
    calendar: dict[str, list[TimeSlotResponse]] = {}
    for slot in slots:
        calendar.setdefault(slot.start_time.date().isoformat(), []).append(slot)
    return calendar
