"""Shared test helpers."""

from datetime import UTC, datetime, timedelta


def in_days(days: int, hour: int = 9, minute: int = 0) -> datetime:
    """A UTC instant ``days`` from today at a fixed wall-clock time."""
    base = datetime.now(UTC).replace(hour=hour, minute=minute, second=0, microsecond=0)
    return base + timedelta(days=days)
