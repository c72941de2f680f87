"""Waitlist service: pending demand, its lifecycle and slot matching."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import Select, and_, case, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import NotFoundException
from app.core.redis_client import CacheManager
from app.models.departments import departments
from app.models.patients import patients
from app.models.providers import providers
from app.models.time_slots import time_slots
from app.models.waitlist_entries import waitlist_entries
from app.schemas.time_slots import TimeSlotResponse
from app.schemas.waitlist import (
    TimeOfDay,
    WaitlistEntryCreate,
    WaitlistEntryResponse,
    WaitlistEntryUpdate,
    WaitlistExpiryResult,
    WaitlistFilters,
    WaitlistPriority,
    WaitlistStats,
    WaitlistStatus,
)
from app.services.capacity import has_capacity_condition
from app.services.slot_service import slot_query, to_slot_response

logger = structlog.get_logger()

# Only these statuses represent demand that can still be matched
OPEN_STATUSES = (WaitlistStatus.ACTIVE.value, WaitlistStatus.CONTACTED.value)

priority_rank = case(
    {
        WaitlistPriority.URGENT.value: 1,
        WaitlistPriority.HIGH.value: 2,
        WaitlistPriority.MEDIUM.value: 3,
        WaitlistPriority.LOW.value: 4,
    },
    value=waitlist_entries.c.priority,
)


def time_of_day(moment: datetime) -> TimeOfDay:
    """Bucket an instant into morning (<12h), afternoon (<17h) or evening."""
    if moment.hour < 12:
        return TimeOfDay.MORNING
    if moment.hour < 17:
        return TimeOfDay.AFTERNOON
    return TimeOfDay.EVENING


def matches_preferences(slot: TimeSlotResponse, entry: WaitlistEntryResponse) -> bool:
    """Check a slot against an entry's preferred dates and times of day.

    An empty preference list accepts everything.
    """
    if entry.preferred_dates and slot.start_time.date() not in entry.preferred_dates:
        return False
    if entry.preferred_time_of_day and time_of_day(slot.start_time) not in entry.preferred_time_of_day:
        return False
    return True


def waitlist_query() -> Select[Any]:
    """Select waitlist entries with joined display fields."""
    return select(
        waitlist_entries,
        patients.c.first_name.label("patient_first_name"),
        patients.c.last_name.label("patient_last_name"),
        patients.c.phone.label("patient_phone"),
        patients.c.email.label("patient_email"),
        departments.c.name.label("department_name"),
        departments.c.code.label("department_code"),
        providers.c.first_name.label("provider_first_name"),
        providers.c.last_name.label("provider_last_name"),
        providers.c.title.label("provider_title"),
    ).select_from(
        waitlist_entries.outerjoin(patients, waitlist_entries.c.patient_id == patients.c.id)
        .outerjoin(departments, waitlist_entries.c.department_id == departments.c.id)
        .outerjoin(providers, waitlist_entries.c.provider_id == providers.c.id)
    )


class WaitlistService:
    """Service for the appointment waitlist."""

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize service with database session and optional cache manager."""
        self.db = db
        self.cache = cache_manager

    @staticmethod
    def _get_stats_cache_key(department_id: UUID | None) -> str:
        """Generate cache key for waitlist statistics."""
        return f"waitlist:stats:{department_id or 'all'}"

    def _invalidate_stats(self) -> None:
        if self.cache:
            self.cache.delete_pattern("waitlist:stats:*")

    async def get_waitlist_entries(self, filters: WaitlistFilters) -> list[WaitlistEntryResponse]:
        """
        List waitlist entries, most urgent first and longest waiting first.

        Args:
            filters: Optional department/provider/status/priority filters

        Returns:
            Entries ordered by priority rank, then requested date
        """
        conditions = []

        if filters.department_id:
            conditions.append(waitlist_entries.c.department_id == filters.department_id)

        if filters.provider_id:
            conditions.append(waitlist_entries.c.provider_id == filters.provider_id)

        if filters.status:
            conditions.append(waitlist_entries.c.status == filters.status.value)

        if filters.priority:
            conditions.append(waitlist_entries.c.priority == filters.priority.value)

        stmt = (
            waitlist_query()
            .where(*conditions)
            .order_by(priority_rank, waitlist_entries.c.requested_date.asc())
        )

        result = await self.db.execute(stmt)
        return [WaitlistEntryResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def get_waitlist_entry(self, entry_id: UUID) -> WaitlistEntryResponse:
        """
        Get a waitlist entry by ID.

        Raises:
            NotFoundException: If the entry does not exist
        """
        result = await self.db.execute(waitlist_query().where(waitlist_entries.c.id == entry_id))
        row = result.fetchone()

        if not row:
            raise NotFoundException("Waitlist entry not found")

        return WaitlistEntryResponse.model_validate(dict(row._mapping))

    async def get_patient_waitlist_entries(self, patient_id: UUID) -> list[WaitlistEntryResponse]:
        """Get a patient's open entries, most urgent first."""
        stmt = (
            waitlist_query()
            .where(
                and_(
                    waitlist_entries.c.patient_id == patient_id,
                    waitlist_entries.c.status.in_(OPEN_STATUSES),
                )
            )
            .order_by(priority_rank, waitlist_entries.c.requested_date.asc())
        )

        result = await self.db.execute(stmt)
        return [WaitlistEntryResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def create_waitlist_entry(self, data: WaitlistEntryCreate) -> WaitlistEntryResponse:
        """
        Put a patient on the waitlist.

        The entry starts active and expires after the configured window
        unless converted or cancelled first.
        """
        entry_id = uuid4()
        now = datetime.now(UTC)

        await self.db.execute(
            insert(waitlist_entries).values(
                id=entry_id,
                patient_id=data.patient_id,
                department_id=data.department_id,
                provider_id=data.provider_id,
                preferred_dates=self._dates_to_json(data.preferred_dates),
                preferred_time_of_day=self._times_to_json(data.preferred_time_of_day),
                priority=data.priority.value,
                medical_urgency=data.medical_urgency,
                status=WaitlistStatus.ACTIVE.value,
                requested_date=now,
                expires_at=now + timedelta(days=settings.waitlist_expiry_days),
                notifications_sent=0,
                notes=data.notes,
                created_at=now,
                updated_at=now,
            )
        )
        await self.db.commit()
        self._invalidate_stats()

        logger.info(
            "waitlist_entry_created",
            entry_id=str(entry_id),
            department_id=str(data.department_id),
            priority=data.priority.value,
        )

        return await self.get_waitlist_entry(entry_id)

    async def update_waitlist_entry(
        self,
        entry_id: UUID,
        data: WaitlistEntryUpdate,
    ) -> WaitlistEntryResponse:
        """Update preferences, priority, urgency or notes of an entry."""
        current = await self.get_waitlist_entry(entry_id)

        update_values: dict[str, Any] = {}
        if data.preferred_dates is not None:
            update_values["preferred_dates"] = self._dates_to_json(data.preferred_dates)
        if data.preferred_time_of_day is not None:
            update_values["preferred_time_of_day"] = self._times_to_json(data.preferred_time_of_day)
        if data.priority is not None:
            update_values["priority"] = data.priority.value
        if data.medical_urgency is not None:
            update_values["medical_urgency"] = data.medical_urgency
        if data.notes is not None:
            update_values["notes"] = data.notes

        if not update_values:
            return current

        return await self._apply(entry_id, update_values)

    async def cancel_waitlist_entry(self, entry_id: UUID) -> WaitlistEntryResponse:
        """Withdraw an entry from the waitlist."""
        await self.get_waitlist_entry(entry_id)

        return await self._apply(entry_id, {"status": WaitlistStatus.CANCELLED.value})

    async def mark_as_contacted(self, entry_id: UUID) -> WaitlistEntryResponse:
        """Record that the patient was notified about an opening."""
        await self.get_waitlist_entry(entry_id)

        return await self._apply(
            entry_id,
            {
                "status": WaitlistStatus.CONTACTED.value,
                "last_notification_sent": datetime.now(UTC),
                "notifications_sent": waitlist_entries.c.notifications_sent + 1,
            },
        )

    async def convert_to_appointment(
        self,
        entry_id: UUID,
        appointment_id: UUID,
    ) -> WaitlistEntryResponse:
        """
        Close an entry as converted.

        The appointment must already exist; this only records the link.
        """
        await self.get_waitlist_entry(entry_id)

        return await self._apply(
            entry_id,
            {
                "status": WaitlistStatus.CONVERTED.value,
                "converted_to_appointment_id": appointment_id,
            },
        )

    async def find_matching_slots(
        self,
        entry_id: UUID,
        limit: int = 10,
        respect_preferences: bool = False,
    ) -> list[TimeSlotResponse]:
        """
        Find future offerable slots for a waitlist entry.

        Candidates are restricted to the entry's department and, when the
        entry names one, its provider. Preferred dates and times of day are
        ignored unless ``respect_preferences`` is set.

        Args:
            entry_id: Waitlist entry ID
            limit: Maximum number of slots to return
            respect_preferences: Also filter by the entry's preferences

        Returns:
            Slots with free capacity, soonest first

        Raises:
            NotFoundException: If the entry does not exist
        """
        entry = await self.get_waitlist_entry(entry_id)

        conditions = [
            time_slots.c.start_time > datetime.now(UTC),
            time_slots.c.is_available.is_(True),
            time_slots.c.department_id == entry.department_id,
            has_capacity_condition(),
        ]

        if entry.provider_id:
            conditions.append(time_slots.c.provider_id == entry.provider_id)

        stmt = slot_query().where(and_(*conditions)).order_by(time_slots.c.start_time.asc())

        if not respect_preferences:
            stmt = stmt.limit(limit)

        result = await self.db.execute(stmt)
        slots = [to_slot_response(row) for row in result.fetchall()]

        if respect_preferences:
            slots = [slot for slot in slots if matches_preferences(slot, entry)][:limit]

        return slots

    async def get_waitlist_stats(self, department_id: UUID | None = None) -> WaitlistStats:
        """
        Count entries by status and priority, with the average wait of
        converted entries in days.

        Args:
            department_id: Optional department scope

        Returns:
            Aggregated statistics
        """
        if self.cache:
            cached = self.cache.get_json(self._get_stats_cache_key(department_id))
            if cached:
                return WaitlistStats.model_validate(cached)

        conditions = []
        if department_id:
            conditions.append(waitlist_entries.c.department_id == department_id)

        def count_where(column: Any, value: str) -> Any:
            return func.coalesce(func.sum(case((column == value, 1), else_=0)), 0)

        status = waitlist_entries.c.status
        priority = waitlist_entries.c.priority

        stmt = select(
            func.count().label("total_entries"),
            count_where(status, WaitlistStatus.ACTIVE.value).label("active_entries"),
            count_where(status, WaitlistStatus.CONTACTED.value).label("contacted_entries"),
            count_where(status, WaitlistStatus.CONVERTED.value).label("converted_entries"),
            count_where(status, WaitlistStatus.EXPIRED.value).label("expired_entries"),
            count_where(status, WaitlistStatus.CANCELLED.value).label("cancelled_entries"),
            count_where(priority, WaitlistPriority.URGENT.value).label("urgent_entries"),
            count_where(priority, WaitlistPriority.HIGH.value).label("high_priority_entries"),
            count_where(priority, WaitlistPriority.MEDIUM.value).label("medium_priority_entries"),
            count_where(priority, WaitlistPriority.LOW.value).label("low_priority_entries"),
        ).where(*conditions)

        result = await self.db.execute(stmt)
        counts = dict(result.mappings().one())

        # Wait time is computed here rather than in SQL to stay dialect neutral
        waits_result = await self.db.execute(
            select(waitlist_entries.c.created_at, waitlist_entries.c.updated_at).where(
                waitlist_entries.c.status == WaitlistStatus.CONVERTED.value,
                *conditions,
            )
        )
        waits = [
            (row.updated_at - row.created_at).total_seconds() / 86400
            for row in waits_result.fetchall()
        ]

        stats = WaitlistStats(
            **counts,
            average_wait_time_days=sum(waits) / len(waits) if waits else None,
        )

        if self.cache:
            self.cache.set_json(
                self._get_stats_cache_key(department_id),
                stats.model_dump(mode="json"),
                ttl=settings.waitlist_stats_cache_ttl,
            )

        return stats

    async def expire_old_entries(self) -> WaitlistExpiryResult:
        """
        Expire open entries whose expiry date has passed.

        Meant to be triggered on a schedule from outside the API.

        Returns:
            Number of entries moved to expired
        """
        now = datetime.now(UTC)

        result = await self.db.execute(
            update(waitlist_entries)
            .where(
                and_(
                    waitlist_entries.c.status.in_(OPEN_STATUSES),
                    waitlist_entries.c.expires_at < now,
                )
            )
            .values(status=WaitlistStatus.EXPIRED.value, updated_at=now)
        )
        await self.db.commit()
        self._invalidate_stats()

        expired_count = result.rowcount or 0
        logger.info("waitlist_entries_expired", expired_count=expired_count)

        return WaitlistExpiryResult(expired_count=expired_count)

    async def _apply(self, entry_id: UUID, values: dict[str, Any]) -> WaitlistEntryResponse:
        """Write ``values`` to an existing entry and return the reloaded row."""
        values["updated_at"] = datetime.now(UTC)

        await self.db.execute(
            update(waitlist_entries).where(waitlist_entries.c.id == entry_id).values(**values)
        )
        await self.db.commit()
        self._invalidate_stats()

        if "status" in values:
            logger.info("waitlist_entry_status_changed", entry_id=str(entry_id), status=values["status"])

        return await self.get_waitlist_entry(entry_id)

    @staticmethod
    def _dates_to_json(dates: list | None) -> list[str] | None:
        return [d.isoformat() for d in dates] if dates is not None else None

    @staticmethod
    def _times_to_json(times: list[TimeOfDay] | None) -> list[str] | None:
        return [t.value for t in times] if times is not None else None
