"""Free slot computation for a provider's day."""

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta
from uuid import UUID

import structlog
from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.redis_client import CacheManager
from app.models.appointments import INACTIVE_STATUSES, appointments
from app.schemas.scheduling import AvailableSlots

logger = structlog.get_logger()

# One-hour slots starting 09:00, the last one at 16:00
SLOT_TEMPLATE: tuple[time, ...] = tuple(time(hour, 0) for hour in range(9, 17))

FAIL_OPEN_WARNING = "Availability could not be verified; all slots are shown."


def free_slots(booked: Iterable[time]) -> list[time]:
    """Template slots not taken by ``booked``, in template order."""
    taken = {slot.replace(second=0, microsecond=0) for slot in booked}
    return [slot for slot in SLOT_TEMPLATE if slot not in taken]


def retain_selected_time(selected: time | None, slots: Iterable[time]) -> time | None:
    """Keep a previously picked time only while it is still offered."""
    if selected is None:
        return None
    return selected if selected in set(slots) else None


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Local midnight to next midnight, start inclusive and end exclusive."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class AvailabilityService:
    """Service computing which template slots a provider has free."""

    def __init__(
        self,
        db: AsyncSession,
        cache: CacheManager | None = None,
        cache_ttl: int | None = None,
    ):
        """Initialize service with database session and optional slot cache."""
        self.db = db
        self.cache = cache
        self.cache_ttl = settings.availability_cache_ttl if cache_ttl is None else cache_ttl

    @staticmethod
    def cache_key(provider_id: UUID, day: date) -> str:
        """Generate cache key for a provider's day."""
        return f"availability:{provider_id}:{day.isoformat()}"

    async def booked_times(self, provider_id: UUID, day: date) -> list[time]:
        """
        Times already held by live appointments on ``day``.

        Raises:
            SQLAlchemyError: If the appointment store cannot be read
        """
        start, end = day_bounds(day)
        stmt = (
            select(appointments.c.appointment_date)
            .where(
                and_(
                    appointments.c.provider_id == provider_id,
                    appointments.c.appointment_date >= start,
                    appointments.c.appointment_date < end,
                    appointments.c.status.notin_(INACTIVE_STATUSES),
                )
            )
            .order_by(appointments.c.appointment_date.asc())
        )

        result = await self.db.execute(stmt)
        return [row.appointment_date.time() for row in result.fetchall()]

    async def get_available_slots(self, provider_id: UUID, day: date) -> AvailableSlots:
        """
        Compute free slots for a provider on a date.

        Storage failures fail open: the full template is returned flagged as
        degraded and the failure is logged, so booking is never blocked
        outright. The booking re-check still guards the insert.

        Args:
            provider_id: Provider to inspect
            day: Calendar day

        Returns:
            Free slots in template order
        """
        cached = self._cached_slots(provider_id, day)
        if cached is not None:
            return AvailableSlots(provider_id=provider_id, date=day, slots=cached)

        try:
            booked = await self.booked_times(provider_id, day)
        except SQLAlchemyError as e:
            logger.warning(
                "availability_lookup_failed",
                provider_id=str(provider_id),
                date=day.isoformat(),
                error=str(e),
            )
            await self._reset_session()
            return AvailableSlots(
                provider_id=provider_id,
                date=day,
                slots=list(SLOT_TEMPLATE),
                degraded=True,
                warning=FAIL_OPEN_WARNING,
            )

        slots = free_slots(booked)
        self._store_slots(provider_id, day, slots)
        return AvailableSlots(provider_id=provider_id, date=day, slots=slots)

    def invalidate(self, provider_id: UUID, day: date) -> None:
        """Drop the cached slots after the provider's day changed."""
        if self.cache:
            self.cache.delete(self.cache_key(provider_id, day))

    def _cached_slots(self, provider_id: UUID, day: date) -> list[time] | None:
        if not self.cache or self.cache_ttl <= 0:
            return None

        cached = self.cache.get_json(self.cache_key(provider_id, day))
        if cached is None:
            return None

        try:
            return [time.fromisoformat(value) for value in cached]
        except (TypeError, ValueError):
            return None

    def _store_slots(self, provider_id: UUID, day: date, slots: list[time]) -> None:
        if not self.cache or self.cache_ttl <= 0:
            return

        self.cache.set_json(
            self.cache_key(provider_id, day),
            [slot.strftime("%H:%M") for slot in slots],
            ttl=self.cache_ttl,
        )

    async def _reset_session(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning("session_rollback_failed", error=str(e))
