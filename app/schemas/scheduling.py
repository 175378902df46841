"""Availability and calendar schemas."""

from datetime import date, time
from uuid import UUID

from pydantic import BaseModel, field_serializer


class AvailableSlots(BaseModel):
    """Free slots for one provider on one day."""

    provider_id: UUID
    date: date
    slots: list[time]
    degraded: bool = False
    warning: str | None = None

    @field_serializer("slots")
    def serialize_slots(self, slots: list[time]) -> list[str]:
        """Render slots as HH:MM."""
        return [slot.strftime("%H:%M") for slot in slots]


class MonthRef(BaseModel):
    """A navigable calendar month (January = 1)."""

    year: int
    month: int


class EligibleDatesResponse(BaseModel):
    """Bookable dates in a month plus navigation targets."""

    year: int
    month: int
    label: str
    dates: list[date]
    previous: MonthRef
    next: MonthRef
