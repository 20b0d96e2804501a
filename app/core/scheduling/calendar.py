"""
Slot calendar.

Turns a practice's weekly business hours plus its existing bookings into
an ordered list of offerable appointment start times. The core function
`available_slots` is pure: the same inputs always give the same list,
which is what lets the engine re-offer a replacement after a conflict.

All datetimes are naive and in the practice's local time.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import AbstractSet, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.intelligence.slots.types import WEEKDAYS
from app.models.database import Appointment, AppointmentStatus, Practice

logger = logging.getLogger(__name__)


def _parse_clock(value: str) -> time:
    """Parse "HH:MM" (seconds optional)."""
    return time.fromisoformat(value)


@dataclass(frozen=True)
class DayHours:
    """Opening hours for one weekday."""

    enabled: bool
    open: time
    close: time

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "DayHours":
        """Create from {"enabled": bool, "open": "09:00", "close": "17:00"}."""
        if not data:
            return cls(enabled=False, open=time(0, 0), close=time(0, 0))
        return cls(
            enabled=bool(data.get("enabled", False)),
            open=_parse_clock(data.get("open", "00:00")),
            close=_parse_clock(data.get("close", "00:00")),
        )

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "open": self.open.strftime("%H:%M"),
            "close": self.close.strftime("%H:%M"),
        }


DEFAULT_BUSINESS_HOURS: dict[str, dict] = {
    "monday": {"open": "09:00", "close": "17:00", "enabled": True},
    "tuesday": {"open": "09:00", "close": "17:00", "enabled": True},
    "wednesday": {"open": "09:00", "close": "17:00", "enabled": True},
    "thursday": {"open": "09:00", "close": "17:00", "enabled": True},
    "friday": {"open": "09:00", "close": "17:00", "enabled": True},
    "saturday": {"open": "09:00", "close": "13:00", "enabled": False},
    "sunday": {"open": "00:00", "close": "00:00", "enabled": False},
}


@dataclass(frozen=True)
class BusinessHours:
    """Weekly schedule, one DayHours per weekday (Monday first)."""

    days: tuple[DayHours, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "BusinessHours":
        """Create from the stored JSON, keyed by weekday name.

        An empty or missing config means the default Mon-Fri 9-5 week.
        """
        if not data:
            data = DEFAULT_BUSINESS_HOURS
        return cls(days=tuple(DayHours.from_dict(data.get(name)) for name in WEEKDAYS))

    @classmethod
    def default(cls) -> "BusinessHours":
        return cls.from_dict(DEFAULT_BUSINESS_HOURS)

    def for_weekday(self, weekday: int) -> DayHours:
        return self.days[weekday]

    def to_dict(self) -> dict:
        return {name: day.to_dict() for name, day in zip(WEEKDAYS, self.days)}


def available_slots(
    business_hours: BusinessHours,
    booked: AbstractSet[datetime],
    granularity_minutes: int,
    count: int,
    page_offset: int,
    now: datetime,
    min_lead: timedelta = timedelta(hours=1),
    horizon_days: int = 14,
) -> list[datetime]:
    """
    List offerable slot start times.

    Walks forward day by day from today, enumerating fixed-size slots
    between opening and closing time on enabled weekdays. A slot must end
    by closing time, start no earlier than now + min_lead, and not be in
    the booked set. The first `page_offset` qualifying slots are skipped.

    Args:
        business_hours: Weekly schedule
        booked: Start times of non-cancelled appointments
        granularity_minutes: Slot length and step
        count: Maximum number of slots to return
        page_offset: Qualifying slots to skip before collecting
        now: Current local time
        min_lead: Minimum notice before a slot
        horizon_days: Days to search, today included

    Returns:
        Chronological list of at most `count` start times (empty means
        fully booked, not an error)
    """
    if granularity_minutes <= 0:
        raise ValueError("granularity_minutes must be positive")
    if count <= 0:
        return []

    step = timedelta(minutes=granularity_minutes)
    earliest = now + min_lead
    skipped = 0
    slots: list[datetime] = []

    for day_index in range(horizon_days):
        day = now.date() + timedelta(days=day_index)
        hours = business_hours.for_weekday(day.weekday())
        if not hours.enabled:
            continue

        start = datetime.combine(day, hours.open)
        closing = datetime.combine(day, hours.close)

        while start + step <= closing:
            if start >= earliest and start not in booked:
                if skipped < page_offset:
                    skipped += 1
                else:
                    slots.append(start)
                    if len(slots) == count:
                        return slots
            start += step

    return slots


async def load_booked_slots(
    db: AsyncSession,
    tenant_id: UUID,
    start: date,
    end: date,
) -> set[datetime]:
    """Start times of a practice's non-cancelled appointments between two dates."""
    result = await db.execute(
        select(Appointment.appointment_date, Appointment.appointment_time).where(
            Appointment.tenant_id == tenant_id,
            Appointment.status != AppointmentStatus.CANCELLED,
            Appointment.appointment_date >= start,
            Appointment.appointment_date <= end,
        )
    )
    return {datetime.combine(row[0], row[1]) for row in result.all()}


class SlotCalendar:
    """
    Practice-aware wrapper around `available_slots`.

    Reads the practice's hours and current bookings, then applies the
    configured granularity, lead time and horizon.
    """

    def __init__(
        self,
        granularity_minutes: Optional[int] = None,
        min_lead_minutes: Optional[int] = None,
        horizon_days: Optional[int] = None,
    ):
        settings = get_settings()
        self.granularity_minutes = granularity_minutes or settings.slot_granularity_minutes
        self.min_lead = timedelta(
            minutes=min_lead_minutes if min_lead_minutes is not None else settings.min_lead_minutes
        )
        self.horizon_days = horizon_days or settings.slot_horizon_days

    async def fetch(
        self,
        db: AsyncSession,
        practice: Practice,
        count: int,
        page_offset: int,
        now: datetime,
    ) -> list[datetime]:
        """Fetch up to `count` slots for a practice, skipping `page_offset`."""
        booked = await load_booked_slots(
            db,
            practice.id,
            now.date(),
            now.date() + timedelta(days=self.horizon_days),
        )
        slots = available_slots(
            BusinessHours.from_dict(practice.business_hours),
            booked,
            self.granularity_minutes,
            count,
            page_offset,
            now,
            min_lead=self.min_lead,
            horizon_days=self.horizon_days,
        )
        logger.debug(
            f"Calendar for {practice.id}: {len(slots)} slot(s) "
            f"(count={count}, offset={page_offset}, booked={len(booked)})"
        )
        return slots


def format_slot(slot: datetime) -> str:
    """Human-readable slot, e.g. "Wednesday, October 21 at 9:30 AM"."""
    hour = slot.hour % 12 or 12
    meridiem = "AM" if slot.hour < 12 else "PM"
    return f"{slot.strftime('%A, %B')} {slot.day} at {hour}:{slot.minute:02d} {meridiem}"
