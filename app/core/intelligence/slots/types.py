"""Slot types for day/time extraction."""

from dataclasses import dataclass
from typing import Optional


WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


@dataclass(frozen=True)
class ExtractedTime:
    """Time of day found in a message."""

    hour: int                      # 0-23 when meridiem given, 1-12 otherwise
    minute: Optional[int] = None   # None when the caller gave only an hour
    ambiguous: bool = False        # No am/pm, so hour may mean hour + 12

    def matches(self, hour: int, minute: int) -> bool:
        """Check against a slot start time."""
        if self.minute is not None and self.minute != minute:
            return False
        if self.ambiguous:
            return self.hour == hour or self.hour + 12 == hour
        return self.hour == hour


@dataclass(frozen=True)
class ExtractedSlots:
    """Day and time named in a single free-form reply."""

    day: Optional[str] = None      # Canonical weekday name, e.g. "wednesday"
    time: Optional[ExtractedTime] = None

    def has_any(self) -> bool:
        """Check if anything was extracted."""
        return self.day is not None or self.time is not None

    @property
    def weekday(self) -> Optional[int]:
        """Python weekday number (Monday == 0)."""
        if self.day is None:
            return None
        return WEEKDAYS.index(self.day)

    def to_dict(self) -> dict:
        """Convert to dict, excluding None values."""
        result = {}
        if self.day:
            result["day"] = self.day
        if self.time:
            result["hour"] = self.time.hour
            if self.time.minute is not None:
                result["minute"] = self.time.minute
            result["ambiguous"] = self.time.ambiguous
        return result
