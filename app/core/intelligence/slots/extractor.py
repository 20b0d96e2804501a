"""
Rule-based day/time extraction.

Pulls an optional weekday (with typo correction) and an optional time of
day out of a short SMS reply, so "wed 9am confirm" can identify one of the
slots previously offered without the caller typing its number.
"""

import logging
import re
from datetime import datetime
from typing import Optional, Sequence

from .types import ExtractedSlots, ExtractedTime

logger = logging.getLogger(__name__)


# Common spellings, abbreviations and typos of weekday names
DAY_CORRECTIONS: dict[str, str] = {
    "monday": "monday", "mon": "monday", "munday": "monday", "mondy": "monday",
    "monady": "monday",
    "tuesday": "tuesday", "tue": "tuesday", "tues": "tuesday", "teusday": "tuesday",
    "tuseday": "tuesday", "tuesdy": "tuesday",
    "wednesday": "wednesday", "wed": "wednesday", "weds": "wednesday",
    "wensday": "wednesday", "wendsday": "wednesday", "wednsday": "wednesday",
    "wedensday": "wednesday",
    "thursday": "thursday", "thu": "thursday", "thur": "thursday", "thurs": "thursday",
    "thrusday": "thursday", "thursdy": "thursday",
    "friday": "friday", "fri": "friday", "firday": "friday", "frday": "friday",
    "fridy": "friday",
    "saturday": "saturday", "sat": "saturday", "saterday": "saturday",
    "satruday": "saturday",
    "sunday": "sunday", "sun": "sunday", "sundy": "sunday", "sundae": "sunday",
}

_MERIDIEM = r"(am|pm|a|p)\b"

# Ordered: the first pattern that matches wins
_TIME_WITH_MERIDIEM = [
    re.compile(r"\b(\d{1,2})\s*:\s*(\d{2})\s*" + _MERIDIEM),   # 9:30am, 9 : 30 pm
    re.compile(r"\b(\d{1,2})(\d{2})\s*" + _MERIDIEM),          # 930am, 1030pm
    re.compile(r"\b(\d{1,2})\s*" + _MERIDIEM),                 # 9am, 9 am
]
_TIME_WITH_COLON = re.compile(r"\b(\d{1,2}):(\d{2})\b")        # 9:30
_BARE_HOUR = re.compile(r"\b(\d{1,2})\b")                      # 9

# A lone digit that is not part of a time expression
_POSITIONAL_DIGIT = re.compile(r"(?<![\d:])([1-9])(?![\d:])(?!\s*(?:am|pm|a\b|p\b))")


class SlotExtractor:
    """Extracts weekday and time of day from caller replies."""

    def extract(self, message: str) -> ExtractedSlots:
        """Extract day and time from a message.

        Args:
            message: Raw inbound text

        Returns:
            ExtractedSlots with any found values
        """
        text = message.lower().strip()
        if not text:
            return ExtractedSlots()

        return ExtractedSlots(
            day=self.extract_day(text),
            time=self.extract_time(text),
        )

    def extract_day(self, message: str) -> Optional[str]:
        """Find a weekday name, tolerating common misspellings."""
        for token in re.findall(r"[a-z]+", message.lower()):
            if token in DAY_CORRECTIONS:
                return DAY_CORRECTIONS[token]
        return None

    def extract_time(self, message: str) -> Optional[ExtractedTime]:
        """Find a time of day.

        Supports "9:30am", "930am", "9 am", "9am", "9:30" and a bare hour.
        Without am/pm the result is marked ambiguous.
        """
        text = message.lower().replace(".", "")

        for pattern in _TIME_WITH_MERIDIEM:
            match = pattern.search(text)
            if not match:
                continue
            groups = match.groups()
            hour = int(groups[0])
            minute = int(groups[1]) if len(groups) == 3 else None
            meridiem = groups[-1]
            if not 1 <= hour <= 12 or (minute is not None and minute > 59):
                continue
            if meridiem.startswith("p") and hour != 12:
                hour += 12
            elif meridiem.startswith("a") and hour == 12:
                hour = 0
            return ExtractedTime(hour=hour, minute=minute)

        match = _TIME_WITH_COLON.search(text)
        if match:
            hour, minute = int(match.group(1)), int(match.group(2))
            if hour <= 23 and minute <= 59:
                return ExtractedTime(hour=hour, minute=minute, ambiguous=hour <= 12)

        match = _BARE_HOUR.search(text)
        if match:
            hour = int(match.group(1))
            if hour <= 23:
                return ExtractedTime(hour=hour, ambiguous=hour <= 12)

        return None

    def positional_index(self, message: str, offered: int) -> Optional[int]:
        """Find a lone digit naming an offered slot by position."""
        match = _POSITIONAL_DIGIT.search(message.lower())
        if match:
            index = int(match.group(1)) - 1
            if index < offered:
                return index
        return None

    def match_offered_slot(
        self,
        message: str,
        offered_slots: Sequence[datetime],
    ) -> Optional[int]:
        """Resolve a free-form reply to one of the offered slots.

        Tries, in order: day and time, day alone when only one offered slot
        falls on it, an unambiguous time, a positional digit, and finally
        "only one slot was offered".

        Returns:
            Zero-based index into offered_slots, or None when unresolved
        """
        if not offered_slots:
            return None

        extracted = self.extract(message)

        if extracted.day is not None:
            same_day = [
                index for index, slot in enumerate(offered_slots)
                if slot.weekday() == extracted.weekday
            ]
            if extracted.time is not None:
                for index in same_day:
                    slot = offered_slots[index]
                    if extracted.time.matches(slot.hour, slot.minute):
                        return index
            elif len(same_day) == 1:
                return same_day[0]

        time_of_day = extracted.time
        if time_of_day is not None and (
            not time_of_day.ambiguous or time_of_day.minute is not None
        ):
            candidates = [
                index for index, slot in enumerate(offered_slots)
                if time_of_day.matches(slot.hour, slot.minute)
            ]
            if len(candidates) == 1:
                return candidates[0]

        index = self.positional_index(message, len(offered_slots))
        if index is not None:
            return index

        if len(offered_slots) == 1:
            return 0

        logger.debug(f"Could not match reply to offered slots: {extracted.to_dict()}")
        return None


# Singleton
_extractor: Optional[SlotExtractor] = None


def get_slot_extractor() -> SlotExtractor:
    """Get singleton SlotExtractor."""
    global _extractor
    if _extractor is None:
        _extractor = SlotExtractor()
    return _extractor


def extract_slots(message: str) -> ExtractedSlots:
    """Convenience function to extract day and time."""
    return get_slot_extractor().extract(message)


def match_offered_slot(message: str, offered_slots: Sequence[datetime]) -> Optional[int]:
    """Convenience function to resolve a reply to an offered slot."""
    return get_slot_extractor().match_offered_slot(message, offered_slots)
