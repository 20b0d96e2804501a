"""Tests for Slot Extractor."""

from datetime import datetime

import pytest

from app.core.intelligence.slots.extractor import (
    SlotExtractor,
    extract_slots,
    match_offered_slot,
)
from app.core.intelligence.slots.types import ExtractedSlots, ExtractedTime


# Monday 19 Oct 2026
MON_0900 = datetime(2026, 10, 19, 9, 0)
MON_0930 = datetime(2026, 10, 19, 9, 30)
MON_1000 = datetime(2026, 10, 19, 10, 0)
WED_0930 = datetime(2026, 10, 21, 9, 30)
WED_1400 = datetime(2026, 10, 21, 14, 0)


class TestDayExtraction:
    """Test weekday extraction."""

    @pytest.fixture
    def extractor(self):
        return SlotExtractor()

    @pytest.mark.parametrize("text,expected", [
        ("monday", "monday"),
        ("Mon 9am", "monday"),
        ("weds please", "wednesday"),
        ("wensday at 2", "wednesday"),
        ("thrusday", "thursday"),
        ("FRI", "friday"),
        ("saterday", "saturday"),
    ])
    def test_day_and_typos(self, extractor, text, expected):
        """Test full names, abbreviations and typos."""
        assert extractor.extract_day(text) == expected

    def test_no_day(self, extractor):
        """Test words that merely contain a day abbreviation."""
        assert extractor.extract_day("monkey business") is None
        assert extractor.extract_day("we'd like a time") is None


class TestTimeExtraction:
    """Test time extraction."""

    @pytest.fixture
    def extractor(self):
        return SlotExtractor()

    @pytest.mark.parametrize("text,hour,minute", [
        ("9:30am", 9, 30),
        ("930am", 9, 30),
        ("1030pm", 22, 30),
        ("9 am", 9, None),
        ("9am", 9, None),
        ("2pm", 14, None),
        ("2 p.m.", 14, None),
        ("12pm", 12, None),
        ("12am", 0, None),
        ("9.30am", 9, 30),
    ])
    def test_time_with_meridiem(self, extractor, text, hour, minute):
        """Test times with am/pm are unambiguous."""
        result = extractor.extract_time(text)

        assert result == ExtractedTime(hour=hour, minute=minute, ambiguous=False)

    def test_colon_time_is_ambiguous(self, extractor):
        """Test 9:30 without am/pm."""
        result = extractor.extract_time("9:30")

        assert result.hour == 9
        assert result.minute == 30
        assert result.ambiguous is True

    def test_24_hour_time_is_not_ambiguous(self, extractor):
        result = extractor.extract_time("14:00")

        assert result == ExtractedTime(hour=14, minute=0, ambiguous=False)

    def test_bare_hour(self, extractor):
        result = extractor.extract_time("monday 10")

        assert result == ExtractedTime(hour=10, minute=None, ambiguous=True)

    def test_no_time(self, extractor):
        assert extractor.extract_time("no time here") is None

    def test_ambiguous_time_matches_both_halves_of_day(self):
        """Test '2' matches 2:00 and 14:00."""
        two = ExtractedTime(hour=2, ambiguous=True)

        assert two.matches(14, 0)
        assert two.matches(2, 0)
        assert not two.matches(15, 0)

    def test_minutes_must_match(self):
        assert not ExtractedTime(hour=9, minute=30).matches(9, 0)
        assert ExtractedTime(hour=9).matches(9, 30)


class TestExtract:
    """Test combined extraction."""

    def test_day_and_time(self):
        result = extract_slots("Wed 9:30am confirm")

        assert result.day == "wednesday"
        assert result.weekday == 2
        assert result.time == ExtractedTime(hour=9, minute=30)
        assert result.has_any()

    def test_empty_message(self):
        result = extract_slots("   ")

        assert result == ExtractedSlots()
        assert not result.has_any()

    def test_to_dict_excludes_missing_values(self):
        assert extract_slots("friday").to_dict() == {"day": "friday"}


class TestMatchOfferedSlot:
    """Test resolving replies to offered slots."""

    @pytest.fixture
    def extractor(self):
        return SlotExtractor()

    @pytest.fixture
    def page(self):
        return [MON_0900, MON_0930, MON_1000]

    def test_day_and_time(self, extractor, page):
        assert extractor.match_offered_slot("mon 9:30am", page) == 1

    def test_day_and_ambiguous_hour(self, extractor, page):
        """Test a bare hour is matched together with a day."""
        assert extractor.match_offered_slot("monday 10", page) == 2

    def test_unique_day(self, extractor):
        assert extractor.match_offered_slot("wednesday", [MON_0900, WED_0930]) == 1

    def test_day_alone_with_several_slots_is_not_enough(self, extractor, page):
        assert extractor.match_offered_slot("monday", page) is None

    def test_explicit_time(self, extractor, page):
        assert extractor.match_offered_slot("930am works", page) == 1

    def test_ambiguous_afternoon_time_with_minutes(self, extractor):
        assert extractor.match_offered_slot("2:00", [WED_0930, WED_1400]) == 1

    def test_positional_digit(self, extractor, page):
        assert extractor.match_offered_slot("ok 3", page) == 2

    def test_positional_digit_out_of_range(self, extractor, page):
        assert extractor.match_offered_slot("ok 7", page) is None

    def test_single_offered_slot_is_assumed(self, extractor):
        assert extractor.match_offered_slot("yes please", [WED_0930]) == 0

    def test_unmatched_reply(self, extractor, page):
        assert extractor.match_offered_slot("fri 3pm", page) is None

    def test_no_offered_slots(self, extractor):
        assert extractor.match_offered_slot("wed 9:30am", []) is None

    def test_module_function(self, page):
        assert match_offered_slot("mon 9am", page) == 0
