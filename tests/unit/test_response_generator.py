"""Tests for Response Generator."""

from datetime import datetime

import pytest

from app.core.intelligence.session.state import ConversationStatus
from app.core.scheduling.response import ResponseGenerator, get_response_generator
from app.models.database import BookingMode


WED_0930 = datetime(2026, 10, 21, 9, 30)
WED_1000 = datetime(2026, 10, 21, 10, 0)
WED_1030 = datetime(2026, 10, 21, 10, 30)


@pytest.fixture
def responses():
    return ResponseGenerator()


class TestOffers:
    """Test slot offer wording."""

    def test_initial_prompt(self, responses):
        message = responses.initial_prompt("Smile Dental")

        assert message.startswith("Hi! This is Smile Dental.")
        assert "Reply 1" in message
        assert "Reply 2" in message

    def test_single_offer(self, responses):
        message = responses.slot_offer(WED_0930)

        assert "Wednesday, October 21 at 9:30 AM" in message
        assert "Reply 1 or YES" in message

    def test_page_is_numbered(self, responses):
        message = responses.slot_page([WED_0930, WED_1000, WED_1030])

        assert "1. Wednesday, October 21 at 9:30 AM" in message
        assert "3. Wednesday, October 21 at 10:30 AM" in message
        assert "Reply 1-3 to book, 4 for more options" in message

    def test_single_slot_page(self, responses):
        message = responses.slot_page([WED_0930])

        assert "1. Wednesday" in message
        assert "Reply 1 to book, 2 for more options" in message

    def test_slot_taken(self, responses):
        message = responses.slot_taken(WED_1000)

        assert message.startswith("Sorry, that time was just taken!")
        assert "10:00 AM" in message

    def test_page_taken(self, responses):
        message = responses.page_taken([WED_1000, WED_1030])

        assert message.startswith("Sorry, that time was just taken!")
        assert "2. Wednesday, October 21 at 10:30 AM" in message


class TestOutcomes:
    """Test confirmation and fallback wording."""

    def test_auto_booking(self, responses):
        message = responses.booking_confirmed(WED_0930, "Smile Dental", BookingMode.AUTO)

        assert message.startswith("SCHEDULED!")
        assert "Wednesday, October 21 at 9:30 AM" in message

    def test_manual_booking(self, responses):
        message = responses.booking_confirmed(WED_0930, "Smile Dental", BookingMode.MANUAL)

        assert message.startswith("RECEIVED!")
        assert "Smile Dental will confirm" in message

    def test_fully_booked(self, responses):
        assert "fully booked" in responses.fully_booked("Smile Dental")

    def test_opt_out_mentions_start(self, responses):
        assert "Reply START" in responses.opted_out("Smile Dental")

    def test_system_error_has_no_detail(self, responses):
        message = responses.system_error("Smile Dental")

        assert "technical issue" in message
        assert "call Smile Dental" in message
        assert "call us" in responses.system_error()


class TestReprompt:
    """Test reprompts repeat the current options."""

    def test_confirmation(self, responses):
        message = responses.reprompt(
            ConversationStatus.AWAITING_SLOT_CONFIRMATION, [WED_0930], "Smile Dental"
        )

        assert message.startswith("Sorry, I didn't catch that.")
        assert "9:30 AM" in message

    def test_selection(self, responses):
        message = responses.reprompt(
            ConversationStatus.AWAITING_SLOT_SELECTION, [WED_0930, WED_1000], "Smile Dental"
        )

        assert "2. Wednesday, October 21 at 10:00 AM" in message

    def test_initial(self, responses):
        message = responses.reprompt(ConversationStatus.AWAITING_INITIAL_CHOICE, [], "Smile Dental")

        assert "Reply 1 for a callback" in message


class TestHelp:
    """Test HELP lists the options valid in the current state."""

    def test_initial_choice(self, responses):
        message = responses.help("Smile Dental")

        assert message.startswith("Smile Dental SMS Booking:")
        assert "- Reply 1 for a callback" in message
        assert "- Reply 2 to book an appointment" in message
        assert "- Reply STOP to opt out" in message

    def test_confirmation_does_not_offer_1_as_callback(self, responses):
        message = responses.help(
            "Smile Dental", ConversationStatus.AWAITING_SLOT_CONFIRMATION, [WED_0930]
        )

        assert "- Reply 1 or YES to book Wednesday, October 21 at 9:30 AM" in message
        assert "- Reply 2 for more options" in message
        assert "- Reply CALL for a callback" in message
        assert "Reply 1 for a callback" not in message

    def test_selection(self, responses):
        message = responses.help(
            "Smile Dental", ConversationStatus.AWAITING_SLOT_SELECTION, [WED_0930, WED_1000, WED_1030]
        )

        assert "- Reply 1-3 to book a time from the list" in message
        assert "- Reply 4 for more options" in message

    def test_opted_out(self, responses):
        message = responses.help("Smile Dental", ConversationStatus.COMPLETED)

        assert "- Reply START to opt back in" in message
        assert "STOP" not in message

    def test_booked(self, responses):
        message = responses.help("Smile Dental", ConversationStatus.APPOINTMENT_BOOKED)

        assert "Reply 1" not in message
        assert "- Reply STOP to opt out" in message


class TestAcknowledge:
    """Test replies in terminal conversations."""

    def test_booked(self, responses):
        message = responses.acknowledge(ConversationStatus.APPOINTMENT_BOOKED, "ok", "Smile Dental")

        assert "already have an appointment" in message

    def test_booked_change_request(self, responses):
        message = responses.acknowledge(
            ConversationStatus.APPOINTMENT_BOOKED, "Can I reschedule?", "Smile Dental"
        )

        assert "call Smile Dental directly" in message

    def test_callback_thanks(self, responses):
        message = responses.acknowledge(ConversationStatus.CALLBACK_REQUESTED, "Thanks!", "Smile Dental")

        assert message.startswith("You're welcome!")

    def test_callback_note(self, responses):
        message = responses.acknowledge(
            ConversationStatus.CALLBACK_REQUESTED, "after 3 please", "Smile Dental"
        )

        assert "noted your message" in message

    def test_opted_out(self, responses):
        message = responses.acknowledge(ConversationStatus.COMPLETED, "hello?", "Smile Dental")

        assert "unsubscribed" in message
        assert "START" in message


def test_singleton():
    assert get_response_generator() is get_response_generator()
