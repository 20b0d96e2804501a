"""Tests for Conversation Flow."""

from datetime import datetime

import pytest

from app.core.intelligence.intent.types import LEGAL_INTENTS, Intent, IntentResult
from app.core.intelligence.session.models import BookingIntent, StatePayload
from app.core.intelligence.session.state import ConversationStatus, can_transition
from app.core.scheduling.flow import (
    ActionType,
    ConversationFlow,
    FlowAction,
    expected_kind_for,
)


MON_0900 = datetime(2026, 10, 19, 9, 0)
MON_0930 = datetime(2026, 10, 19, 9, 30)
MON_1000 = datetime(2026, 10, 19, 10, 0)


@pytest.fixture
def flow():
    return ConversationFlow(page_size=3)


def payload_for(status: ConversationStatus) -> StatePayload:
    """A valid stored payload for each status."""
    if status == ConversationStatus.AWAITING_SLOT_CONFIRMATION:
        return StatePayload(intent=BookingIntent.BOOK, offered_slots=(MON_0900,))
    if status == ConversationStatus.AWAITING_SLOT_SELECTION:
        return StatePayload(
            intent=BookingIntent.BOOK,
            offered_slots=(MON_0900, MON_0930, MON_1000),
            page_offset=1,
        )
    return StatePayload()


def intents_for(status: ConversationStatus) -> list[IntentResult]:
    """Every legal intent for a status, with a slot index where one applies."""
    results = []
    for intent in sorted(LEGAL_INTENTS[expected_kind_for(status)], key=lambda i: i.value):
        if intent in (Intent.CONFIRM, Intent.SELECT_SLOT):
            results.append(IntentResult(intent=intent, text="1", slot_index=0))
        else:
            results.append(IntentResult(intent=intent, text="hello"))
    return results


class TestTotality:
    """Test every (state, legal intent) pair has a defined outcome."""

    @pytest.mark.parametrize("status", list(ConversationStatus))
    def test_every_pair_is_handled(self, flow, status):
        payload = payload_for(status)

        for intent in intents_for(status):
            action = flow.process(status, payload, intent)

            assert isinstance(action, FlowAction)
            assert can_transition(status, action.next_state), (status, intent.intent)

    @pytest.mark.parametrize("status", list(ConversationStatus))
    def test_deterministic(self, flow, status):
        payload = payload_for(status)

        for intent in intents_for(status):
            assert flow.process(status, payload, intent) == flow.process(status, payload, intent)

    @pytest.mark.parametrize("status", list(ConversationStatus))
    def test_offer_states_only_reached_through_calendar(self, flow, status):
        """Test an offering state is only entered by an action that fetches slots."""
        payload = payload_for(status)

        for intent in intents_for(status):
            action = flow.process(status, payload, intent)
            if action.next_state != status and action.next_state in (
                ConversationStatus.AWAITING_SLOT_CONFIRMATION,
                ConversationStatus.AWAITING_SLOT_SELECTION,
            ):
                assert action.needs_calendar
                assert action.fallback_state == ConversationStatus.CALLBACK_REQUESTED


class TestGlobalCommands:
    """Test STOP / START / HELP."""

    @pytest.mark.parametrize("status", list(ConversationStatus))
    def test_opt_out_from_anywhere(self, flow, status):
        action = flow.process(status, payload_for(status), IntentResult(Intent.OPT_OUT, "STOP"))

        assert action.next_state == ConversationStatus.COMPLETED
        assert action.action_type == ActionType.OPT_OUT
        assert action.payload.offered_slots == ()

    @pytest.mark.parametrize("status", list(ConversationStatus))
    def test_opt_in_restarts(self, flow, status):
        action = flow.process(status, payload_for(status), IntentResult(Intent.OPT_IN, "START"))

        assert action.next_state == ConversationStatus.AWAITING_INITIAL_CHOICE
        assert action.action_type == ActionType.OPT_IN
        assert action.payload == StatePayload()

    @pytest.mark.parametrize("status", list(ConversationStatus))
    def test_help_keeps_state(self, flow, status):
        payload = payload_for(status)

        action = flow.process(status, payload, IntentResult(Intent.HELP, "help"))

        assert action.next_state == status
        assert action.action_type == ActionType.HELP
        assert action.payload == payload


class TestInitialChoice:
    """Test AWAITING_INITIAL_CHOICE."""

    STATUS = ConversationStatus.AWAITING_INITIAL_CHOICE

    def test_callback(self, flow):
        action = flow.process(self.STATUS, StatePayload(), IntentResult(Intent.CHOOSE_CALLBACK, "1"))

        assert action.next_state == ConversationStatus.CALLBACK_REQUESTED
        assert action.action_type == ActionType.LOG_CALLBACK
        assert action.reason == "Callback requested via SMS"
        assert action.payload.intent == BookingIntent.CALLBACK

    def test_book_offers_first_slot(self, flow):
        action = flow.process(self.STATUS, StatePayload(), IntentResult(Intent.CHOOSE_BOOK, "2"))

        assert action.next_state == ConversationStatus.AWAITING_SLOT_CONFIRMATION
        assert action.action_type == ActionType.OFFER_SLOT
        assert (action.fetch_count, action.fetch_offset) == (1, 0)
        assert action.fallback_state == ConversationStatus.CALLBACK_REQUESTED
        assert action.payload.intent == BookingIntent.BOOK

    def test_free_text_becomes_callback_with_notes(self, flow):
        action = flow.process(
            self.STATUS,
            StatePayload(),
            IntentResult(Intent.FREE_TEXT, "  Do you do braces? "),
        )

        assert action.next_state == ConversationStatus.CALLBACK_REQUESTED
        assert action.action_type == ActionType.FREE_TEXT_CALLBACK
        assert action.reason == "Patient message: Do you do braces?"


class TestConfirmation:
    """Test AWAITING_SLOT_CONFIRMATION."""

    STATUS = ConversationStatus.AWAITING_SLOT_CONFIRMATION

    @pytest.fixture
    def payload(self):
        return payload_for(self.STATUS)

    def test_confirm_books_offered_slot(self, flow, payload):
        action = flow.process(self.STATUS, payload, IntentResult(Intent.CONFIRM, "yes", 0))

        assert action.next_state == ConversationStatus.APPOINTMENT_BOOKED
        assert action.action_type == ActionType.BOOK
        assert action.slot == MON_0900
        assert action.retry_state == self.STATUS
        assert (action.fetch_count, action.fetch_offset) == (1, 0)

    def test_request_more_pages_after_offer(self, flow, payload):
        action = flow.process(self.STATUS, payload, IntentResult(Intent.REQUEST_MORE, "2"))

        assert action.next_state == ConversationStatus.AWAITING_SLOT_SELECTION
        assert action.action_type == ActionType.OFFER_PAGE
        assert (action.fetch_count, action.fetch_offset) == (3, 1)

    def test_callback(self, flow, payload):
        action = flow.process(self.STATUS, payload, IntentResult(Intent.CHOOSE_CALLBACK, "call"))

        assert action.next_state == ConversationStatus.CALLBACK_REQUESTED
        assert action.reason == "Requested different time"
        assert action.payload.offered_slots == ()

    @pytest.mark.parametrize("intent", [Intent.UNRESOLVED, Intent.FREE_TEXT])
    def test_reprompt_keeps_offer(self, flow, payload, intent):
        action = flow.process(self.STATUS, payload, IntentResult(intent, "hmm"))

        assert action.next_state == self.STATUS
        assert action.action_type == ActionType.REPROMPT
        assert action.payload == payload


class TestSelection:
    """Test AWAITING_SLOT_SELECTION."""

    STATUS = ConversationStatus.AWAITING_SLOT_SELECTION

    @pytest.fixture
    def payload(self):
        return payload_for(self.STATUS)

    def test_select_books_that_slot(self, flow, payload):
        action = flow.process(self.STATUS, payload, IntentResult(Intent.SELECT_SLOT, "2", 1))

        assert action.action_type == ActionType.BOOK
        assert action.slot == MON_0930
        assert action.retry_state == self.STATUS
        assert (action.fetch_count, action.fetch_offset) == (3, 1)

    def test_out_of_range_index_reprompts(self, flow, payload):
        action = flow.process(self.STATUS, payload, IntentResult(Intent.SELECT_SLOT, "x", 5))

        assert action.action_type == ActionType.REPROMPT
        assert action.next_state == self.STATUS

    def test_request_more_advances_offset(self, flow, payload):
        action = flow.process(self.STATUS, payload, IntentResult(Intent.REQUEST_MORE, "4"))

        assert action.next_state == self.STATUS
        assert (action.fetch_count, action.fetch_offset) == (3, 4)


class TestTerminal:
    """Test terminal states only acknowledge."""

    @pytest.mark.parametrize("status", [
        ConversationStatus.APPOINTMENT_BOOKED,
        ConversationStatus.CALLBACK_REQUESTED,
        ConversationStatus.COMPLETED,
    ])
    def test_acknowledge(self, flow, status):
        action = flow.process(status, StatePayload(), IntentResult(Intent.FREE_TEXT, "thanks"))

        assert action.next_state == status
        assert action.action_type == ActionType.ACKNOWLEDGE
        assert action.text == "thanks"
