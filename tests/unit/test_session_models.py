"""Tests for conversation state and payload."""

from datetime import datetime

import pytest

from app.core.intelligence.session.models import (
    BookingIntent,
    InvalidPayloadError,
    StatePayload,
)
from app.core.intelligence.session.state import (
    ConversationStatus,
    can_transition,
    is_offering_state,
    is_sticky_state,
    is_terminal_state,
)


WED_0930 = datetime(2026, 10, 21, 9, 30)
WED_1000 = datetime(2026, 10, 21, 10, 0)


class TestStateMachine:
    """Test status transitions."""

    def test_same_state_always_allowed(self):
        for status in ConversationStatus:
            assert can_transition(status, status)

    def test_initial_cannot_jump_to_booked(self):
        assert not can_transition(
            ConversationStatus.AWAITING_INITIAL_CHOICE,
            ConversationStatus.APPOINTMENT_BOOKED,
        )

    def test_opted_out_only_restarts(self):
        assert can_transition(ConversationStatus.COMPLETED, ConversationStatus.AWAITING_INITIAL_CHOICE)
        assert not can_transition(ConversationStatus.COMPLETED, ConversationStatus.CALLBACK_REQUESTED)

    def test_every_state_can_opt_out(self):
        for status in ConversationStatus:
            assert can_transition(status, ConversationStatus.COMPLETED)

    def test_state_groups(self):
        assert is_terminal_state(ConversationStatus.COMPLETED)
        assert not is_sticky_state(ConversationStatus.COMPLETED)
        assert is_sticky_state(ConversationStatus.APPOINTMENT_BOOKED)
        assert is_offering_state(ConversationStatus.AWAITING_SLOT_SELECTION)
        assert not is_terminal_state(ConversationStatus.AWAITING_SLOT_SELECTION)


class TestStatePayload:
    """Test payload shape and serialization."""

    def test_to_dict(self):
        payload = StatePayload(
            intent=BookingIntent.BOOK,
            offered_slots=(WED_0930,),
            page_offset=2,
        )

        assert payload.to_dict() == {
            "offeredSlots": ["2026-10-21T09:30:00"],
            "pageOffset": 2,
            "intent": "book",
        }

    def test_from_dict(self):
        payload = StatePayload.from_dict({
            "offeredSlots": ["2026-10-21T09:30:00", "2026-10-21T10:00:00"],
            "pageOffset": 1,
            "intent": "book",
        })

        assert payload.offered_slots == (WED_0930, WED_1000)
        assert payload.page_offset == 1
        assert payload.next_offset == 3

    def test_empty(self):
        assert StatePayload.from_dict(None) == StatePayload()
        assert StatePayload.from_dict({}) == StatePayload()

    def test_unknown_intent(self):
        with pytest.raises(InvalidPayloadError):
            StatePayload.from_dict({"intent": "teleport"})

    def test_with_offer_and_cleared(self):
        payload = StatePayload(intent=BookingIntent.BOOK).with_offer([WED_0930], 4)

        assert payload.offered_slots == (WED_0930,)
        assert payload.page_offset == 4
        assert payload.cleared() == StatePayload(intent=BookingIntent.BOOK)

    def test_confirmation_needs_one_slot(self):
        status = ConversationStatus.AWAITING_SLOT_CONFIRMATION

        StatePayload(offered_slots=(WED_0930,)).validate_for(status, 3)
        with pytest.raises(InvalidPayloadError):
            StatePayload(offered_slots=(WED_0930, WED_1000)).validate_for(status, 3)
        with pytest.raises(InvalidPayloadError):
            StatePayload().validate_for(status, 3)

    def test_selection_respects_page_size(self):
        status = ConversationStatus.AWAITING_SLOT_SELECTION

        StatePayload(offered_slots=(WED_0930, WED_1000)).validate_for(status, 3)
        with pytest.raises(InvalidPayloadError):
            StatePayload(offered_slots=(WED_0930, WED_1000)).validate_for(status, 1)

    @pytest.mark.parametrize("status", [
        ConversationStatus.AWAITING_INITIAL_CHOICE,
        ConversationStatus.APPOINTMENT_BOOKED,
        ConversationStatus.CALLBACK_REQUESTED,
        ConversationStatus.COMPLETED,
    ])
    def test_other_states_hold_no_slots(self, status):
        StatePayload().validate_for(status, 3)
        with pytest.raises(InvalidPayloadError):
            StatePayload(offered_slots=(WED_0930,)).validate_for(status, 3)

    def test_invalid_payload_is_value_error(self):
        assert issubclass(InvalidPayloadError, ValueError)
