"""Conversation state machine."""

from enum import Enum
from typing import Set


class ConversationStatus(str, Enum):
    """States of a missed-call text conversation."""

    # Initial
    AWAITING_INITIAL_CHOICE = "awaiting_initial_choice"

    # Slot offers
    AWAITING_SLOT_CONFIRMATION = "awaiting_slot_confirmation"
    AWAITING_SLOT_SELECTION = "awaiting_slot_selection"

    # Terminal states
    APPOINTMENT_BOOKED = "appointment_booked"
    CALLBACK_REQUESTED = "callback_requested"
    COMPLETED = "completed"  # Opted out


# Valid state transitions. Staying in the same state is always allowed.
VALID_TRANSITIONS: dict[ConversationStatus, Set[ConversationStatus]] = {
    ConversationStatus.AWAITING_INITIAL_CHOICE: {
        ConversationStatus.AWAITING_SLOT_CONFIRMATION,
        ConversationStatus.CALLBACK_REQUESTED,
        ConversationStatus.COMPLETED,
    },
    ConversationStatus.AWAITING_SLOT_CONFIRMATION: {
        ConversationStatus.AWAITING_SLOT_SELECTION,
        ConversationStatus.APPOINTMENT_BOOKED,
        ConversationStatus.CALLBACK_REQUESTED,
        ConversationStatus.AWAITING_INITIAL_CHOICE,
        ConversationStatus.COMPLETED,
    },
    ConversationStatus.AWAITING_SLOT_SELECTION: {
        ConversationStatus.APPOINTMENT_BOOKED,
        ConversationStatus.CALLBACK_REQUESTED,
        ConversationStatus.AWAITING_INITIAL_CHOICE,
        ConversationStatus.COMPLETED,
    },
    ConversationStatus.APPOINTMENT_BOOKED: {
        ConversationStatus.AWAITING_INITIAL_CHOICE,  # START
        ConversationStatus.COMPLETED,  # STOP
    },
    ConversationStatus.CALLBACK_REQUESTED: {
        ConversationStatus.AWAITING_INITIAL_CHOICE,
        ConversationStatus.COMPLETED,
    },
    ConversationStatus.COMPLETED: {
        ConversationStatus.AWAITING_INITIAL_CHOICE,
    },
}


def can_transition(from_state: ConversationStatus, to_state: ConversationStatus) -> bool:
    """Check if a state transition is valid."""
    if from_state == to_state:
        return True
    return to_state in VALID_TRANSITIONS.get(from_state, set())


def get_valid_transitions(state: ConversationStatus) -> Set[ConversationStatus]:
    """Get all valid transitions from a state."""
    return VALID_TRANSITIONS.get(state, set())


def is_terminal_state(state: ConversationStatus) -> bool:
    """Check if state ends the conversation (ended_at is set)."""
    return state in {
        ConversationStatus.APPOINTMENT_BOOKED,
        ConversationStatus.CALLBACK_REQUESTED,
        ConversationStatus.COMPLETED,
    }


def is_sticky_state(state: ConversationStatus) -> bool:
    """Terminal states that keep acknowledging later texts."""
    return state in {
        ConversationStatus.APPOINTMENT_BOOKED,
        ConversationStatus.CALLBACK_REQUESTED,
    }


def is_offering_state(state: ConversationStatus) -> bool:
    """Check if the caller is currently looking at offered slots."""
    return state in {
        ConversationStatus.AWAITING_SLOT_CONFIRMATION,
        ConversationStatus.AWAITING_SLOT_SELECTION,
    }
