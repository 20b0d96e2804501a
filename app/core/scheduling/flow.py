"""
Conversation Flow Manager.

Pure state machine for missed-call conversations: given the current
status, the stored payload and a classified intent, decide the next
status and the action the engine has to carry out. No I/O happens here,
so the same inputs always produce the same action and a retried turn is
safe to re-run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from app.config import get_settings
from app.core.intelligence.intent.types import ExpectedKind, Intent, IntentResult
from app.core.intelligence.session.models import BookingIntent, StatePayload
from app.core.intelligence.session.state import ConversationStatus, is_terminal_state

logger = logging.getLogger(__name__)


class ActionType(str, Enum):
    """Side effect the engine performs for a transition."""

    LOG_CALLBACK = "log_callback"              # Caller asked for a call back
    FREE_TEXT_CALLBACK = "free_text_callback"  # Unrecognized text, human follows up
    OFFER_SLOT = "offer_slot"                  # Fetch one slot, ask to confirm
    OFFER_PAGE = "offer_page"                  # Fetch a numbered page of slots
    BOOK = "book"                              # Run the booking transaction
    OPT_OUT = "opt_out"
    OPT_IN = "opt_in"
    HELP = "help"
    ACKNOWLEDGE = "acknowledge"                # Terminal state, reply only
    REPROMPT = "reprompt"                      # Repeat the current options


@dataclass
class FlowAction:
    """Action determined by flow manager."""

    next_state: ConversationStatus
    action_type: ActionType
    payload: StatePayload = field(default_factory=StatePayload)

    # OFFER_SLOT / OFFER_PAGE, and the replacement offer after a BOOK conflict
    fetch_count: int = 0
    fetch_offset: int = 0
    fallback_state: Optional[ConversationStatus] = None  # When the calendar comes back empty

    # BOOK
    slot: Optional[datetime] = None
    retry_state: Optional[ConversationStatus] = None  # State to re-offer in on conflict

    text: str = ""  # Caller's words, kept for lead notes
    reason: Optional[str] = None  # Lead reason for callbacks

    @property
    def needs_calendar(self) -> bool:
        return self.action_type in (ActionType.OFFER_SLOT, ActionType.OFFER_PAGE)


# What each status expects the caller to reply with
EXPECTED_KINDS: dict[ConversationStatus, ExpectedKind] = {
    ConversationStatus.AWAITING_INITIAL_CHOICE: ExpectedKind.BINARY_CHOICE,
    ConversationStatus.AWAITING_SLOT_CONFIRMATION: ExpectedKind.CONFIRMATION,
    ConversationStatus.AWAITING_SLOT_SELECTION: ExpectedKind.SLOT_SELECTION,
    ConversationStatus.APPOINTMENT_BOOKED: ExpectedKind.NONE,
    ConversationStatus.CALLBACK_REQUESTED: ExpectedKind.NONE,
    ConversationStatus.COMPLETED: ExpectedKind.NONE,
}


def expected_kind_for(status: ConversationStatus) -> ExpectedKind:
    """Reply kind the classifier should parse for a status."""
    return EXPECTED_KINDS[status]


class ConversationFlow:
    """
    State machine manager for missed-call conversations.

    Global commands are handled first in every state. Terminal states
    only acknowledge. The three waiting states each have their own table.
    """

    def __init__(self, page_size: Optional[int] = None):
        """Initialize flow manager.

        Args:
            page_size: Slots per page when the caller asks for more
        """
        self.page_size = page_size or get_settings().slot_page_size

    def process(
        self,
        status: ConversationStatus,
        payload: StatePayload,
        intent: IntentResult,
    ) -> FlowAction:
        """Decide the next state and action.

        Args:
            status: Current conversation status
            payload: Current state payload
            intent: Classified intent

        Returns:
            FlowAction with next state and action
        """
        action = self._handle_global(status, payload, intent)

        if action is None:
            if is_terminal_state(status):
                action = FlowAction(
                    next_state=status,
                    action_type=ActionType.ACKNOWLEDGE,
                    payload=payload,
                    text=intent.text,
                )
            elif status == ConversationStatus.AWAITING_INITIAL_CHOICE:
                action = self._handle_initial_choice(payload, intent)
            elif status == ConversationStatus.AWAITING_SLOT_CONFIRMATION:
                action = self._handle_confirmation(payload, intent)
            else:
                action = self._handle_selection(payload, intent)

        logger.debug(
            f"Flow: {status.value} + {intent.intent.value} -> "
            f"{action.next_state.value} ({action.action_type.value})"
        )
        return action

    def _handle_global(
        self,
        status: ConversationStatus,
        payload: StatePayload,
        intent: IntentResult,
    ) -> Optional[FlowAction]:
        """STOP / START / HELP, legal in every state."""
        if intent.intent == Intent.OPT_OUT:
            return FlowAction(
                next_state=ConversationStatus.COMPLETED,
                action_type=ActionType.OPT_OUT,
                payload=payload.cleared(),
                text=intent.text,
            )

        if intent.intent == Intent.OPT_IN:
            return FlowAction(
                next_state=ConversationStatus.AWAITING_INITIAL_CHOICE,
                action_type=ActionType.OPT_IN,
                payload=StatePayload(),
                text=intent.text,
            )

        if intent.intent == Intent.HELP:
            return FlowAction(
                next_state=status,
                action_type=ActionType.HELP,
                payload=payload,
            )

        return None

    def _handle_initial_choice(self, payload: StatePayload, intent: IntentResult) -> FlowAction:
        """Reply 1 for a callback, 2 to book; anything else is a callback with notes."""
        if intent.intent == Intent.CHOOSE_CALLBACK:
            return self._callback(payload, intent, reason="Callback requested via SMS")

        if intent.intent == Intent.CHOOSE_BOOK:
            return FlowAction(
                next_state=ConversationStatus.AWAITING_SLOT_CONFIRMATION,
                action_type=ActionType.OFFER_SLOT,
                payload=StatePayload(intent=BookingIntent.BOOK),
                fetch_count=1,
                fetch_offset=0,
                fallback_state=ConversationStatus.CALLBACK_REQUESTED,
                text=intent.text,
            )

        return FlowAction(
            next_state=ConversationStatus.CALLBACK_REQUESTED,
            action_type=ActionType.FREE_TEXT_CALLBACK,
            payload=StatePayload(intent=BookingIntent.CALLBACK),
            text=intent.text,
            reason=f"Patient message: {intent.text.strip()}",
        )

    def _handle_confirmation(self, payload: StatePayload, intent: IntentResult) -> FlowAction:
        """One slot on offer: confirm it, ask for more, or ask for a call."""
        if intent.intent in (Intent.CONFIRM, Intent.SELECT_SLOT):
            slot = self._slot_at(payload, intent.slot_index)
            if slot is not None:
                return self._book(
                    payload,
                    slot,
                    intent,
                    retry_state=ConversationStatus.AWAITING_SLOT_CONFIRMATION,
                    retry_count=1,
                )

        elif intent.intent == Intent.REQUEST_MORE:
            return self._next_page(payload, intent)

        elif intent.intent == Intent.CHOOSE_CALLBACK:
            return self._callback(payload, intent, reason="Requested different time")

        return self._reprompt(ConversationStatus.AWAITING_SLOT_CONFIRMATION, payload, intent)

    def _handle_selection(self, payload: StatePayload, intent: IntentResult) -> FlowAction:
        """Numbered page on offer: pick one, page forward, or ask for a call."""
        if intent.intent in (Intent.SELECT_SLOT, Intent.CONFIRM):
            slot = self._slot_at(payload, intent.slot_index)
            if slot is not None:
                return self._book(
                    payload,
                    slot,
                    intent,
                    retry_state=ConversationStatus.AWAITING_SLOT_SELECTION,
                    retry_count=self.page_size,
                )

        elif intent.intent == Intent.REQUEST_MORE:
            return self._next_page(payload, intent)

        elif intent.intent == Intent.CHOOSE_CALLBACK:
            return self._callback(payload, intent, reason="Requested different time")

        return self._reprompt(ConversationStatus.AWAITING_SLOT_SELECTION, payload, intent)

    @staticmethod
    def _slot_at(payload: StatePayload, index: Optional[int]) -> Optional[datetime]:
        if index is None or not 0 <= index < payload.offered_count:
            return None
        return payload.offered_slots[index]

    def _book(
        self,
        payload: StatePayload,
        slot: datetime,
        intent: IntentResult,
        retry_state: ConversationStatus,
        retry_count: int,
    ) -> FlowAction:
        # On conflict the same offset is re-read; the taken slot drops out
        return FlowAction(
            next_state=ConversationStatus.APPOINTMENT_BOOKED,
            action_type=ActionType.BOOK,
            payload=payload.cleared(),
            slot=slot,
            retry_state=retry_state,
            fetch_count=retry_count,
            fetch_offset=payload.page_offset,
            fallback_state=ConversationStatus.CALLBACK_REQUESTED,
            text=intent.text,
        )

    def _next_page(self, payload: StatePayload, intent: IntentResult) -> FlowAction:
        return FlowAction(
            next_state=ConversationStatus.AWAITING_SLOT_SELECTION,
            action_type=ActionType.OFFER_PAGE,
            payload=payload,
            fetch_count=self.page_size,
            fetch_offset=payload.next_offset,
            fallback_state=ConversationStatus.CALLBACK_REQUESTED,
            text=intent.text,
        )

    @staticmethod
    def _callback(payload: StatePayload, intent: IntentResult, reason: str) -> FlowAction:
        return FlowAction(
            next_state=ConversationStatus.CALLBACK_REQUESTED,
            action_type=ActionType.LOG_CALLBACK,
            payload=StatePayload(intent=payload.intent or BookingIntent.CALLBACK),
            text=intent.text,
            reason=reason,
        )

    @staticmethod
    def _reprompt(
        status: ConversationStatus,
        payload: StatePayload,
        intent: IntentResult,
    ) -> FlowAction:
        return FlowAction(
            next_state=status,
            action_type=ActionType.REPROMPT,
            payload=payload,
            text=intent.text,
        )


# Singleton
_flow: Optional[ConversationFlow] = None


def get_conversation_flow() -> ConversationFlow:
    """Get singleton ConversationFlow."""
    global _flow
    if _flow is None:
        _flow = ConversationFlow()
    return _flow
