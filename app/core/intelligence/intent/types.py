"""Intent types for inbound text classification."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Intent(str, Enum):
    """Caller intent categories."""

    # Global commands (legal in every state)
    OPT_OUT = "opt_out"                # STOP, unsubscribe
    OPT_IN = "opt_in"                  # START
    HELP = "help"                      # HELP, info, ?

    # Initial choice
    CHOOSE_BOOK = "choose_book"        # "2", "book"
    CHOOSE_CALLBACK = "choose_callback"  # "1", "call me"

    # Slot offers
    SELECT_SLOT = "select_slot"        # "2" when three slots are shown
    REQUEST_MORE = "request_more"      # "4" when three slots are shown, "more"
    CONFIRM = "confirm"                # "yes", "wed 9am confirm"

    # Fallback
    UNRESOLVED = "unresolved"          # Confirm-like but no offered slot matches
    FREE_TEXT = "free_text"            # Anything else, kept for a human


# Alias used by the confirmation prompt ("reply 2 for more options")
SELECT_MORE_OPTIONS = Intent.REQUEST_MORE


class ExpectedKind(str, Enum):
    """What kind of reply the current state is waiting for."""

    BINARY_CHOICE = "binary_choice"
    CONFIRMATION = "confirmation"
    SLOT_SELECTION = "slot_selection"
    NONE = "none"  # Terminal states: global commands only


GLOBAL_INTENTS = frozenset({Intent.OPT_OUT, Intent.OPT_IN, Intent.HELP})

# Intents the classifier can produce for each kind
LEGAL_INTENTS: dict[ExpectedKind, frozenset[Intent]] = {
    ExpectedKind.BINARY_CHOICE: GLOBAL_INTENTS | {
        Intent.CHOOSE_BOOK,
        Intent.CHOOSE_CALLBACK,
        Intent.FREE_TEXT,
    },
    ExpectedKind.CONFIRMATION: GLOBAL_INTENTS | {
        Intent.CONFIRM,
        Intent.REQUEST_MORE,
        Intent.CHOOSE_CALLBACK,
        Intent.UNRESOLVED,
        Intent.FREE_TEXT,
    },
    ExpectedKind.SLOT_SELECTION: GLOBAL_INTENTS | {
        Intent.SELECT_SLOT,
        Intent.REQUEST_MORE,
        Intent.CHOOSE_CALLBACK,
        Intent.UNRESOLVED,
        Intent.FREE_TEXT,
    },
    ExpectedKind.NONE: GLOBAL_INTENTS | {Intent.FREE_TEXT},
}


@dataclass(frozen=True)
class IntentResult:
    """Result of intent classification."""

    intent: Intent
    text: str = ""

    # Zero-based index into the offered slots (SELECT_SLOT / CONFIRM)
    slot_index: Optional[int] = None

    @property
    def is_global(self) -> bool:
        """Check if intent short-circuits the state machine."""
        return self.intent in GLOBAL_INTENTS

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "intent": self.intent.value,
            "slot_index": self.slot_index,
        }
