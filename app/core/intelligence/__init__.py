"""
Intelligence Layer Module

Provides rule-based intent classification, day/time extraction and the
conversation state model for the missed-call booking engine.

Usage:
    from app.core.intelligence import (
        classify_intent,
        extract_slots,
        ExpectedKind,
    )

    # Classify a reply to the opening text
    result = classify_intent("2", ExpectedKind.BINARY_CHOICE)
    print(result.intent)  # Intent.CHOOSE_BOOK

    # Extract day and time
    slots = extract_slots("wed 9:30am confirm")
    print(slots.day)  # "wednesday"

The database-backed conversation store lives in
app.core.intelligence.session.manager and is imported from there.
"""

# Intent Classification
from app.core.intelligence.intent.types import (
    ExpectedKind,
    Intent,
    IntentResult,
)
from app.core.intelligence.intent.classifier import (
    IntentClassifier,
    get_intent_classifier,
    classify_intent,
)

# Day/time Extraction
from app.core.intelligence.slots.types import ExtractedSlots, ExtractedTime
from app.core.intelligence.slots.extractor import (
    SlotExtractor,
    get_slot_extractor,
    extract_slots,
    match_offered_slot,
)

# Conversation State
from app.core.intelligence.session.state import (
    ConversationStatus,
    can_transition,
    get_valid_transitions,
    is_terminal_state,
    is_sticky_state,
)
from app.core.intelligence.session.models import BookingIntent, StatePayload

__all__ = [
    # Intent
    "ExpectedKind",
    "Intent",
    "IntentResult",
    "IntentClassifier",
    "get_intent_classifier",
    "classify_intent",
    # Slots
    "ExtractedSlots",
    "ExtractedTime",
    "SlotExtractor",
    "get_slot_extractor",
    "extract_slots",
    "match_offered_slot",
    # Session State
    "ConversationStatus",
    "can_transition",
    "get_valid_transitions",
    "is_terminal_state",
    "is_sticky_state",
    # Session Data
    "BookingIntent",
    "StatePayload",
]
