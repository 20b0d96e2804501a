"""
Conversation session module.

State enum and payload struct only; the database-backed ConversationStore
is imported from .manager directly since it depends on the ORM models.
"""

from .state import ConversationStatus, can_transition, is_terminal_state
from .models import BookingIntent, InvalidPayloadError, StatePayload

__all__ = [
    # State
    "ConversationStatus",
    "can_transition",
    "is_terminal_state",
    # Models
    "BookingIntent",
    "InvalidPayloadError",
    "StatePayload",
]
