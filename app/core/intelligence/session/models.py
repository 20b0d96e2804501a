"""
Conversation state payload.

The payload travels with a conversation row as JSON and holds what the
caller is currently looking at:

    {"offeredSlots": ["2026-10-21T09:30:00", ...], "pageOffset": 0, "intent": "book"}

Each status allows exactly one payload shape; `validate_for` enforces it
before anything is persisted.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .state import ConversationStatus


class BookingIntent(str, Enum):
    """What the caller originally asked for."""

    BOOK = "book"
    CALLBACK = "callback"


class InvalidPayloadError(ValueError):
    """Raised when a payload does not fit the conversation status."""


@dataclass(frozen=True)
class StatePayload:
    """Offered slots, paging offset and original intent of a conversation."""

    intent: Optional[BookingIntent] = None
    offered_slots: tuple[datetime, ...] = field(default_factory=tuple)
    page_offset: int = 0

    @property
    def offered_count(self) -> int:
        return len(self.offered_slots)

    @property
    def next_offset(self) -> int:
        """Calendar offset of the first slot after the current offer."""
        return self.page_offset + len(self.offered_slots)

    def with_offer(self, slots: list[datetime], page_offset: int) -> "StatePayload":
        """Return a copy holding a new offer."""
        return replace(self, offered_slots=tuple(slots), page_offset=page_offset)

    def cleared(self) -> "StatePayload":
        """Drop the offer but keep the intent."""
        return StatePayload(intent=self.intent)

    def validate_for(self, status: ConversationStatus, max_page_size: int) -> None:
        """Check the payload shape allowed for a status.

        Raises:
            InvalidPayloadError: If the shape does not match
        """
        count = len(self.offered_slots)

        if status == ConversationStatus.AWAITING_SLOT_CONFIRMATION:
            if count != 1:
                raise InvalidPayloadError(
                    f"{status.value} requires exactly one offered slot, got {count}"
                )
        elif status == ConversationStatus.AWAITING_SLOT_SELECTION:
            if not 1 <= count <= max_page_size:
                raise InvalidPayloadError(
                    f"{status.value} requires 1..{max_page_size} offered slots, got {count}"
                )
        elif count:
            raise InvalidPayloadError(f"{status.value} cannot hold offered slots")

        if self.page_offset < 0:
            raise InvalidPayloadError("pageOffset must not be negative")

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored JSON shape."""
        data: dict[str, Any] = {
            "offeredSlots": [slot.isoformat() for slot in self.offered_slots],
            "pageOffset": self.page_offset,
        }
        if self.intent:
            data["intent"] = self.intent.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "StatePayload":
        """Create from the stored JSON shape (None means empty)."""
        if not data:
            return cls()

        intent = None
        if data.get("intent"):
            try:
                intent = BookingIntent(data["intent"])
            except ValueError:
                raise InvalidPayloadError(f"Unknown intent: {data['intent']}")

        return cls(
            intent=intent,
            offered_slots=tuple(
                datetime.fromisoformat(value) for value in data.get("offeredSlots", [])
            ),
            page_offset=int(data.get("pageOffset", 0)),
        )

    @classmethod
    def from_json(cls, json_str: str) -> "StatePayload":
        return cls.from_dict(json.loads(json_str))
