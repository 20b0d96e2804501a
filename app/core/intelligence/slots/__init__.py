"""Day/time extraction module."""

from .types import ExtractedSlots, ExtractedTime
from .extractor import (
    SlotExtractor,
    get_slot_extractor,
    extract_slots,
    match_offered_slot,
)

__all__ = [
    # Types
    "ExtractedSlots",
    "ExtractedTime",
    # Extractor
    "SlotExtractor",
    "get_slot_extractor",
    "extract_slots",
    "match_offered_slot",
]
