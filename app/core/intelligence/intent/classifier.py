"""
Deterministic intent classification for SMS replies.

Keyword and pattern rules only. The expected kind of the current state
narrows which intents can come back; global commands (STOP, START, HELP)
are checked first and always win.
"""

import logging
import re
from datetime import datetime
from typing import Optional, Sequence

from app.core.intelligence.slots.extractor import SlotExtractor, get_slot_extractor
from .types import ExpectedKind, Intent, IntentResult

logger = logging.getLogger(__name__)


OPT_OUT_KEYWORDS = frozenset({"stop", "stopall", "unsubscribe", "cancel", "quit", "end"})
OPT_IN_KEYWORDS = frozenset({"start", "subscribe", "unstop"})
HELP_KEYWORDS = frozenset({"help", "info", "?"})

CALLBACK_WORDS = {"1": 1, "1.": 1, "one": 1}
BOOK_WORDS = {"2": 2, "2.": 2, "two": 2}

CALLBACK_KEYWORDS = ("callback", "call", "ring")
BOOK_KEYWORDS = ("book", "appointment", "schedule")
MORE_KEYWORDS = frozenset({"more", "different", "other", "others", "later", "next", "another"})

ORDINALS = {
    "first": 0, "1st": 0,
    "second": 1, "2nd": 1,
    "third": 2, "3rd": 2,
    "fourth": 3, "4th": 3,
}

# "confirm" and its common misspellings, plus plain affirmatives
CONFIRM_TOKENS = frozenset({
    "confirm", "comfirm", "confrim", "confrm", "cofirm", "confim", "conferm",
    "comfrim", "confrom", "confiirm", "confirn", "confirme", "confirmed",
    "konfirm", "cunfirm", "confir", "confrirm",
    "book", "yes", "yep", "yeah", "ya", "yup", "y", "ok", "okay", "k",
    "sure", "perfect", "great",
})
CONFIRM_PHRASES = ("sounds good", "that works", "works for me")

_TRAILING_PUNCTUATION = re.compile(r"[\s.!,;]+$")
_WORD = re.compile(r"[a-z0-9?]+")
_NUMBER = re.compile(r"^(\d{1,2})\.?$")


def normalize(raw_text: str) -> str:
    """Trim, lowercase and drop trailing punctuation."""
    text = raw_text.strip().lower()
    stripped = _TRAILING_PUNCTUATION.sub("", text)
    return stripped or text


def _has_keyword(tokens: list[str], keywords: Sequence[str]) -> bool:
    return any(token.startswith(keyword) for token in tokens for keyword in keywords)


class IntentClassifier:
    """
    Rule-based intent classifier.

    Each expected kind has its own parser; anything the parser cannot map
    becomes FREE_TEXT (initial choice) or UNRESOLVED (a slot reply that
    looked like a confirmation but matched no offered slot).
    """

    def __init__(self, extractor: Optional[SlotExtractor] = None):
        """Initialize classifier.

        Args:
            extractor: Optional day/time extractor (for testing)
        """
        self._extractor = extractor

    def _get_extractor(self) -> SlotExtractor:
        """Get or create the day/time extractor."""
        if self._extractor is None:
            self._extractor = get_slot_extractor()
        return self._extractor

    def classify(
        self,
        raw_text: str,
        expected_kind: ExpectedKind,
        offered_slots: Sequence[datetime] = (),
    ) -> IntentResult:
        """
        Classify an inbound reply.

        Args:
            raw_text: Message body as received
            expected_kind: What the current state is waiting for
            offered_slots: Slots currently shown to the caller

        Returns:
            IntentResult; the raw text is kept for human follow-up
        """
        text = normalize(raw_text)

        result = self._classify_global(text, raw_text)
        if result is None:
            if expected_kind == ExpectedKind.BINARY_CHOICE:
                result = self._classify_choice(text, raw_text)
            elif expected_kind == ExpectedKind.CONFIRMATION:
                result = self._classify_slot_reply(
                    text, raw_text, offered_slots, Intent.CONFIRM
                )
            elif expected_kind == ExpectedKind.SLOT_SELECTION:
                result = self._classify_slot_reply(
                    text, raw_text, offered_slots, Intent.SELECT_SLOT
                )
            else:
                result = IntentResult(intent=Intent.FREE_TEXT, text=raw_text)

        logger.debug(
            f"Classified intent: {result.intent.value} "
            f"(expected={expected_kind.value}, slot_index={result.slot_index})"
        )
        return result

    def _classify_global(self, text: str, raw_text: str) -> Optional[IntentResult]:
        """Exact-match STOP / START / HELP commands."""
        if text in OPT_OUT_KEYWORDS:
            return IntentResult(intent=Intent.OPT_OUT, text=raw_text)
        if text in OPT_IN_KEYWORDS:
            return IntentResult(intent=Intent.OPT_IN, text=raw_text)
        if text in HELP_KEYWORDS or raw_text.strip() == "?":
            return IntentResult(intent=Intent.HELP, text=raw_text)
        return None

    def _classify_choice(self, text: str, raw_text: str) -> IntentResult:
        """Reply 1 for a callback, 2 to book."""
        if text in CALLBACK_WORDS:
            return IntentResult(intent=Intent.CHOOSE_CALLBACK, text=raw_text)
        if text in BOOK_WORDS:
            return IntentResult(intent=Intent.CHOOSE_BOOK, text=raw_text)

        tokens = _WORD.findall(text)
        if _has_keyword(tokens, CALLBACK_KEYWORDS):
            return IntentResult(intent=Intent.CHOOSE_CALLBACK, text=raw_text)
        if _has_keyword(tokens, BOOK_KEYWORDS):
            return IntentResult(intent=Intent.CHOOSE_BOOK, text=raw_text)

        return IntentResult(intent=Intent.FREE_TEXT, text=raw_text)

    def _classify_slot_reply(
        self,
        text: str,
        raw_text: str,
        offered_slots: Sequence[datetime],
        pick: Intent,
    ) -> IntentResult:
        """Replies to one offered slot (confirm) or a numbered page (select).

        Digits 1..N pick a slot and N+1 asks for more options.
        """
        offered = len(offered_slots)

        number = _NUMBER.match(text)
        if number:
            choice = int(number.group(1))
            if 1 <= choice <= offered:
                return IntentResult(intent=pick, text=raw_text, slot_index=choice - 1)
            if choice == offered + 1:
                return IntentResult(intent=Intent.REQUEST_MORE, text=raw_text)
            return IntentResult(intent=Intent.UNRESOLVED, text=raw_text)

        tokens = _WORD.findall(text)

        if pick == Intent.SELECT_SLOT:
            for token in tokens:
                if token in ORDINALS:
                    index = ORDINALS[token]
                    if index < offered:
                        return IntentResult(intent=pick, text=raw_text, slot_index=index)

        if _has_keyword(tokens, CALLBACK_KEYWORDS):
            return IntentResult(intent=Intent.CHOOSE_CALLBACK, text=raw_text)

        if any(token in MORE_KEYWORDS for token in tokens):
            return IntentResult(intent=Intent.REQUEST_MORE, text=raw_text)

        extractor = self._get_extractor()
        confirming = self.has_confirm_token(text)
        if confirming or extractor.extract(text).has_any():
            index = extractor.match_offered_slot(text, offered_slots)
            if index is not None:
                return IntentResult(intent=pick, text=raw_text, slot_index=index)
            return IntentResult(intent=Intent.UNRESOLVED, text=raw_text)

        return IntentResult(intent=Intent.FREE_TEXT, text=raw_text)

    @staticmethod
    def has_confirm_token(text: str) -> bool:
        """Check for an affirmative word (whole words only, never substrings)."""
        tokens = set(_WORD.findall(text.lower()))
        if tokens & CONFIRM_TOKENS:
            return True
        return any(phrase in text for phrase in CONFIRM_PHRASES)


# Singleton
_classifier: Optional[IntentClassifier] = None


def get_intent_classifier() -> IntentClassifier:
    """Get singleton IntentClassifier."""
    global _classifier
    if _classifier is None:
        _classifier = IntentClassifier()
    return _classifier


def classify_intent(
    raw_text: str,
    expected_kind: ExpectedKind,
    offered_slots: Sequence[datetime] = (),
) -> IntentResult:
    """Convenience function to classify intent."""
    return get_intent_classifier().classify(raw_text, expected_kind, offered_slots)
