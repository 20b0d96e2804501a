"""Tests for Intent Classifier."""

from datetime import datetime

import pytest

from app.core.intelligence.intent.classifier import (
    IntentClassifier,
    classify_intent,
    normalize,
)
from app.core.intelligence.intent.types import (
    LEGAL_INTENTS,
    ExpectedKind,
    Intent,
    IntentResult,
)


WED_0930 = datetime(2026, 10, 21, 9, 30)
PAGE = [
    datetime(2026, 10, 19, 9, 0),
    datetime(2026, 10, 19, 9, 30),
    datetime(2026, 10, 19, 10, 0),
]


@pytest.fixture
def classifier():
    return IntentClassifier()


class TestNormalize:
    """Test text normalization."""

    def test_trims_and_lowercases(self):
        assert normalize("  YES!  ") == "yes"

    def test_keeps_lone_punctuation(self):
        assert normalize("?") == "?"

    def test_numbered_reply(self):
        assert normalize("1.") == "1"


class TestGlobalCommands:
    """Test STOP / START / HELP in every state."""

    @pytest.mark.parametrize("kind", list(ExpectedKind))
    @pytest.mark.parametrize("text", ["STOP", "stop.", "Unsubscribe", "quit"])
    def test_opt_out(self, classifier, kind, text):
        result = classifier.classify(text, kind, PAGE)

        assert result.intent == Intent.OPT_OUT

    @pytest.mark.parametrize("kind", list(ExpectedKind))
    def test_opt_in(self, classifier, kind):
        assert classifier.classify("START", kind, PAGE).intent == Intent.OPT_IN

    @pytest.mark.parametrize("kind", list(ExpectedKind))
    @pytest.mark.parametrize("text", ["help", "INFO", "?"])
    def test_help(self, classifier, kind, text):
        assert classifier.classify(text, kind, PAGE).intent == Intent.HELP

    def test_stop_inside_a_sentence_is_not_opt_out(self, classifier):
        result = classifier.classify("please don't stop calling", ExpectedKind.BINARY_CHOICE)

        assert result.intent != Intent.OPT_OUT

    @pytest.mark.parametrize("kind", list(ExpectedKind))
    @pytest.mark.parametrize("text", ["cancel", "CANCEL", "Cancel."])
    def test_bare_cancel_is_opt_out(self, classifier, kind, text):
        assert classifier.classify(text, kind, PAGE).intent == Intent.OPT_OUT

    @pytest.mark.parametrize("kind", list(ExpectedKind))
    def test_cancel_inside_a_sentence_is_not_opt_out(self, classifier, kind):
        result = classifier.classify("I need to cancel my appointment", kind, PAGE)

        assert result.intent != Intent.OPT_OUT


class TestInitialChoice:
    """Test replies to the opening text."""

    @pytest.mark.parametrize("text", ["1", "1.", "one", "One!", " 1 "])
    def test_callback(self, classifier, text):
        result = classifier.classify(text, ExpectedKind.BINARY_CHOICE)

        assert result.intent == Intent.CHOOSE_CALLBACK

    @pytest.mark.parametrize("text", ["2", "2.", "two", "TWO"])
    def test_book(self, classifier, text):
        result = classifier.classify(text, ExpectedKind.BINARY_CHOICE)

        assert result.intent == Intent.CHOOSE_BOOK

    def test_digit_and_word_are_equivalent(self, classifier):
        assert (
            classifier.classify("1", ExpectedKind.BINARY_CHOICE).intent
            == classifier.classify("one", ExpectedKind.BINARY_CHOICE).intent
        )

    def test_keywords(self, classifier):
        assert classifier.classify(
            "Can you call me back?", ExpectedKind.BINARY_CHOICE
        ).intent == Intent.CHOOSE_CALLBACK
        assert classifier.classify(
            "I'd like to book a cleaning", ExpectedKind.BINARY_CHOICE
        ).intent == Intent.CHOOSE_BOOK

    def test_free_text_keeps_raw_text(self, classifier):
        result = classifier.classify("What are your prices?", ExpectedKind.BINARY_CHOICE)

        assert result.intent == Intent.FREE_TEXT
        assert result.text == "What are your prices?"


class TestConfirmation:
    """Test replies to a single offered slot."""

    def classify(self, classifier, text):
        return classifier.classify(text, ExpectedKind.CONFIRMATION, [WED_0930])

    @pytest.mark.parametrize("text", ["1", "yes", "YES!", "ok", "comfirm", "sounds good"])
    def test_confirm(self, classifier, text):
        result = self.classify(classifier, text)

        assert result == IntentResult(intent=Intent.CONFIRM, text=text, slot_index=0)

    def test_confirm_with_day_and_time(self, classifier):
        result = self.classify(classifier, "wed 9:30am confirm")

        assert result.intent == Intent.CONFIRM
        assert result.slot_index == 0

    @pytest.mark.parametrize("text", ["2", "more", "anything later"])
    def test_request_more(self, classifier, text):
        assert self.classify(classifier, text).intent == Intent.REQUEST_MORE

    def test_callback(self, classifier):
        assert self.classify(classifier, "just call me instead").intent == Intent.CHOOSE_CALLBACK

    def test_out_of_range_number(self, classifier):
        assert self.classify(classifier, "7").intent == Intent.UNRESOLVED

    def test_confirm_token_is_whole_word(self, classifier):
        """Test 'yesterday' does not count as 'yes'."""
        assert self.classify(classifier, "yesterday").intent == Intent.FREE_TEXT

    def test_unrelated_text(self, classifier):
        assert self.classify(classifier, "is parking free?").intent == Intent.FREE_TEXT


class TestSlotSelection:
    """Test replies to a numbered page."""

    def classify(self, classifier, text):
        return classifier.classify(text, ExpectedKind.SLOT_SELECTION, PAGE)

    @pytest.mark.parametrize("text,index", [
        ("1", 0),
        ("2", 1),
        ("3.", 2),
        ("second", 1),
        ("the 3rd one", 2),
        ("mon 9:30am", 1),
        ("monday 10", 2),
        ("930am", 1),
        ("ok 3", 2),
    ])
    def test_select(self, classifier, text, index):
        result = self.classify(classifier, text)

        assert result.intent == Intent.SELECT_SLOT
        assert result.slot_index == index

    def test_next_number_requests_more(self, classifier):
        assert self.classify(classifier, "4").intent == Intent.REQUEST_MORE

    def test_number_past_more_is_unresolved(self, classifier):
        assert self.classify(classifier, "5").intent == Intent.UNRESOLVED

    def test_confirm_like_but_unmatched(self, classifier):
        assert self.classify(classifier, "fri 3pm confirm").intent == Intent.UNRESOLVED

    def test_short_page(self, classifier):
        """Test numbering follows the page length."""
        result = classifier.classify("2", ExpectedKind.SLOT_SELECTION, PAGE[:1])

        assert result.intent == Intent.REQUEST_MORE


class TestTerminal:
    """Test replies after the conversation ended."""

    def test_anything_else_is_free_text(self, classifier):
        result = classifier.classify("2", ExpectedKind.NONE)

        assert result.intent == Intent.FREE_TEXT


class TestLegalIntents:
    """Test the classifier never returns an intent the state cannot take."""

    TEXTS = [
        "1", "2", "3", "4", "9", "one", "two", "yes", "no", "more", "call me",
        "book", "stop", "start", "help", "wed 9:30am confirm", "second",
        "fri 3pm confirm", "hello there", "", "?",
    ]

    @pytest.mark.parametrize("kind", list(ExpectedKind))
    def test_results_are_legal(self, classifier, kind):
        for text in self.TEXTS:
            result = classifier.classify(text, kind, PAGE)
            assert result.intent in LEGAL_INTENTS[kind], (text, result)

    def test_deterministic(self, classifier):
        for text in self.TEXTS:
            first = classifier.classify(text, ExpectedKind.SLOT_SELECTION, PAGE)
            second = classify_intent(text, ExpectedKind.SLOT_SELECTION, PAGE)
            assert first == second
