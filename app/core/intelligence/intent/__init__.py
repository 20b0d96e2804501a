"""Intent classification module."""

from .types import ExpectedKind, Intent, IntentResult
from .classifier import (
    IntentClassifier,
    get_intent_classifier,
    classify_intent,
)

__all__ = [
    # Types
    "ExpectedKind",
    "Intent",
    "IntentResult",
    # Classifier
    "IntentClassifier",
    "get_intent_classifier",
    "classify_intent",
]
