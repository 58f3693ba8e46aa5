"""Keyword-based urgency detection."""

import re
from typing import Optional

from .types import UrgencyLevel


HIGH_PRIORITY_PHRASES = [
    "today if possible",
    "as early as possible",
    "first thing",
    "straight away",
    "right away",
]

URGENT_KEYWORDS = [
    "urgent",
    "urgently",
    "asap",
    "as soon as possible",
    "emergency",
    "today",
    "right now",
    "immediately",
    "quick",
    "quickly",
    "soon",
    "soonest",
    "earliest",
    "first available",
    "next available",
]

LEVEL_KEYWORDS: list[tuple[UrgencyLevel, list[str]]] = [
    (UrgencyLevel.HIGH, ["emergency", "urgent", "urgently", "asap"]),
    (UrgencyLevel.MEDIUM, ["today", "soon", "first available"]),
    (UrgencyLevel.LOW, ["whenever", "no rush", "flexible"]),
]


def _compile(phrases: list[str]) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(p) for p in phrases) + r")\b")


class UrgencyClassifier:
    """
    Lexical urgency classifier.

    High-priority phrases are checked before single keywords. Swap in a
    different object exposing is_urgent()/classify() to change strategy.
    """

    def __init__(self):
        self._phrases = _compile(HIGH_PRIORITY_PHRASES)
        self._keywords = _compile(URGENT_KEYWORDS)
        self._levels = [(level, _compile(words)) for level, words in LEVEL_KEYWORDS]

    def is_urgent(self, text: str) -> bool:
        """True if the message asks for the earliest possible time."""
        if not text:
            return False
        normalized = text.lower().strip()
        if self._phrases.search(normalized):
            return True
        return bool(self._keywords.search(normalized))

    def classify(self, text: str) -> UrgencyLevel:
        """Coarse urgency bucket, used for logging and stored preferences."""
        if not text:
            return UrgencyLevel.NONE
        normalized = text.lower().strip()
        for level, pattern in self._levels:
            if pattern.search(normalized):
                return level
        return UrgencyLevel.NONE

    get_urgency_level = classify


_classifier: Optional[UrgencyClassifier] = None


def get_urgency_classifier() -> UrgencyClassifier:
    """Get singleton UrgencyClassifier."""
    global _classifier
    if _classifier is None:
        _classifier = UrgencyClassifier()
    return _classifier
