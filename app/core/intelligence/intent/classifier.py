"""
Keyword-based confirmation/decline classification.

Negations win over confirmation words ("yes but I can't do that" is a
decline). Requests for a different time count as a decline of the
current proposal.
"""

import logging
import re
from typing import Optional

from .types import ReplyIntent

logger = logging.getLogger(__name__)


DECLINE_PHRASES = [
    "no",
    "nope",
    "nah",
    "not",
    "can't",
    "cant",
    "cannot",
    "won't",
    "wont",
    "doesn't work",
    "doesnt work",
    "busy",
]

CONFIRM_PHRASES = [
    "yes",
    "yeah",
    "yep",
    "yup",
    "sure",
    "ok",
    "okay",
    "perfect",
    "great",
    "sounds good",
    "that works",
    "works for me",
    "confirm",
    "book it",
    "book me",
    "let's do it",
    "lets do it",
]

ALTERNATIVE_PHRASES = [
    "different",
    "another",
    "else",
    "later",
    "earlier",
    "other time",
]


def _compile(phrases: list[str]) -> re.Pattern:
    return re.compile(
        r"(?<![\w'])(?:" + "|".join(re.escape(p) for p in phrases) + r")(?![\w'])"
    )


class ReplyClassifier:
    """Classifies replies to a proposed slot."""

    def __init__(self):
        self._decline = _compile(DECLINE_PHRASES)
        self._confirm = _compile(CONFIRM_PHRASES)
        self._alternative = _compile(ALTERNATIVE_PHRASES)

    def classify(self, text: str) -> ReplyIntent:
        """
        Classify a reply.

        Args:
            text: Customer's message

        Returns:
            ReplyIntent.CONFIRM, ReplyIntent.DECLINE or ReplyIntent.NONE
        """
        if not text:
            return ReplyIntent.NONE

        normalized = text.lower().strip().replace("’", "'")

        if self._decline.search(normalized):
            return ReplyIntent.DECLINE
        if self._confirm.search(normalized):
            return ReplyIntent.CONFIRM
        if self._alternative.search(normalized):
            return ReplyIntent.DECLINE
        return ReplyIntent.NONE

    def is_confirmation(self, text: str) -> bool:
        return self.classify(text) == ReplyIntent.CONFIRM

    def is_decline(self, text: str) -> bool:
        return self.classify(text) == ReplyIntent.DECLINE


_classifier: Optional[ReplyClassifier] = None


def get_reply_classifier() -> ReplyClassifier:
    """Get singleton ReplyClassifier."""
    global _classifier
    if _classifier is None:
        _classifier = ReplyClassifier()
    return _classifier


def classify_reply(text: str) -> ReplyIntent:
    """Convenience wrapper around the singleton classifier."""
    return get_reply_classifier().classify(text)
