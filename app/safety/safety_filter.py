"""
Safety Filter Module

Screens inbound customer messages before any scheduling logic runs.
Unsafe messages are never processed further: the caller sends the
category's fixed deflection reply and hands the conversation to a human.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class SafetyCategory(str, Enum):
    """Unsafe content categories, in check priority order."""

    SELF_HARM = "self-harm"
    ABUSE = "abuse"
    ILLEGAL = "illegal"
    MEDICAL = "medical"
    SEXUAL = "sexual"


@dataclass
class SafetyCheckResult:
    """Result of a safety check."""

    safe: bool
    category: Optional[SafetyCategory] = None
    matched_pattern: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            "safe": self.safe,
            "type": self.category.value if self.category else None,
        }


# ==================================
# Safety Patterns Configuration
# ==================================

SELF_HARM_PATTERNS = [
    r"\bkill(ing)?\s+myself\b",
    r"\bend\s+my\s+life\b",
    r"\bwant\s+to\s+die\b",
    r"\bsuicid(e|al)\b",
    r"\bhurt(ing)?\s+myself\b",
    r"\bself[- ]?harm(ing)?\b",
    r"\bcutting\s+myself\b",
    r"\bend\s+it\s+all\b",
    r"\bdon'?t\s+want\s+to\s+live\b",
    r"\bbetter\s+off\s+dead\b",
]

ABUSE_PATTERNS = [
    r"\bkill\s+you\b",
    r"\bhurt\s+you\b",
    r"\bbomb\b",
    r"\bshoot\s+you\b",
    r"\bmurder\b",
    r"\battack\s+you\b",
    r"\bi('ll| will)\s+find\s+you\b",
    r"\bi('ll| will)\s+get\s+you\b",
    r"\bdestroy\s+you\b",
]

# Three or more of these in one message counts as abuse
AGGRESSIVE_WORDS = ["fuck", "fucking", "shit", "bitch", "damn", "asshole"]
AGGRESSION_THRESHOLD = 3

ILLEGAL_PATTERNS = [
    r"\b(buy|sell)(ing)?\s+drugs\b",
    r"\bcocaine\b",
    r"\bheroin\b",
    r"\bmeth\b",
    r"\bweapons?\b",
    r"\billegal\b",
    r"\bstolen\b",
    r"\bfake\s+id\b",
    r"\bcounterfeit\b",
]

MEDICAL_PATTERNS = [
    r"\bdiagnos(e|is)\b",
    r"\bwhat\s+do\s+i\s+have\b",
    r"\bmedical\s+advice\b",
    r"\bprescription\b",
    r"\bmedicine\s+for\b",
    r"\btreatment\s+for\b",
    r"\bcure\s+for\b",
    r"\bsymptoms\s+of\b",
]

SEXUAL_PATTERNS = [
    r"\bsex(ual)?\b",
    r"\bporn\b",
    r"\bnaked\b",
    r"\bnude\b",
    r"\berotic\b",
    r"\bescort\b",
    r"\bprostitute\b",
]

PATTERNS_BY_CATEGORY: list[tuple[SafetyCategory, list[str]]] = [
    (SafetyCategory.SELF_HARM, SELF_HARM_PATTERNS),
    (SafetyCategory.ABUSE, ABUSE_PATTERNS),
    (SafetyCategory.ILLEGAL, ILLEGAL_PATTERNS),
    (SafetyCategory.MEDICAL, MEDICAL_PATTERNS),
    (SafetyCategory.SEXUAL, SEXUAL_PATTERNS),
]

DEFLECTION_MESSAGES: dict[SafetyCategory, str] = {
    SafetyCategory.SELF_HARM: (
        "I'm really sorry you're feeling this way — I'm not able to help. "
        "Please contact local emergency services or someone you trust."
    ),
    SafetyCategory.ABUSE: "I can help with appointments — what date works best?",
    SafetyCategory.ILLEGAL: "I can only help with scheduling appointments.",
    SafetyCategory.MEDICAL: "I can only help with scheduling appointments.",
    SafetyCategory.SEXUAL: "I'm here to assist with scheduling only.",
}

DEFAULT_DEFLECTION = "I can only help with scheduling appointments."


class SafetyFilter:
    """
    Lexical content screen.

    Categories are checked in a fixed order and the first match wins.
    """

    def __init__(self):
        self._compiled = [
            (category, [re.compile(p) for p in patterns])
            for category, patterns in PATTERNS_BY_CATEGORY
        ]
        self._aggressive = [re.compile(rf"\b{w}\b") for w in AGGRESSIVE_WORDS]

    def check(self, message: str) -> SafetyCheckResult:
        """
        Check a message for unsafe content.

        Args:
            message: Raw inbound message

        Returns:
            SafetyCheckResult (safe=True if no category matched)
        """
        if not message:
            return SafetyCheckResult(safe=True)

        normalized = message.lower().strip().replace("’", "'")

        for category, patterns in self._compiled:
            for pattern in patterns:
                if pattern.search(normalized):
                    logger.warning(f"Unsafe content detected: {category.value}")
                    return SafetyCheckResult(
                        safe=False, category=category, matched_pattern=pattern.pattern
                    )

            if category == SafetyCategory.ABUSE and self._is_aggressive(normalized):
                logger.warning("Unsafe content detected: aggressive language")
                return SafetyCheckResult(safe=False, category=category)

        return SafetyCheckResult(safe=True)

    def _is_aggressive(self, normalized: str) -> bool:
        hits = sum(1 for pattern in self._aggressive if pattern.search(normalized))
        return hits >= AGGRESSION_THRESHOLD

    def classify(self, message: str) -> Optional[SafetyCategory]:
        """Category of the message, or None if safe."""
        return self.check(message).category

    @staticmethod
    def get_deflection_message(category: Optional[SafetyCategory]) -> str:
        """Fixed reply for an unsafe category."""
        if category is None:
            return DEFAULT_DEFLECTION
        return DEFLECTION_MESSAGES.get(category, DEFAULT_DEFLECTION)


# ==================================
# Module-level convenience functions
# ==================================

_filter: Optional[SafetyFilter] = None


def get_safety_filter() -> SafetyFilter:
    """Get singleton SafetyFilter."""
    global _filter
    if _filter is None:
        _filter = SafetyFilter()
    return _filter


def check_message(message: str) -> SafetyCheckResult:
    """Check a message using the singleton filter."""
    return get_safety_filter().check(message)
