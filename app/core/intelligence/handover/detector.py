"""
Handover detection.

Decides whether a conversation should be taken over by a human. Content
detectors (explicit request, frustration, anger, confusion, complex
request, abandoning) each carry a severity; repeated declines and loops
read from ConversationMemory are escalation triggers of their own.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from app.config import settings
from app.core.intelligence.session.manager import ConversationMemory

logger = logging.getLogger(__name__)


# Detectors at or above this severity escalate on their own
ESCALATION_SEVERITY = 6
# VIP customers escalate from this severity up
VIP_ESCALATION_SEVERITY = 4
VIP_MIN_SCORE = 8

REPEATED_DECLINE_THRESHOLD = 3


@dataclass
class HandoverDecision:
    """Result of handover detection."""

    should_escalate: bool
    reason: Optional[str] = None
    urgency_score: int = 1
    triggers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "should_escalate": self.should_escalate,
            "reason": self.reason,
            "urgency_score": self.urgency_score,
            "triggers": self.triggers,
        }


def _phrase_pattern(phrases: list[str]) -> re.Pattern:
    return re.compile(
        r"(?<!\w)(?:" + "|".join(re.escape(p) for p in phrases) + r")(?!\w)"
    )


EXPLICIT_HUMAN_PHRASES = [
    "speak to a human",
    "talk to a human",
    "talk to a real person",
    "speak to someone",
    "talk to someone",
    "human please",
    "real person",
    "not a bot",
    "actual person",
    "speak to owner",
    "talk to owner",
    "speak to the owner",
    "talk to the owner",
    "speak to manager",
    "talk to manager",
    "speak to a manager",
    "talk to a manager",
    "can i speak",
    "can i talk",
    "let me speak",
    "let me talk",
    "want to speak",
    "want to talk",
    "need to speak",
    "need to talk",
]

FRUSTRATION_PHRASES = [
    "this is ridiculous",
    "this is frustrating",
    "not working",
    "this sucks",
    "waste of time",
    "seriously?",
    "come on",
    "for real?",
    "are you kidding",
    "you kidding me",
    "this again",
    "over and over",
    "keep asking",
    "already told you",
    "i already said",
    "listen to me",
    "pay attention",
]

ANGER_PHRASES = [
    "fuck",
    "fucking",
    "shit",
    "damn",
    "pissed",
    "angry",
    "furious",
    "ridiculous",
    "unacceptable",
    "terrible",
    "worst",
    "horrible",
    "pathetic",
    "useless",
    "incompetent",
    "idiot",
    "stupid",
]

CONFUSION_PHRASES = [
    "i don't understand",
    "don't get it",
    "confused",
    "what do you mean",
    "what are you asking",
    "not sure what",
    "i'm lost",
    "makes no sense",
    "unclear",
    "explain",
    "huh?",
    "what?",
]

COMPLEX_REQUEST_PHRASES = [
    "multiple people",
    "group booking",
    "team booking",
    "special request",
    "custom",
    "different times",
    "recurring",
    "every week",
    "standing appointment",
    "change my schedule",
    "reschedule everything",
    "cancel all",
    "pricing question",
    "how much",
    "cost",
    "payment",
    "refund",
    "discount",
    "package",
    "membership",
]

ABANDONING_PHRASES = [
    "never mind",
    "nevermind",
    "forget it",
    "cancel",
    "not interested",
    "i'm done",
    "goodbye",
    "bye",
    "leave me alone",
    "don't bother",
    "i'll call",
    "i'll try later",
]

_EXPLICIT_HUMAN = _phrase_pattern(EXPLICIT_HUMAN_PHRASES)
_FRUSTRATION = _phrase_pattern(FRUSTRATION_PHRASES)
_ANGER = _phrase_pattern(ANGER_PHRASES)
_CONFUSION = _phrase_pattern(CONFUSION_PHRASES)
_COMPLEX = _phrase_pattern(COMPLEX_REQUEST_PHRASES)
_ABANDONING = _phrase_pattern(ABANDONING_PHRASES)
_EXCESSIVE_PUNCTUATION = re.compile(r"[!?]{3,}")

# (trigger, severity, reason)
EXPLICIT_HUMAN = ("explicit_human_request", 8, "Customer requested to speak with a human")
FRUSTRATION = ("frustration_detected", 7, "Customer showing signs of frustration")
ANGER = ("anger_detected", 9, "Customer showing signs of anger")
CONFUSION = ("confusion_detected", 6, "Customer appears confused")
COMPLEX_REQUEST = ("complex_request", 6, "Request too complex for AI")
ABANDONING = ("abandoning", 4, "Customer may be abandoning the conversation")


class HandoverDetectionEngine:
    """Scores a message and its conversation for escalation."""

    def __init__(self, memory: ConversationMemory):
        self.memory = memory

    @staticmethod
    def _normalize(message: str) -> str:
        return (message or "").lower().strip().replace("’", "'")

    def is_explicit_human_request(self, message: str) -> bool:
        return bool(_EXPLICIT_HUMAN.search(self._normalize(message)))

    def is_frustrated(self, message: str) -> bool:
        return bool(_FRUSTRATION.search(self._normalize(message)))

    def is_angry(self, message: str) -> bool:
        """Anger words or runs of !!! / ???. Capitals alone are not anger."""
        normalized = self._normalize(message)
        return bool(_ANGER.search(normalized)) or bool(_EXCESSIVE_PUNCTUATION.search(normalized))

    def is_confused(self, message: str) -> bool:
        normalized = self._normalize(message)
        return bool(_CONFUSION.search(normalized)) or normalized.count("?") >= 3

    def is_complex_request(self, message: str) -> bool:
        return bool(_COMPLEX.search(self._normalize(message)))

    def is_abandoning(self, message: str) -> bool:
        return bool(_ABANDONING.search(self._normalize(message)))

    def _content_detectors(self, message: str) -> list[tuple[str, int, str]]:
        checks = [
            (self.is_explicit_human_request, EXPLICIT_HUMAN),
            (self.is_frustrated, FRUSTRATION),
            (self.is_angry, ANGER),
            (self.is_confused, CONFUSION),
            (self.is_complex_request, COMPLEX_REQUEST),
            (self.is_abandoning, ABANDONING),
        ]
        return [detector for check, detector in checks if check(message)]

    async def detect_handover(
        self,
        message: str,
        conversation_id: str,
        is_vip: bool = False,
    ) -> HandoverDecision:
        """
        Decide whether to escalate.

        Args:
            message: Inbound customer message
            conversation_id: Conversation identifier
            is_vip: Whether the customer is flagged VIP

        Returns:
            HandoverDecision with score (1-10), triggers and reason
        """
        triggers: list[str] = []
        score = 0
        reason: Optional[str] = None
        escalate = False

        fired = self._content_detectors(message)
        for trigger, severity, detector_reason in fired:
            triggers.append(trigger)
            if severity > score:
                score = severity
                reason = detector_reason
            if severity >= ESCALATION_SEVERITY:
                escalate = True

        if is_vip and any(severity >= VIP_ESCALATION_SEVERITY for _, severity, _ in fired):
            triggers.append("vip_customer")
            score = max(score, VIP_MIN_SCORE)
            reason = reason or "VIP customer requires attention"
            escalate = True

        decline_count = await self.memory.get_decline_count(conversation_id)
        if decline_count >= REPEATED_DECLINE_THRESHOLD:
            triggers.append("repeated_declines")
            if score < 7:
                score = 7
                reason = f"Customer declined {decline_count} time slots"
            escalate = True

        loop_count = await self.memory.get_loop_count(conversation_id)
        if loop_count >= settings.loop_hard_reset_threshold:
            triggers.append("loop_detected")
            if score < 8:
                score = 8
                reason = "Conversation stuck in loop"
            escalate = True

        decision = HandoverDecision(
            should_escalate=escalate,
            reason=reason if escalate else None,
            urgency_score=min(max(score, 1), 10),
            triggers=triggers,
        )

        if decision.should_escalate:
            logger.info(
                f"Handover detected for {conversation_id}: "
                f"score={decision.urgency_score} triggers={decision.triggers}"
            )
        return decision

    @staticmethod
    def get_urgency_level(score: int) -> str:
        """Human-readable urgency for a 1-10 score."""
        if score >= 9:
            return "CRITICAL"
        if score >= 7:
            return "HIGH"
        if score >= 5:
            return "MEDIUM"
        return "LOW"
