"""
Deterministic slot extraction.

Runs the date, time and urgency parsers over one message and collects
the results into ExtractedSlots.
"""

import logging
from datetime import date
from typing import Optional

from .dates import DateParser, get_date_parser
from .times import TimeParser, get_time_parser
from .types import ExtractedSlots
from .urgency import UrgencyClassifier, get_urgency_classifier

logger = logging.getLogger(__name__)


class SlotExtractor:
    """Combines the rule-based parsers into a single extraction pass."""

    def __init__(
        self,
        date_parser: Optional[DateParser] = None,
        time_parser: Optional[TimeParser] = None,
        urgency_classifier: Optional[UrgencyClassifier] = None,
    ):
        """Initialize extractor.

        Args:
            date_parser: Optional DateParser (for testing)
            time_parser: Optional TimeParser (for testing)
            urgency_classifier: Optional urgency strategy (for testing)
        """
        self.dates = date_parser or get_date_parser()
        self.times = time_parser or get_time_parser()
        self.urgency = urgency_classifier or get_urgency_classifier()

    def extract(self, message: str, reference: Optional[date] = None) -> ExtractedSlots:
        """
        Extract slots from a customer message.

        Args:
            message: Customer's message
            reference: Date relative expressions resolve against

        Returns:
            ExtractedSlots with any found entities
        """
        message = (message or "").strip()
        if not message:
            return ExtractedSlots()

        result = ExtractedSlots(
            date=self.dates.parse(message, reference),
            time_window=self.times.parse(message),
            is_urgent=self.urgency.is_urgent(message),
            urgency_level=self.urgency.classify(message),
            is_ambiguous_time=self.times.is_ambiguous(message),
        )

        logger.debug(f"Extracted slots: {result.to_dict()}")
        return result


_extractor: Optional[SlotExtractor] = None


def get_slot_extractor() -> SlotExtractor:
    """Get singleton SlotExtractor."""
    global _extractor
    if _extractor is None:
        _extractor = SlotExtractor()
    return _extractor


def extract_slots(message: str, reference: Optional[date] = None) -> ExtractedSlots:
    """Convenience wrapper around the singleton extractor."""
    return get_slot_extractor().extract(message, reference)
