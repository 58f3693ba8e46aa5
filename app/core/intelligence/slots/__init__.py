"""Slot extraction module."""

from .types import ExtractedSlots, TimeWindow, UrgencyLevel
from .dates import DateParser, get_date_parser, sunday_weekday
from .times import TimeParser, get_time_parser
from .urgency import UrgencyClassifier, get_urgency_classifier
from .extractor import (
    SlotExtractor,
    get_slot_extractor,
    extract_slots,
)

__all__ = [
    # Types
    "ExtractedSlots",
    "TimeWindow",
    "UrgencyLevel",
    # Parsers
    "DateParser",
    "get_date_parser",
    "sunday_weekday",
    "TimeParser",
    "get_time_parser",
    "UrgencyClassifier",
    "get_urgency_classifier",
    # Extractor
    "SlotExtractor",
    "get_slot_extractor",
    "extract_slots",
]
