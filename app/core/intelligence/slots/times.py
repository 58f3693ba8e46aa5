"""
Natural language time-of-day interpretation.

Turns "morning", "around 3pm", "after 4" or "15:00" into a TimeWindow.
Vague phrasing ("3ish", "after school") is reported separately through
is_ambiguous() so callers can ask for a concrete time instead of
trusting the window.
"""

import logging
import re
from datetime import datetime
from typing import Optional

from app.config import settings
from .types import TimeWindow

logger = logging.getLogger(__name__)


# Named windows, longest phrase first so "early evening" wins over "evening"
NAMED_WINDOWS: list[tuple[str, TimeWindow]] = [
    (r"\bearly evening\b", TimeWindow(17, 0, 18, 30)),
    (r"\blate afternoon\b", TimeWindow(15, 0, 17, 0)),
    (r"\blunch\s*time\b|\blunch\b", TimeWindow(12, 0, 13, 30)),
    (r"\bmorning\b", TimeWindow(8, 0, 12, 0)),
    (r"\bafternoon\b", TimeWindow(12, 0, 17, 0)),
    (r"\bevening\b|\btonight\b", TimeWindow(17, 0, 20, 0)),
]

AMBIGUOUS_PATTERNS = [
    r"(?:\d\s*-?\s*ish|\bish)\b",
    r"\bafter school\b",
    r"\bbefore dinner\b",
    r"\bafter work\b",
    r"\bbefore lunch\b",
    r"\bend of (?:the )?day\b",
    r"\bstart of (?:the )?day\b",
    r"\bsometime\b",
    r"\bwhenever\b",
    r"\bany\s*time\b",
    r"\bflexible\b",
]

_HOUR = r"(\d{1,2})(?::(\d{2}))?(?!\d)\s*(am|pm|a\.m\.|p\.m\.)?"

_AROUND = re.compile(rf"\b(?:around|about|roughly|approx(?:imately)?)\s+{_HOUR}")
_AFTER = re.compile(rf"\b(?:after|from)\s+{_HOUR}")
_BEFORE = re.compile(rf"\b(?:before|by)\s+{_HOUR}")
_EXPLICIT_MERIDIEM = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm|a\.m\.|p\.m\.)")
_EXPLICIT_24H = re.compile(r"\b([01]?\d|2[0-3]):([0-5]\d)\b")
_AT_HOUR = re.compile(r"\bat\s+(\d{1,2})(?::(\d{2}))?\b")
_NOON = re.compile(r"\b(noon|midday)\b")

# Bare hours below this are assumed to be PM ("after 4" means 16:00)
PM_INFERENCE_BELOW = 8

DAY_START_MINUTES = 8 * 60
DAY_END_MINUTES = 21 * 60
EXPLICIT_WINDOW_MINUTES = 30
AROUND_MARGIN_MINUTES = 30


def _to_minutes(hour: str, minute: Optional[str], meridiem: Optional[str]) -> Optional[int]:
    """Convert matched hour/minute/meridiem groups to minutes since midnight."""
    h = int(hour)
    m = int(minute) if minute else 0
    if m > 59:
        return None

    if meridiem:
        if h < 1 or h > 12:
            return None
        is_pm = meridiem.startswith("p")
        if is_pm and h != 12:
            h += 12
        elif not is_pm and h == 12:
            h = 0
    else:
        if h > 23:
            return None
        if 1 <= h < PM_INFERENCE_BELOW:
            h += 12

    return h * 60 + m


class TimeParser:
    """Rule-based time window extraction."""

    def parse(self, text: str) -> Optional[TimeWindow]:
        """
        Parse a time-of-day expression.

        Args:
            text: Customer message

        Returns:
            TimeWindow or None if no time was mentioned
        """
        if not text:
            return None

        normalized = text.lower().strip()

        match = _AROUND.search(normalized)
        if match:
            minutes = _to_minutes(*match.groups())
            if minutes is not None:
                return TimeWindow.from_minutes(
                    minutes - AROUND_MARGIN_MINUTES, minutes + AROUND_MARGIN_MINUTES
                )

        match = _AFTER.search(normalized)
        if match:
            minutes = _to_minutes(*match.groups())
            if minutes is not None:
                end = max(DAY_END_MINUTES, minutes + 60)
                return TimeWindow.from_minutes(minutes, end)

        match = _BEFORE.search(normalized)
        if match:
            minutes = _to_minutes(*match.groups())
            if minutes is not None and minutes > DAY_START_MINUTES:
                return TimeWindow.from_minutes(DAY_START_MINUTES, minutes)

        explicit = self._parse_explicit(normalized)
        if explicit is not None:
            return TimeWindow.from_minutes(explicit, explicit + EXPLICIT_WINDOW_MINUTES)

        for pattern, window in NAMED_WINDOWS:
            if re.search(pattern, normalized):
                return window

        return None

    def _parse_explicit(self, normalized: str) -> Optional[int]:
        match = _EXPLICIT_MERIDIEM.search(normalized)
        if match:
            return _to_minutes(*match.groups())

        match = _EXPLICIT_24H.search(normalized)
        if match:
            hour, minute = match.groups()
            # "3:30" reads like "3"; "03:30" and "15:30" are literal
            if len(hour) == 1:
                return _to_minutes(hour, minute, None)
            return int(hour) * 60 + int(minute)

        if _NOON.search(normalized):
            return 12 * 60

        match = _AT_HOUR.search(normalized)
        if match:
            return _to_minutes(match.group(1), match.group(2), None)

        return None

    def is_ambiguous(self, text: str) -> bool:
        """True if the text uses vague time phrasing that needs a follow-up."""
        if not text:
            return False
        normalized = text.lower()
        return any(re.search(pattern, normalized) for pattern in AMBIGUOUS_PATTERNS)

    def is_too_broad(self, window: Optional[TimeWindow]) -> bool:
        """True if the window is wider than the configured maximum."""
        if window is None:
            return False
        return window.width_minutes > settings.max_time_window_minutes

    @staticmethod
    def format_time(hour: int, minute: int = 0) -> str:
        """Format as "3 PM" or "3:30 PM"."""
        suffix = "PM" if hour >= 12 else "AM"
        display = hour % 12 or 12
        if minute:
            return f"{display}:{minute:02d} {suffix}"
        return f"{display} {suffix}"

    def format_window(self, window: TimeWindow) -> str:
        """Format as "3 PM - 5 PM"."""
        return (
            f"{self.format_time(window.start_hour, window.start_minute)} - "
            f"{self.format_time(window.end_hour, window.end_minute)}"
        )

    @staticmethod
    def is_in_window(moment: datetime, window: TimeWindow) -> bool:
        """Check if a datetime's time-of-day falls inside the window."""
        minutes = moment.hour * 60 + moment.minute
        return window.start_minutes <= minutes < window.end_minutes


_parser: Optional[TimeParser] = None


def get_time_parser() -> TimeParser:
    """Get singleton TimeParser."""
    global _parser
    if _parser is None:
        _parser = TimeParser()
    return _parser
