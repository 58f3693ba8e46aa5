"""
Natural language date interpretation.

Parses "tomorrow", "Friday", "next week", "the 12th", "March 15",
"2026-03-15" and "3/15" into a calendar date. A return value of None
means no date was mentioned; it is never an error.
"""

import calendar
import logging
import re
from datetime import date, timedelta
from typing import Optional

logger = logging.getLogger(__name__)

# Weekday numbering follows the data model: 0 = Sunday ... 6 = Saturday
_WEEKDAY_PATTERNS = [
    (re.compile(r"\bsun(day)?\b"), 0),
    (re.compile(r"\bmon(day)?\b"), 1),
    (re.compile(r"\btue(s|sday)?\b"), 2),
    (re.compile(r"\bwed(nesday)?\b"), 3),
    (re.compile(r"\bthu(r|rs|rsday)?\b"), 4),
    (re.compile(r"\bfri(day)?\b"), 5),
    (re.compile(r"\bsat(urday)?\b"), 6),
]

MONTHS = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]

_MONTH_ALT = "|".join(
    f"{name[:3]}(?:{name[3:]})?" if len(name) > 3 else name for name in MONTHS
)

_TODAY = re.compile(r"\b(today|tonight|now|asap)\b")
_TOMORROW = re.compile(r"\b(tomorrow|tmw|tmrw|tmr)\b")
_DAY_AFTER_TOMORROW = re.compile(r"\bday after (tomorrow|tmw|tmrw|tmr)\b")
_THIS_WEEKEND = re.compile(r"\b(this )?weekend\b")
_NEXT_WEEKEND = re.compile(r"\bnext weekend\b")
_NEXT_WEEK = re.compile(r"\bnext week\b")
_ISO_DATE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_US_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b")
_MONTH_DAY = re.compile(rf"\b({_MONTH_ALT})\.?\s+(?:the\s+)?(\d{{1,2}})(?:st|nd|rd|th)?\b")
_DAY_MONTH = re.compile(rf"\b(?:the\s+)?(\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?({_MONTH_ALT})\b")
_ORDINAL_DAY = re.compile(r"\b(?:the\s+)?(\d{1,2})(?:st|nd|rd|th)\b|\bthe\s+(\d{1,2})\b(?!\s*(?:am|pm|:))")


def sunday_weekday(day: date) -> int:
    """Weekday with 0 = Sunday, matching the availability/recurrence model."""
    return (day.weekday() + 1) % 7


def _month_index(token: str) -> int:
    token = token.lower().rstrip(".")
    for i, name in enumerate(MONTHS):
        if name.startswith(token[:3]):
            return i + 1
    raise ValueError(f"Unknown month: {token}")


class DateParser:
    """Rule-based date extraction."""

    def parse(self, text: str, reference: Optional[date] = None) -> Optional[date]:
        """
        Parse a natural language date expression.

        Args:
            text: Customer message
            reference: Date the message is relative to (default: today)

        Returns:
            Calendar date or None if no date was found
        """
        if not text:
            return None

        ref = reference or date.today()
        normalized = text.lower().strip()

        if _DAY_AFTER_TOMORROW.search(normalized):
            return ref + timedelta(days=2)

        if _TODAY.search(normalized):
            return ref

        if _TOMORROW.search(normalized):
            return ref + timedelta(days=1)

        explicit = self._parse_explicit(normalized, ref)
        if explicit is not None:
            return explicit

        if _NEXT_WEEKEND.search(normalized):
            return self._upcoming_saturday(ref) + timedelta(days=7)

        if _THIS_WEEKEND.search(normalized):
            return self._upcoming_saturday(ref)

        for pattern, weekday in _WEEKDAY_PATTERNS:
            if pattern.search(normalized):
                days_until = (weekday - sunday_weekday(ref)) % 7
                if re.search(rf"\bnext\s+{pattern.pattern[2:]}", normalized) or _NEXT_WEEK.search(normalized):
                    days_until += 7
                return ref + timedelta(days=days_until)

        if _NEXT_WEEK.search(normalized):
            return ref + timedelta(days=7)

        return None

    def _parse_explicit(self, normalized: str, ref: date) -> Optional[date]:
        """ISO, US, month-name and ordinal day formats."""
        match = _ISO_DATE.search(normalized)
        if match:
            try:
                return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
            except ValueError:
                logger.debug(f"Invalid ISO date: {match.group(0)}")
                return None

        match = _US_DATE.search(normalized)
        if match:
            month, day = int(match.group(1)), int(match.group(2))
            year = ref.year
            if match.group(3):
                year = int(match.group(3))
                if year < 100:
                    year += 2000
            try:
                parsed = date(year, month, day)
            except ValueError:
                logger.debug(f"Invalid US date: {match.group(0)}")
                return None
            if not match.group(3) and parsed < ref:
                parsed = self._safe_date(year + 1, month, day) or parsed
            return parsed

        match = _MONTH_DAY.search(normalized)
        if match:
            return self._month_day(_month_index(match.group(1)), int(match.group(2)), ref)

        match = _DAY_MONTH.search(normalized)
        if match:
            return self._month_day(_month_index(match.group(2)), int(match.group(1)), ref)

        match = _ORDINAL_DAY.search(normalized)
        if match:
            day = int(match.group(1) or match.group(2))
            if 1 <= day <= 31:
                return self._next_day_of_month(day, ref)

        return None

    def _month_day(self, month: int, day: int, ref: date) -> Optional[date]:
        parsed = self._safe_date(ref.year, month, day)
        if parsed is None:
            return None
        if parsed < ref:
            # Date already passed this year
            return self._safe_date(ref.year + 1, month, day)
        return parsed

    def _next_day_of_month(self, day: int, ref: date) -> Optional[date]:
        """First date on/after ref whose day-of-month is `day`."""
        year, month = ref.year, ref.month
        for _ in range(12):
            candidate = self._safe_date(year, month, day)
            if candidate is not None and candidate >= ref:
                return candidate
            month += 1
            if month > 12:
                month, year = 1, year + 1
        return None

    @staticmethod
    def _safe_date(year: int, month: int, day: int) -> Optional[date]:
        if not 1 <= month <= 12:
            return None
        if not 1 <= day <= calendar.monthrange(year, month)[1]:
            return None
        return date(year, month, day)

    @staticmethod
    def _upcoming_saturday(ref: date) -> date:
        if sunday_weekday(ref) == 0:
            # Sunday is still "this weekend"
            return ref
        return ref + timedelta(days=(6 - sunday_weekday(ref)) % 7)

    @staticmethod
    def format_date(day: date, today: Optional[date] = None) -> str:
        """
        Format a date for humans.

        "today", "tomorrow", a weekday name within the coming week,
        otherwise "Wednesday, March 18".
        """
        today = today or date.today()
        delta = (day - today).days
        if delta == 0:
            return "today"
        if delta == 1:
            return "tomorrow"
        if 0 <= delta < 7:
            return calendar.day_name[day.weekday()]
        return f"{calendar.day_name[day.weekday()]}, {calendar.month_name[day.month]} {day.day}"

    @staticmethod
    def is_past(day: date, today: Optional[date] = None) -> bool:
        """Check if a date is before today."""
        return day < (today or date.today())


_parser: Optional[DateParser] = None


def get_date_parser() -> DateParser:
    """Get singleton DateParser."""
    global _parser
    if _parser is None:
        _parser = DateParser()
    return _parser
