"""
Recurrence expansion.

Expands a recurring booking into the concrete occurrences that fall in a
query range. Weekday numbering is 0 = Sunday ... 6 = Saturday.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from app.config import settings
from app.core.intelligence.slots.dates import sunday_weekday

logger = logging.getLogger(__name__)


class RecurrenceRuleError(ValueError):
    """Raised for malformed recurrence rules."""
    pass


class RecurrenceFrequency(str, Enum):
    """How often a booking repeats."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    CUSTOM = "CUSTOM"  # Every `interval` days


@dataclass(frozen=True)
class RecurrenceRule:
    """Recurrence definition attached to a booking."""

    frequency: RecurrenceFrequency
    interval: int = 1
    by_weekday: Optional[frozenset[int]] = None
    by_monthday: Optional[frozenset[int]] = None
    end_date: Optional[datetime] = None
    occurrences: Optional[int] = None
    id: Optional[str] = None

    @staticmethod
    def parse_day_list(value: Optional[str]) -> Optional[frozenset[int]]:
        """Parse a stored "1,3,5" list."""
        if not value:
            return None
        return frozenset(int(part) for part in value.split(",") if part.strip())

    @classmethod
    def from_dict(cls, data: dict) -> "RecurrenceRule":
        """Create from dictionary (comma-separated day lists accepted)."""
        by_weekday = data.get("by_weekday")
        by_monthday = data.get("by_monthday")
        end_date = data.get("end_date")
        try:
            frequency = RecurrenceFrequency(str(data["frequency"]).upper())
        except ValueError:
            raise RecurrenceRuleError(f"Unknown recurrence frequency: {data['frequency']}")
        return cls(
            frequency=frequency,
            interval=int(data.get("interval", 1)),
            by_weekday=(
                cls.parse_day_list(by_weekday) if isinstance(by_weekday, str)
                else frozenset(by_weekday) if by_weekday else None
            ),
            by_monthday=(
                cls.parse_day_list(by_monthday) if isinstance(by_monthday, str)
                else frozenset(by_monthday) if by_monthday else None
            ),
            end_date=datetime.fromisoformat(end_date) if isinstance(end_date, str) else end_date,
            occurrences=data.get("occurrences"),
            id=data.get("id"),
        )


@dataclass(frozen=True)
class BookingOccurrence:
    """One concrete instance of a booking. Never persisted on its own."""

    start: datetime
    end: datetime
    original_booking_id: str
    occurrence_index: Optional[int] = None
    recurrence_rule_id: Optional[str] = None

    @property
    def is_recurring(self) -> bool:
        return self.occurrence_index is not None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open interval overlap."""
        return self.start < end and self.end > start


def add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class RecurrenceEngine:
    """Stateless recurrence expander."""

    def __init__(
        self,
        default_max_instances: Optional[int] = None,
        iteration_multiplier: Optional[int] = None,
    ):
        self.default_max_instances = (
            default_max_instances or settings.recurrence_default_max_instances
        )
        self.iteration_multiplier = (
            iteration_multiplier or settings.recurrence_iteration_multiplier
        )

    @staticmethod
    def validate(rule: RecurrenceRule, base_start: datetime, base_end: datetime) -> None:
        """Raise RecurrenceRuleError if the rule cannot be expanded."""
        if not isinstance(rule.frequency, RecurrenceFrequency):
            raise RecurrenceRuleError(f"Unknown recurrence frequency: {rule.frequency}")
        if rule.interval < 1:
            raise RecurrenceRuleError(f"Recurrence interval must be >= 1, got {rule.interval}")
        if base_end < base_start:
            raise RecurrenceRuleError("Booking end is before its start")
        if rule.occurrences is not None and rule.occurrences < 0:
            raise RecurrenceRuleError("Occurrence count cannot be negative")

    def expand_rule(
        self,
        rule: RecurrenceRule,
        base_start: datetime,
        base_end: datetime,
        range_start: datetime,
        range_end: datetime,
        booking_id: str,
        rule_id: Optional[str] = None,
    ) -> list[BookingOccurrence]:
        """
        Expand a rule into occurrences whose start lies in the query range.

        Generation steps forward from base_start and stops at range_end,
        the rule's end_date, its occurrence count, or the iteration cap.

        Args:
            rule: Recurrence rule
            base_start: Start of the first booking in the series
            base_end: End of the first booking in the series
            range_start: Query range start (inclusive)
            range_end: Query range end (inclusive)
            booking_id: Id of the booking that owns the series
            rule_id: Recurrence rule id (defaults to rule.id)

        Returns:
            Occurrences ordered by start ascending
        """
        self.validate(rule, base_start, base_end)

        duration = base_end - base_start
        max_occurrences = rule.occurrences or self.default_max_instances
        iteration_cap = self.iteration_multiplier * max(
            rule.occurrences or 0, self.default_max_instances
        )

        occurrences: list[BookingOccurrence] = []
        current = base_start
        index = 0

        while (
            current <= range_end
            and index < max_occurrences
            and (rule.end_date is None or current <= rule.end_date)
        ):
            if current >= range_start and self.matches_rule(rule, current):
                occurrences.append(
                    BookingOccurrence(
                        start=current,
                        end=current + duration,
                        original_booking_id=booking_id,
                        occurrence_index=index,
                        recurrence_rule_id=rule_id or rule.id,
                    )
                )

            index += 1
            if index >= iteration_cap:
                logger.warning(
                    f"Recurrence expansion for booking {booking_id} hit the iteration cap"
                )
                break
            current = self.occurrence_date(base_start, rule, index)

        return occurrences

    @staticmethod
    def matches_rule(rule: RecurrenceRule, moment: datetime) -> bool:
        """Weekday/monthday filter check."""
        if rule.frequency == RecurrenceFrequency.WEEKLY and rule.by_weekday:
            return sunday_weekday(moment.date()) in rule.by_weekday
        if rule.frequency == RecurrenceFrequency.MONTHLY and rule.by_monthday:
            return moment.day in rule.by_monthday
        return True

    @staticmethod
    def occurrence_date(base_start: datetime, rule: RecurrenceRule, index: int) -> datetime:
        """Start of the index-th generated instance (before filtering)."""
        if rule.frequency == RecurrenceFrequency.WEEKLY:
            return base_start + timedelta(days=7 * rule.interval * index)
        if rule.frequency == RecurrenceFrequency.MONTHLY:
            return add_months(base_start, rule.interval * index)
        # DAILY and CUSTOM
        return base_start + timedelta(days=rule.interval * index)

    def is_within_series(self, moment: datetime, base_start: datetime, rule: RecurrenceRule) -> bool:
        """Check if a moment could belong to the series (ignores counts)."""
        if moment < base_start:
            return False
        if rule.end_date is not None and moment > rule.end_date:
            return False
        return self.matches_rule(rule, moment)


_engine: Optional[RecurrenceEngine] = None


def get_recurrence_engine() -> RecurrenceEngine:
    """Get singleton RecurrenceEngine."""
    global _engine
    if _engine is None:
        _engine = RecurrenceEngine()
    return _engine
