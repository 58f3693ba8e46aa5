"""Slot types for date/time/urgency extraction."""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class UrgencyLevel(str, Enum):
    """Coarse urgency buckets (logging only)."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class TimeWindow:
    """Time-of-day window on a 24h clock."""

    start_hour: int
    start_minute: int
    end_hour: int
    end_minute: int

    def __post_init__(self) -> None:
        if self.start_minutes >= self.end_minutes:
            raise ValueError(
                f"Time window start must be before end: "
                f"{self.start_hour:02d}:{self.start_minute:02d}-"
                f"{self.end_hour:02d}:{self.end_minute:02d}"
            )

    @property
    def start_minutes(self) -> int:
        """Minutes since midnight at window start."""
        return self.start_hour * 60 + self.start_minute

    @property
    def end_minutes(self) -> int:
        """Minutes since midnight at window end."""
        return self.end_hour * 60 + self.end_minute

    @property
    def width_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    @classmethod
    def from_minutes(cls, start: int, end: int) -> "TimeWindow":
        """Build a window from minutes-since-midnight, clamped to the day."""
        start = max(0, min(start, 24 * 60 - 1))
        end = max(start + 1, min(end, 24 * 60 - 1))
        return cls(start // 60, start % 60, end // 60, end % 60)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "start_hour": self.start_hour,
            "start_minute": self.start_minute,
            "end_hour": self.end_hour,
            "end_minute": self.end_minute,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimeWindow":
        """Create from dictionary."""
        return cls(
            start_hour=data["start_hour"],
            start_minute=data["start_minute"],
            end_hour=data["end_hour"],
            end_minute=data["end_minute"],
        )


@dataclass
class ExtractedSlots:
    """Everything the deterministic parsers pulled out of one message."""

    date: Optional[date] = None
    time_window: Optional[TimeWindow] = None
    is_urgent: bool = False
    urgency_level: UrgencyLevel = UrgencyLevel.NONE
    is_ambiguous_time: bool = False

    @property
    def has_date(self) -> bool:
        return self.date is not None

    @property
    def has_time(self) -> bool:
        return self.time_window is not None

    def has_any(self) -> bool:
        """Check if any slots were extracted."""
        return self.has_date or self.has_time or self.is_urgent

    def to_dict(self) -> dict:
        """Convert to dict, excluding empty values."""
        result: dict = {}
        if self.date:
            result["date"] = self.date.isoformat()
        if self.time_window:
            result["time_window"] = self.time_window.to_dict()
        if self.is_urgent:
            result["is_urgent"] = True
        if self.urgency_level != UrgencyLevel.NONE:
            result["urgency_level"] = self.urgency_level.value
        if self.is_ambiguous_time:
            result["is_ambiguous_time"] = True
        return result
