"""
Customer-facing reply templates.

Wording is fixed: customers receive these strings verbatim and tests
assert on them, so they must not vary by locale or randomization.
"""

from datetime import date, datetime
from typing import Callable, Optional

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class MessageTemplates:
    """Formats scheduling outcomes into replies."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """Initialize templates.

        Args:
            clock: Returns the current local time; "today"/"tomorrow" are
                relative to it (for testing)
        """
        self._clock = clock or datetime.now

    def _today(self) -> date:
        return self._clock().date()

    # Formatting

    @staticmethod
    def format_time(slot: datetime) -> str:
        """12-hour clock: "3 PM", "3:30 PM"."""
        suffix = "PM" if slot.hour >= 12 else "AM"
        hour = slot.hour % 12 or 12
        if slot.minute:
            return f"{hour}:{slot.minute:02d} {suffix}"
        return f"{hour} {suffix}"

    def format_date(self, slot: date) -> str:
        """"today", "tomorrow", weekday name within a week, else "Jan 5"."""
        target = slot.date() if isinstance(slot, datetime) else slot
        days_until = (target - self._today()).days
        if days_until == 0:
            return "today"
        if days_until == 1:
            return "tomorrow"
        if 0 <= days_until < 7:
            return DAY_NAMES[target.weekday()]
        return f"{MONTH_ABBREVIATIONS[target.month - 1]} {target.day}"

    def format_when(self, slot: datetime) -> str:
        """"today at 3 PM", "tomorrow at 3 PM", "3 PM on Friday"."""
        day = self.format_date(slot)
        if day in ("today", "tomorrow"):
            return f"{day} at {self.format_time(slot)}"
        return f"{self.format_time(slot)} on {day}"

    def is_today(self, slot: datetime) -> bool:
        return slot.date() == self._today()

    # Slot offers

    def offer_slot(self, slot: datetime) -> str:
        return (
            f"The earliest I can offer is {self.format_when(slot)}. Does that work for you?"
        )

    def next_slot(self, slot: datetime) -> str:
        return (
            f"No problem — the next available time is {self.format_when(slot)}. Does that work?"
        )

    def confirm_booking(self, slot: datetime) -> str:
        return (
            f"Perfect — I've booked you for {self.format_when(slot)}. See you then!"
        )

    def urgent_slot(self, slot: datetime) -> str:
        if self.is_today(slot):
            return f"I can fit you in today at {self.format_time(slot)}. Does that work?"
        return self.offer_slot(slot)

    def closed_day(self, requested: date, next_open_slot: datetime) -> str:
        day = self.format_date(next_open_slot)
        when = day if day in ("today", "tomorrow") else f"on {day}"
        return (
            f"We're closed {self.format_date(requested)} — but I can fit you in {when} "
            f"at {self.format_time(next_open_slot)}. Does that work?"
        )

    def fully_booked(self, requested: date, next_available: datetime) -> str:
        return (
            f"We're fully booked {self.format_date(requested)} — but the next available "
            f"time is {self.format_when(next_available)}. Does that work?"
        )

    def window_unavailable(self, slot: datetime) -> str:
        return (
            f"I don't have availability in that time window, but the next available "
            f"time is {self.format_when(slot)}. Does that work?"
        )

    @staticmethod
    def no_availability() -> str:
        return (
            "I'm sorry, we don't have any availability in the next few weeks. "
            "Please call us directly to discuss options."
        )

    # Clarification

    @staticmethod
    def fallback() -> str:
        return "I'm having trouble finding a suitable time — can you tell me the date you prefer?"

    @staticmethod
    def clarify_date() -> str:
        return "What date works best for you?"

    @staticmethod
    def clarify_time() -> str:
        return "What time works best for you?"

    @staticmethod
    def clarify_time_window() -> str:
        return "Which time in that range works best for you?"

    @staticmethod
    def clarify_general() -> str:
        return "To make sure I offer the right time, what date would you prefer?"

    # Loops and resets

    @staticmethod
    def loop_reset() -> str:
        return "No problem — what date would you prefer?"

    @staticmethod
    def loop_hard_reset() -> str:
        return "Whenever you're ready, just tell me a date and I'll find the best available time."

    @staticmethod
    def memory_reset() -> str:
        return "Welcome back — what date works best for you?"

    # Handover

    @staticmethod
    def handover_escalated() -> str:
        return "Let me check this with the business owner and I'll get right back to you."

    @staticmethod
    def handover_silent() -> str:
        return "No problem — the business owner will respond directly from here."

    @staticmethod
    def handover_closed() -> str:
        return "All sorted — I'm here again if you need help booking anything."
