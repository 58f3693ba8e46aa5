"""
Scheduling store interface.

The engine reads availability, blocked times and bookings and writes
bookings and handover state through this interface. SqlSchedulingStore
is the production implementation; tests use an in-memory fake.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional

from .recurrence import BookingOccurrence, RecurrenceRule


class StoreError(Exception):
    """Raised when the relational store cannot be read or written."""
    pass


@dataclass(frozen=True)
class AvailabilityRange:
    """Weekly opening hours for one weekday (0 = Sunday)."""

    weekday: int
    start_time: time
    end_time: time


@dataclass(frozen=True)
class BlockedRange:
    """Blocked time on a specific day. No start/end means the whole day."""

    day: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = None

    @property
    def is_all_day(self) -> bool:
        return self.start_time is None and self.end_time is None


@dataclass
class BookingRecord:
    """A stored booking, optionally the head of a recurring series."""

    id: str
    client_id: str
    start: datetime
    end: datetime
    status: str = "CONFIRMED"
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    conversation_id: Optional[str] = None
    recurrence_rule: Optional[RecurrenceRule] = None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule is not None

    def as_occurrence(self) -> BookingOccurrence:
        return BookingOccurrence(start=self.start, end=self.end, original_booking_id=self.id)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "client_id": self.client_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "status": self.status,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "conversation_id": self.conversation_id,
            "is_recurring": self.is_recurring,
        }


@dataclass
class HandoverRecord:
    """Human handover state for one conversation."""

    conversation_id: str
    client_id: str
    active: bool = True
    reason: Optional[str] = None
    urgency_score: int = 1
    triggers: list[str] = field(default_factory=list)
    customer_phone: Optional[str] = None
    customer_name: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    last_notified_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "conversation_id": self.conversation_id,
            "client_id": self.client_id,
            "active": self.active,
            "reason": self.reason,
            "urgency_score": self.urgency_score,
            "triggers": self.triggers,
            "customer_phone": self.customer_phone,
            "customer_name": self.customer_name,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "last_notified_at": (
                self.last_notified_at.isoformat() if self.last_notified_at else None
            ),
        }


class SchedulingStore(ABC):
    """Async access to calendar data and handover state."""

    @abstractmethod
    async def get_availability(self, client_id: str, weekday: int) -> list[AvailabilityRange]:
        """Opening hours for a weekday (0 = Sunday)."""

    @abstractmethod
    async def get_blocked_times(self, client_id: str, day: date) -> list[BlockedRange]:
        """Blocked ranges on a day."""

    @abstractmethod
    async def list_bookings(
        self,
        client_id: str,
        start: datetime,
        end: datetime,
    ) -> list[BookingRecord]:
        """
        Non-cancelled bookings that overlap [start, end), plus every
        recurring booking whose series starts before end.
        """

    @abstractmethod
    async def create_booking(
        self,
        client_id: str,
        start: datetime,
        end: datetime,
        customer_phone: Optional[str] = None,
        customer_name: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> BookingRecord:
        """Insert a confirmed single booking."""

    @abstractmethod
    async def is_vip_customer(self, client_id: str, customer_phone: Optional[str]) -> bool:
        """Whether the customer is flagged VIP for this client."""

    @abstractmethod
    async def get_handover(self, conversation_id: str) -> Optional[HandoverRecord]:
        """Handover state or None if the conversation was never handed over."""

    @abstractmethod
    async def upsert_handover(self, record: HandoverRecord) -> HandoverRecord:
        """Create or replace handover state."""

    @abstractmethod
    async def mark_handover_notified(self, conversation_id: str, at: datetime) -> None:
        """Record when the last handover notification was sent."""

    @abstractmethod
    async def end_handover(self, conversation_id: str, at: datetime) -> Optional[HandoverRecord]:
        """Deactivate handover. Returns the updated record or None."""

    @abstractmethod
    async def list_active_handovers(self, client_id: str) -> list[HandoverRecord]:
        """Active handovers for a client."""
