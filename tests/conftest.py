"""Shared fixtures: in-memory scheduling store and a fixed clock."""

import uuid
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytest

from app.core.intelligence.session import ConversationMemory, InMemoryConversationStore
from app.core.scheduling.store import (
    AvailabilityRange,
    BlockedRange,
    BookingRecord,
    HandoverRecord,
    SchedulingStore,
    StoreError,
)

CLIENT_ID = "client-1"

# Monday 19 October 2026, 09:05
MONDAY = date(2026, 10, 19)
NOW = datetime(2026, 10, 19, 9, 5)


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeSchedulingStore(SchedulingStore):
    """In-memory SchedulingStore with helpers to seed calendar data."""

    def __init__(self):
        self.availability: dict[tuple[str, int], list[AvailabilityRange]] = {}
        self.blocked: dict[tuple[str, date], list[BlockedRange]] = {}
        self.bookings: list[BookingRecord] = []
        self.handovers: dict[str, HandoverRecord] = {}
        self.vip_phones: set[tuple[str, str]] = set()
        self.fail = False

    # Seeding

    def open(self, weekdays, start: time = time(9, 0), end: time = time(17, 0), client_id: str = CLIENT_ID):
        for weekday in weekdays:
            self.availability.setdefault((client_id, weekday), []).append(
                AvailabilityRange(weekday=weekday, start_time=start, end_time=end)
            )

    def block(self, day: date, start: Optional[time] = None, end: Optional[time] = None, client_id: str = CLIENT_ID):
        self.blocked.setdefault((client_id, day), []).append(
            BlockedRange(day=day, start_time=start, end_time=end)
        )

    def book(self, start: datetime, end: datetime, recurrence_rule=None, client_id: str = CLIENT_ID) -> BookingRecord:
        record = BookingRecord(
            id=str(uuid.uuid4()),
            client_id=client_id,
            start=start,
            end=end,
            recurrence_rule=recurrence_rule,
        )
        self.bookings.append(record)
        return record

    def _check(self) -> None:
        if self.fail:
            raise StoreError("database unavailable")

    # SchedulingStore

    async def get_availability(self, client_id, weekday):
        self._check()
        return list(self.availability.get((client_id, weekday), []))

    async def get_blocked_times(self, client_id, day):
        self._check()
        return list(self.blocked.get((client_id, day), []))

    async def list_bookings(self, client_id, start, end):
        self._check()
        return [
            b for b in self.bookings
            if b.client_id == client_id
            and b.status != "CANCELLED"
            and (
                (b.start < end and b.end > start)
                or (b.recurrence_rule is not None and b.start < end)
            )
        ]

    async def create_booking(
        self,
        client_id,
        start,
        end,
        customer_phone=None,
        customer_name=None,
        conversation_id=None,
    ):
        self._check()
        record = BookingRecord(
            id=str(uuid.uuid4()),
            client_id=client_id,
            start=start,
            end=end,
            customer_phone=customer_phone,
            customer_name=customer_name,
            conversation_id=conversation_id,
        )
        self.bookings.append(record)
        return record

    async def is_vip_customer(self, client_id, customer_phone):
        self._check()
        return (client_id, customer_phone) in self.vip_phones

    async def get_handover(self, conversation_id):
        self._check()
        return self.handovers.get(conversation_id)

    async def upsert_handover(self, record):
        self._check()
        self.handovers[record.conversation_id] = record
        return record

    async def mark_handover_notified(self, conversation_id, at):
        self._check()
        record = self.handovers.get(conversation_id)
        if record is not None:
            record.last_notified_at = at

    async def end_handover(self, conversation_id, at):
        self._check()
        record = self.handovers.get(conversation_id)
        if record is None:
            return None
        record.active = False
        record.ended_at = at
        return record

    async def list_active_handovers(self, client_id):
        self._check()
        return [
            r for r in self.handovers.values()
            if r.client_id == client_id and r.active
        ]


@pytest.fixture
def clock():
    """Clock fixed at Monday 2026-10-19 09:05."""
    return FixedClock(NOW)


@pytest.fixture
def store():
    """Store open 09:00-17:00 Monday to Friday."""
    fake = FakeSchedulingStore()
    fake.open([1, 2, 3, 4, 5])
    return fake


@pytest.fixture
def memory(clock):
    """Conversation memory over an in-memory store."""
    return ConversationMemory(store=InMemoryConversationStore(), clock=clock)
