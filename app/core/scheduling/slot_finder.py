"""
Slot search.

Finds the earliest start time that is inside business hours, inside the
requested time window, not blocked, not overlapping an existing booking
(recurring series included) and not in the past.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

from app.config import settings
from app.core.intelligence.slots.dates import sunday_weekday
from app.core.intelligence.slots.types import TimeWindow
from .recurrence import BookingOccurrence, RecurrenceEngine, get_recurrence_engine
from .store import AvailabilityRange, BlockedRange, SchedulingStore

logger = logging.getLogger(__name__)


class SlotSearchError(ValueError):
    """Raised for invalid slot search requests."""
    pass


@dataclass
class SlotRequest:
    """Parameters for a slot search."""

    client_id: str
    duration_minutes: int = 60
    preferred_date: Optional[date] = None
    time_window: Optional[TimeWindow] = None
    search_days_ahead: int = 14
    # No candidate may start before this moment (e.g. just after a declined slot)
    not_before: Optional[datetime] = None


@dataclass(frozen=True)
class AvailableSlot:
    """Open slot."""

    start: datetime
    end: datetime


def _at(day: date, moment: time) -> datetime:
    return datetime.combine(day, moment.replace(second=0, microsecond=0))


def _window_bound(day: date, minutes: int) -> datetime:
    return datetime.combine(day, time.min) + timedelta(minutes=minutes)


class SlotFinder:
    """Searches a bounded horizon for open slots."""

    def __init__(
        self,
        store: SchedulingStore,
        recurrence: Optional[RecurrenceEngine] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize finder.

        Args:
            store: Calendar data source
            recurrence: Recurrence expander (default: shared engine)
            clock: Returns the current local time (for testing)
        """
        self.store = store
        self.recurrence = recurrence or get_recurrence_engine()
        self._clock = clock or datetime.now

    async def find_earliest_slot(self, request: SlotRequest) -> Optional[datetime]:
        """
        Find the earliest open slot.

        Returns:
            Slot start or None if nothing is free within the horizon
        """
        slots = await self.find_available_slots(request, limit=1)
        return slots[0].start if slots else None

    async def find_available_slots(
        self,
        request: SlotRequest,
        limit: Optional[int] = None,
    ) -> list[AvailableSlot]:
        """
        Find open slots in chronological order.

        The horizon covers search_days_ahead days including the first day.
        Candidates start at each open range's lower bound and step by the
        booking duration.

        Args:
            request: Search parameters
            limit: Stop after this many slots

        Returns:
            Open slots, earliest first
        """
        if request.duration_minutes <= 0:
            raise SlotSearchError(f"Duration must be positive, got {request.duration_minutes}")
        if request.search_days_ahead < 1:
            raise SlotSearchError(
                f"Search horizon must be at least one day, got {request.search_days_ahead}"
            )

        now = self._clock()
        earliest = max(now, request.not_before) if request.not_before else now

        if request.preferred_date is not None:
            first_day = request.preferred_date
        elif request.not_before is not None:
            first_day = request.not_before.date()
        else:
            first_day = now.date()

        duration = timedelta(minutes=request.duration_minutes)
        found: list[AvailableSlot] = []

        for offset in range(request.search_days_ahead):
            day = first_day + timedelta(days=offset)
            if _window_bound(day, 24 * 60) <= earliest:
                continue

            day_slots = await self._slots_for_day(
                request.client_id, day, duration, request.time_window, earliest
            )
            for slot in day_slots:
                found.append(slot)
                if limit is not None and len(found) >= limit:
                    return found

        if not found:
            logger.debug(
                f"No slots for client {request.client_id} from {first_day} "
                f"({request.search_days_ahead} days)"
            )
        return found

    async def _slots_for_day(
        self,
        client_id: str,
        day: date,
        duration: timedelta,
        window: Optional[TimeWindow],
        earliest: datetime,
    ) -> list[AvailableSlot]:
        ranges = await self.store.get_availability(client_id, sunday_weekday(day))
        if not ranges:
            return []

        blocked = await self.store.get_blocked_times(client_id, day)
        if any(block.is_all_day for block in blocked):
            return []

        booked = await self.occurrences_for_day(client_id, day)

        candidates: set[datetime] = set()
        for open_range in ranges:
            for start in self._candidates(day, open_range, duration, window):
                end = start + duration
                if start < earliest:
                    continue
                if self._is_blocked(day, start, end, blocked):
                    continue
                if any(occ.overlaps(start, end) for occ in booked):
                    continue
                candidates.add(start)

        return [AvailableSlot(start, start + duration) for start in sorted(candidates)]

    @staticmethod
    def _candidates(
        day: date,
        open_range: AvailabilityRange,
        duration: timedelta,
        window: Optional[TimeWindow],
    ):
        range_start = _at(day, open_range.start_time)
        range_end = _at(day, open_range.end_time)

        current = range_start
        last_start = range_end
        if window is not None:
            current = max(range_start, _window_bound(day, window.start_minutes))
            last_start = min(range_end, _window_bound(day, window.end_minutes))

        while current <= last_start and current + duration <= range_end:
            yield current
            current += duration

    @staticmethod
    def _is_blocked(day: date, start: datetime, end: datetime, blocked: list[BlockedRange]) -> bool:
        for block in blocked:
            block_start = _at(day, block.start_time) if block.start_time else _window_bound(day, 0)
            block_end = _at(day, block.end_time) if block.end_time else _window_bound(day, 24 * 60)
            if start < block_end and end > block_start:
                return True
        return False

    async def occurrences_for_day(self, client_id: str, day: date) -> list[BookingOccurrence]:
        """All booking instances touching the day, recurring series expanded."""
        day_start = datetime.combine(day, time.min)
        day_end = day_start + timedelta(days=1)

        occurrences: list[BookingOccurrence] = []
        for booking in await self.store.list_bookings(client_id, day_start, day_end):
            if booking.recurrence_rule is None:
                occurrences.append(booking.as_occurrence())
                continue

            length = booking.end - booking.start
            expanded = self.recurrence.expand_rule(
                booking.recurrence_rule,
                booking.start,
                booking.end,
                day_start - length,
                day_end,
                booking.id,
            )
            occurrences.extend(occ for occ in expanded if occ.overlaps(day_start, day_end))

        return occurrences

    async def is_day_closed(self, client_id: str, day: date) -> bool:
        """True if the client has no opening hours on that weekday."""
        ranges = await self.store.get_availability(client_id, sunday_weekday(day))
        return not ranges

    async def find_next_open_day(
        self,
        client_id: str,
        after: date,
        max_days: Optional[int] = None,
    ) -> Optional[date]:
        """First day after `after` with opening hours."""
        max_days = max_days or settings.next_open_day_max_days
        for offset in range(1, max_days + 1):
            day = after + timedelta(days=offset)
            if not await self.is_day_closed(client_id, day):
                return day
        return None
