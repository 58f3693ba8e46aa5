"""Tests for slot search."""

import pytest
from datetime import date, datetime, time, timedelta

from app.core.intelligence.slots import TimeWindow
from app.core.scheduling.recurrence import RecurrenceFrequency, RecurrenceRule
from app.core.scheduling.slot_finder import SlotFinder, SlotRequest, SlotSearchError

from tests.conftest import CLIENT_ID, MONDAY, FakeSchedulingStore, FixedClock

TUESDAY = MONDAY + timedelta(days=1)
SATURDAY = MONDAY + timedelta(days=5)


class TestSlotFinder:
    """Test SlotFinder."""

    @pytest.fixture
    def early_clock(self):
        """Monday 08:00, before opening."""
        return FixedClock(datetime(2026, 10, 19, 8, 0))

    @pytest.fixture
    def finder(self, store, early_clock):
        return SlotFinder(store, clock=early_clock)

    @pytest.mark.asyncio
    async def test_skips_existing_booking(self, store, finder):
        store.book(datetime(2026, 10, 19, 9), datetime(2026, 10, 19, 10))
        store.book(datetime(2026, 10, 19, 10), datetime(2026, 10, 19, 11))

        slot = await finder.find_earliest_slot(
            SlotRequest(client_id=CLIENT_ID, preferred_date=MONDAY, search_days_ahead=1)
        )

        assert slot == datetime(2026, 10, 19, 11)

    @pytest.mark.asyncio
    async def test_booked_solid_day_rolls_to_next_day(self, store, finder):
        store.book(datetime(2026, 10, 19, 9), datetime(2026, 10, 19, 17))

        slot = await finder.find_earliest_slot(
            SlotRequest(client_id=CLIENT_ID, preferred_date=MONDAY)
        )

        assert slot == datetime(2026, 10, 20, 9)

    @pytest.mark.asyncio
    async def test_closed_day_rolls_forward(self, finder):
        slot = await finder.find_earliest_slot(
            SlotRequest(client_id=CLIENT_ID, preferred_date=SATURDAY)
        )

        assert slot == datetime(2026, 10, 26, 9)

    @pytest.mark.asyncio
    async def test_time_window(self, finder):
        slot = await finder.find_earliest_slot(
            SlotRequest(
                client_id=CLIENT_ID,
                preferred_date=TUESDAY,
                time_window=TimeWindow(14, 0, 14, 30),
                search_days_ahead=1,
            )
        )

        assert slot == datetime(2026, 10, 20, 14)

    @pytest.mark.asyncio
    async def test_window_outside_hours(self, finder):
        slot = await finder.find_earliest_slot(
            SlotRequest(
                client_id=CLIENT_ID,
                preferred_date=TUESDAY,
                time_window=TimeWindow(18, 0, 20, 0),
                search_days_ahead=1,
            )
        )

        assert slot is None

    @pytest.mark.asyncio
    async def test_never_in_the_past(self, store, clock):
        finder = SlotFinder(store, clock=clock)

        slot = await finder.find_earliest_slot(
            SlotRequest(client_id=CLIENT_ID, preferred_date=MONDAY, search_days_ahead=1)
        )

        assert slot == datetime(2026, 10, 19, 10)

    @pytest.mark.asyncio
    async def test_partial_block(self, store, finder):
        store.block(TUESDAY, time(9, 0), time(12, 0))

        slot = await finder.find_earliest_slot(
            SlotRequest(client_id=CLIENT_ID, preferred_date=TUESDAY, search_days_ahead=1)
        )

        assert slot == datetime(2026, 10, 20, 12)

    @pytest.mark.asyncio
    async def test_all_day_block(self, store, finder):
        store.block(TUESDAY)

        slot = await finder.find_earliest_slot(
            SlotRequest(client_id=CLIENT_ID, preferred_date=TUESDAY, search_days_ahead=2)
        )

        assert slot == datetime(2026, 10, 21, 9)

    @pytest.mark.asyncio
    async def test_recurring_booking_blocks_series(self, store, finder):
        store.book(
            datetime(2026, 10, 5, 9),
            datetime(2026, 10, 5, 10),
            recurrence_rule=RecurrenceRule(RecurrenceFrequency.WEEKLY),
        )

        slot = await finder.find_earliest_slot(
            SlotRequest(client_id=CLIENT_ID, preferred_date=MONDAY, search_days_ahead=1)
        )

        assert slot == datetime(2026, 10, 19, 10)

    @pytest.mark.asyncio
    async def test_not_before(self, finder):
        slot = await finder.find_earliest_slot(
            SlotRequest(
                client_id=CLIENT_ID,
                not_before=datetime(2026, 10, 19, 10, 15),
            )
        )

        assert slot == datetime(2026, 10, 19, 11)

    @pytest.mark.asyncio
    async def test_duration_steps(self, finder):
        slots = await finder.find_available_slots(
            SlotRequest(client_id=CLIENT_ID, duration_minutes=90, preferred_date=MONDAY, search_days_ahead=1)
        )

        assert [s.start.strftime("%H:%M") for s in slots] == ["09:00", "10:30", "12:00", "13:30", "15:00"]
        assert slots[0].end == datetime(2026, 10, 19, 10, 30)

    @pytest.mark.asyncio
    async def test_limit(self, finder):
        slots = await finder.find_available_slots(
            SlotRequest(client_id=CLIENT_ID, preferred_date=MONDAY), limit=3
        )

        assert len(slots) == 3

    @pytest.mark.asyncio
    async def test_no_availability(self, early_clock):
        finder = SlotFinder(FakeSchedulingStore(), clock=early_clock)

        assert await finder.find_earliest_slot(SlotRequest(client_id=CLIENT_ID)) is None

    @pytest.mark.asyncio
    async def test_invalid_requests(self, finder):
        with pytest.raises(SlotSearchError):
            await finder.find_earliest_slot(SlotRequest(client_id=CLIENT_ID, duration_minutes=0))
        with pytest.raises(SlotSearchError):
            await finder.find_earliest_slot(SlotRequest(client_id=CLIENT_ID, search_days_ahead=0))

    @pytest.mark.asyncio
    async def test_open_days(self, finder):
        assert await finder.is_day_closed(CLIENT_ID, SATURDAY)
        assert not await finder.is_day_closed(CLIENT_ID, MONDAY)
        assert await finder.find_next_open_day(CLIENT_ID, date(2026, 10, 23)) == date(2026, 10, 26)
