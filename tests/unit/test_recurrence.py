"""Tests for recurrence expansion."""

import pytest
from datetime import datetime, timedelta

from app.core.intelligence.slots.dates import sunday_weekday
from app.core.scheduling.recurrence import (
    RecurrenceEngine,
    RecurrenceFrequency,
    RecurrenceRule,
    RecurrenceRuleError,
    add_months,
)

BASE_START = datetime(2026, 10, 19, 10, 0)  # Monday
BASE_END = datetime(2026, 10, 19, 11, 0)


class TestRecurrenceEngine:
    """Test RecurrenceEngine.expand_rule."""

    @pytest.fixture
    def engine(self):
        return RecurrenceEngine()

    def test_weekly_by_weekday(self, engine):
        rule = RecurrenceRule(RecurrenceFrequency.WEEKLY, by_weekday=frozenset({1, 3}))
        range_start = datetime(2026, 11, 2)

        occurrences = engine.expand_rule(
            rule, BASE_START, BASE_END, range_start, range_start + timedelta(days=14), "b-1"
        )

        assert occurrences
        assert all(sunday_weekday(o.start.date()) in {1, 3} for o in occurrences)
        assert all(o.end - o.start == timedelta(hours=1) for o in occurrences)
        starts = [o.start for o in occurrences]
        assert starts == sorted(starts)

    def test_occurrence_count(self, engine):
        rule = RecurrenceRule(RecurrenceFrequency.DAILY, occurrences=3)

        occurrences = engine.expand_rule(
            rule, BASE_START, BASE_END, BASE_START, BASE_START + timedelta(days=60), "b-1"
        )

        assert [o.start.day for o in occurrences] == [19, 20, 21]
        assert [o.occurrence_index for o in occurrences] == [0, 1, 2]
        assert all(o.original_booking_id == "b-1" for o in occurrences)

    def test_end_date(self, engine):
        rule = RecurrenceRule(RecurrenceFrequency.DAILY, end_date=datetime(2026, 10, 22, 23, 59))

        occurrences = engine.expand_rule(
            rule, BASE_START, BASE_END, BASE_START, BASE_START + timedelta(days=30), "b-1"
        )

        assert len(occurrences) == 4

    def test_weekly_interval(self, engine):
        rule = RecurrenceRule(RecurrenceFrequency.WEEKLY, interval=2)

        occurrences = engine.expand_rule(
            rule, BASE_START, BASE_END, BASE_START, BASE_START + timedelta(days=35), "b-1"
        )

        assert [o.start.date().isoformat() for o in occurrences] == [
            "2026-10-19", "2026-11-02", "2026-11-16",
        ]

    def test_custom_every_n_days(self, engine):
        rule = RecurrenceRule(RecurrenceFrequency.CUSTOM, interval=3, occurrences=3)

        occurrences = engine.expand_rule(
            rule, BASE_START, BASE_END, BASE_START, BASE_START + timedelta(days=30), "b-1"
        )

        assert [o.start.day for o in occurrences] == [19, 22, 25]

    def test_monthly_clamps_to_month_end(self, engine):
        start = datetime(2026, 1, 31, 9, 0)
        rule = RecurrenceRule(RecurrenceFrequency.MONTHLY, occurrences=3)

        occurrences = engine.expand_rule(
            rule, start, start + timedelta(hours=1), start, datetime(2026, 12, 31), "b-1"
        )

        assert [o.start.date().isoformat() for o in occurrences] == [
            "2026-01-31", "2026-02-28", "2026-03-31",
        ]

    def test_monthly_by_monthday_filters(self, engine):
        start = datetime(2026, 1, 15, 9, 0)
        rule = RecurrenceRule(RecurrenceFrequency.MONTHLY, by_monthday=frozenset({1}))

        occurrences = engine.expand_rule(
            rule, start, start + timedelta(hours=1), start, datetime(2026, 6, 1), "b-1"
        )

        assert occurrences == []

    def test_only_range_is_returned(self, engine):
        rule = RecurrenceRule(RecurrenceFrequency.DAILY)
        range_start = datetime(2026, 10, 25)

        occurrences = engine.expand_rule(
            rule, BASE_START, BASE_END, range_start, datetime(2026, 10, 26, 23, 59), "b-1"
        )

        assert [o.start.day for o in occurrences] == [25, 26]

    def test_unbounded_rule_is_capped(self):
        engine = RecurrenceEngine(default_max_instances=5)
        rule = RecurrenceRule(RecurrenceFrequency.DAILY)

        occurrences = engine.expand_rule(
            rule, BASE_START, BASE_END, BASE_START, BASE_START + timedelta(days=365), "b-1"
        )

        assert len(occurrences) == 5

    def test_invalid_interval(self, engine):
        rule = RecurrenceRule(RecurrenceFrequency.DAILY, interval=0)

        with pytest.raises(RecurrenceRuleError):
            engine.expand_rule(rule, BASE_START, BASE_END, BASE_START, BASE_END, "b-1")

    def test_end_before_start(self, engine):
        rule = RecurrenceRule(RecurrenceFrequency.DAILY)

        with pytest.raises(RecurrenceRuleError):
            engine.expand_rule(rule, BASE_END, BASE_START, BASE_START, BASE_END, "b-1")

    def test_is_within_series(self, engine):
        rule = RecurrenceRule(RecurrenceFrequency.WEEKLY, by_weekday=frozenset({1}))

        assert engine.is_within_series(datetime(2026, 10, 26, 10), BASE_START, rule)
        assert not engine.is_within_series(datetime(2026, 10, 27, 10), BASE_START, rule)
        assert not engine.is_within_series(datetime(2026, 10, 12, 10), BASE_START, rule)


class TestRecurrenceRule:
    """Test RecurrenceRule parsing."""

    def test_from_dict_with_day_lists(self):
        rule = RecurrenceRule.from_dict({
            "frequency": "weekly",
            "interval": 1,
            "by_weekday": "1,3,5",
            "end_date": "2026-12-31T00:00:00",
        })

        assert rule.frequency == RecurrenceFrequency.WEEKLY
        assert rule.by_weekday == frozenset({1, 3, 5})
        assert rule.end_date == datetime(2026, 12, 31)

    def test_unknown_frequency(self):
        with pytest.raises(RecurrenceRuleError):
            RecurrenceRule.from_dict({"frequency": "YEARLY"})

    def test_add_months(self):
        assert add_months(datetime(2026, 12, 31), 2) == datetime(2027, 2, 28)
