"""Tests for choreledger.core.matcher — pure due-date logic."""

from datetime import date, datetime, timedelta

import pytest

from choreledger.core.matcher import (
    RecurrenceWindow,
    is_due,
    iter_occurrences,
    next_occurrence,
)
from choreledger.core.pattern import RecurrencePattern, Weekday, parse_pattern

MONDAY = date(2024, 1, 1)   # 2024-01-01 is a Monday


def _indefinite(start=MONDAY):
    return RecurrenceWindow(start_date=start, indefinite=True)


class TestRecurrenceWindow:
    def test_indefinite_ignores_end_date(self):
        window = RecurrenceWindow(MONDAY, end_date=MONDAY, indefinite=True)
        assert window.contains(MONDAY + timedelta(days=400))
        assert window.last_date is None

    def test_bounded_window(self):
        window = RecurrenceWindow(MONDAY, end_date=date(2024, 1, 10))
        assert window.contains(date(2024, 1, 10))
        assert not window.contains(date(2024, 1, 11))
        assert not window.contains(date(2023, 12, 31))

    def test_missing_end_without_indefinite_is_empty(self):
        window = RecurrenceWindow(MONDAY)
        assert window.is_empty
        assert not window.contains(MONDAY)

    def test_datetimes_are_truncated(self):
        window = RecurrenceWindow(datetime(2024, 1, 1, 23, 59), indefinite=True)
        assert window.start_date == MONDAY


class TestDaily:
    @pytest.mark.parametrize("interval", [1, 2, 3, 7, 10])
    def test_due_exactly_on_multiples_of_interval(self, interval):
        pattern = RecurrencePattern.daily(interval)
        window = _indefinite()
        for offset in range(-5, 60):
            d = MONDAY + timedelta(days=offset)
            expected = offset >= 0 and offset % interval == 0
            assert is_due(pattern, window, d) is expected, d

    def test_not_due_after_end_date(self):
        pattern = RecurrencePattern.daily(2)
        window = RecurrenceWindow(MONDAY, end_date=date(2024, 1, 9))
        assert is_due(pattern, window, date(2024, 1, 9))
        assert not is_due(pattern, window, date(2024, 1, 11))

    def test_start_date_itself_is_due(self):
        assert is_due(RecurrencePattern.daily(5), _indefinite(), MONDAY)

    def test_accepts_datetime_target(self):
        assert is_due(RecurrencePattern.daily(), _indefinite(), datetime(2024, 1, 3, 18, 30))


class TestWeekly:
    def test_biweekly_mo_th_su_from_monday(self):
        pattern = parse_pattern("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,TH,SU")
        window = _indefinite()
        due = [d for d in (MONDAY + timedelta(days=i) for i in range(28))
               if is_due(pattern, window, d)]
        offsets = [(d - MONDAY).days for d in due]
        assert offsets == [0, 3, 6, 14, 17, 20]

    def test_empty_weekdays_means_every_day_of_qualifying_week(self):
        pattern = RecurrencePattern.weekly(2)
        window = _indefinite()
        for offset in range(28):
            d = MONDAY + timedelta(days=offset)
            assert is_due(pattern, window, d) is ((offset // 7) % 2 == 0)

    def test_weeks_align_to_start_date_not_monday(self):
        wednesday = date(2024, 1, 3)
        pattern = RecurrencePattern.weekly(2, {Weekday.MO, Weekday.WE})
        window = _indefinite(wednesday)
        # Week 0 runs Wed 3rd .. Tue 9th, so Monday the 8th belongs to it
        assert is_due(pattern, window, date(2024, 1, 3))
        assert is_due(pattern, window, date(2024, 1, 8))
        # Week 1 (Wed 10th .. Tue 16th) is skipped
        assert not is_due(pattern, window, date(2024, 1, 10))
        assert not is_due(pattern, window, date(2024, 1, 15))
        # Week 2 qualifies again
        assert is_due(pattern, window, date(2024, 1, 17))
        assert is_due(pattern, window, date(2024, 1, 22))

    def test_weekday_outside_byday_not_due(self):
        pattern = RecurrencePattern.weekly(1, {Weekday.SA})
        assert not is_due(pattern, _indefinite(), date(2024, 1, 5))   # Friday
        assert is_due(pattern, _indefinite(), date(2024, 1, 6))       # Saturday

    def test_before_start_not_due(self):
        pattern = RecurrencePattern.weekly(1)
        assert not is_due(pattern, _indefinite(), date(2023, 12, 31))


class TestEmptyWindow:
    @pytest.mark.parametrize("pattern", [
        RecurrencePattern.daily(),
        RecurrencePattern.weekly(1),
        RecurrencePattern.weekly(1, set(Weekday)),
    ])
    def test_never_due_including_start_date(self, pattern):
        window = RecurrenceWindow(MONDAY, end_date=None, indefinite=False)
        for offset in range(-3, 30):
            assert not is_due(pattern, window, MONDAY + timedelta(days=offset))


class TestIterOccurrences:
    def test_daily_interval(self):
        pattern = RecurrencePattern.daily(3)
        got = list(iter_occurrences(pattern, _indefinite(), MONDAY, date(2024, 1, 12)))
        assert got == [date(2024, 1, 1), date(2024, 1, 4), date(2024, 1, 7), date(2024, 1, 10)]

    def test_daily_range_starting_mid_cycle(self):
        pattern = RecurrencePattern.daily(3)
        got = list(iter_occurrences(pattern, _indefinite(), date(2024, 1, 5), date(2024, 1, 12)))
        assert got == [date(2024, 1, 7), date(2024, 1, 10)]

    def test_clipped_to_window(self):
        pattern = RecurrencePattern.daily()
        window = RecurrenceWindow(date(2024, 1, 3), end_date=date(2024, 1, 5))
        got = list(iter_occurrences(pattern, window, MONDAY, date(2024, 1, 31)))
        assert got == [date(2024, 1, 3), date(2024, 1, 4), date(2024, 1, 5)]

    def test_matches_is_due(self):
        pattern = parse_pattern("FREQ=WEEKLY;INTERVAL=3;BYDAY=TU,FR")
        window = _indefinite(date(2024, 2, 7))
        start, end = date(2024, 1, 1), date(2024, 6, 30)
        expected = [start + timedelta(days=i) for i in range((end - start).days + 1)
                    if is_due(pattern, window, start + timedelta(days=i))]
        assert list(iter_occurrences(pattern, window, start, end)) == expected

    def test_empty_window_yields_nothing(self):
        assert list(iter_occurrences(
            RecurrencePattern.daily(), RecurrenceWindow(MONDAY), MONDAY, date(2024, 12, 31),
        )) == []


class TestNextOccurrence:
    def test_next_daily(self):
        assert next_occurrence(RecurrencePattern.daily(4), _indefinite(), MONDAY) == date(2024, 1, 5)

    def test_before_start_returns_start(self):
        assert next_occurrence(RecurrencePattern.daily(), _indefinite(), date(2023, 6, 1)) == MONDAY

    def test_next_skips_off_weeks(self):
        pattern = parse_pattern("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,TH,SU")
        assert next_occurrence(pattern, _indefinite(), date(2024, 1, 7)) == date(2024, 1, 15)

    def test_exhausted_window(self):
        window = RecurrenceWindow(MONDAY, end_date=date(2024, 1, 10))
        assert next_occurrence(RecurrencePattern.daily(), window, date(2024, 1, 10)) is None

    def test_empty_window(self):
        assert next_occurrence(RecurrencePattern.daily(), RecurrenceWindow(MONDAY), MONDAY) is None


class TestCalendarBoundaries:
    def test_next_with_interval_beyond_timedelta_range(self):
        pattern = RecurrencePattern.daily(200_000_000)
        assert next_occurrence(pattern, _indefinite(), MONDAY) is None

    def test_next_weekly_with_huge_interval(self):
        pattern = RecurrencePattern.weekly(10 ** 12, {Weekday.MO})
        assert next_occurrence(pattern, _indefinite(), MONDAY) is None

    def test_next_after_last_representable_date(self):
        assert next_occurrence(RecurrencePattern.daily(), _indefinite(), date.max) is None

    def test_next_on_the_last_representable_date(self):
        day_before = date.max - timedelta(days=1)
        assert next_occurrence(RecurrencePattern.daily(), _indefinite(), day_before) == date.max

    def test_iter_daily_interval_beyond_timedelta_range(self):
        pattern = RecurrencePattern.daily(10 ** 10)
        assert list(iter_occurrences(pattern, _indefinite(), MONDAY, date.max)) == [MONDAY]

    def test_iter_weekly_up_to_date_max(self):
        pattern = RecurrencePattern.weekly(1)
        start = date.max - timedelta(days=3)
        window = _indefinite(start)
        assert list(iter_occurrences(pattern, window, start, date.max)) == [
            start + timedelta(days=i) for i in range(4)
        ]

    def test_iter_daily_up_to_date_max(self):
        start = date.max - timedelta(days=2)
        got = list(iter_occurrences(RecurrencePattern.daily(), _indefinite(start), start, date.max))
        assert got[-1] == date.max
        assert len(got) == 3
