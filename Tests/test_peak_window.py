"""Tests for peak_window module."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from reserve_adjuster.models import TouScheduleBlock
from reserve_adjuster.peak_window import in_peak_window, peak_interval, tou_weekday

UTC = timezone.utc
# 10:00 - 18:00 on Mondays
MONDAY_PEAK = TouScheduleBlock(days_of_week=frozenset({1}), start_seconds=36000, end_seconds=64800)


class TestTouWeekday:
    def test_sunday_is_zero(self):
        assert tou_weekday(datetime(2026, 10, 18, 12, 0, tzinfo=UTC)) == 0

    def test_monday_is_one(self):
        assert tou_weekday(datetime(2026, 10, 19, 12, 0, tzinfo=UTC)) == 1

    def test_saturday_is_six(self):
        assert tou_weekday(datetime(2026, 10, 24, 12, 0, tzinfo=UTC)) == 6


class TestInPeakWindow:
    def test_inside_buffer_hour(self):
        assert in_peak_window(datetime(2026, 10, 19, 9, 30, tzinfo=UTC), [MONDAY_PEAK]) is True

    def test_before_buffer(self):
        assert in_peak_window(datetime(2026, 10, 19, 8, 59, tzinfo=UTC), [MONDAY_PEAK]) is False

    def test_buffer_start_is_inclusive(self):
        assert in_peak_window(datetime(2026, 10, 19, 9, 0, tzinfo=UTC), [MONDAY_PEAK]) is True

    def test_end_is_inclusive(self):
        assert in_peak_window(datetime(2026, 10, 19, 18, 0, tzinfo=UTC), [MONDAY_PEAK]) is True

    def test_after_end(self):
        assert in_peak_window(datetime(2026, 10, 19, 18, 0, 1, tzinfo=UTC), [MONDAY_PEAK]) is False

    def test_other_weekday(self):
        assert in_peak_window(datetime(2026, 10, 20, 12, 0, tzinfo=UTC), [MONDAY_PEAK]) is False

    def test_empty_schedule(self):
        assert in_peak_window(datetime(2026, 10, 19, 12, 0, tzinfo=UTC), []) is False

    def test_any_block_matches(self):
        evening = TouScheduleBlock(days_of_week=frozenset({2}), start_seconds=61200, end_seconds=75600)
        now = datetime(2026, 10, 20, 16, 30, tzinfo=UTC)
        assert in_peak_window(now, [MONDAY_PEAK, evening]) is True

    def test_local_zone(self):
        la = ZoneInfo("America/Los_Angeles")
        assert in_peak_window(datetime(2026, 10, 19, 9, 30, tzinfo=la), [MONDAY_PEAK]) is True
        # 09:30 in Los Angeles is already 16:30 UTC, but the offsets are local
        assert in_peak_window(datetime(2026, 10, 19, 8, 30, tzinfo=la), [MONDAY_PEAK]) is False

    def test_naive_time_rejected(self):
        with pytest.raises(ValueError):
            in_peak_window(datetime(2026, 10, 19, 9, 30), [MONDAY_PEAK])


class TestDstTransitions:
    def test_offsets_are_elapsed_seconds_on_spring_forward(self):
        # 2026-03-08 is a Sunday; clocks jump from 02:00 to 03:00 in New York
        ny = ZoneInfo("America/New_York")
        block = TouScheduleBlock(days_of_week=frozenset({0}), start_seconds=36000, end_seconds=64800)

        start, end = peak_interval(datetime(2026, 3, 8, 12, 0, tzinfo=ny), block)

        # 9h of elapsed time after midnight EST is 10:00 EDT on the wall clock
        assert (start.hour, start.minute) == (10, 0)
        assert (end.hour, end.minute) == (19, 0)
        assert in_peak_window(datetime(2026, 3, 8, 9, 30, tzinfo=ny), [block]) is False
        assert in_peak_window(datetime(2026, 3, 8, 10, 0, tzinfo=ny), [block]) is True

    def test_block_past_midnight_extends_into_next_day(self):
        block = TouScheduleBlock(days_of_week=frozenset({1}), start_seconds=79200, end_seconds=90000)
        start, end = peak_interval(datetime(2026, 10, 19, 12, 0, tzinfo=UTC), block)

        assert start == datetime(2026, 10, 19, 21, 0, tzinfo=UTC)
        assert end == datetime(2026, 10, 20, 1, 0, tzinfo=UTC)
        assert in_peak_window(datetime(2026, 10, 19, 23, 30, tzinfo=UTC), [block]) is True
