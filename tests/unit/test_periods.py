"""
Unit Tests for Retention Periods and Time Helpers

Run with:
    pytest tests/unit/test_periods.py -v
"""

from datetime import datetime, timezone

import pytest

from core.periods import PERIOD_NAMES, RETENTION_PERIODS, get_period, periods_due
from core.utils.time import current_utc_timestamp, datetime_to_timestamp


class TestRetentionTable:
    """The fixed period table"""

    def test_names_in_order(self):
        assert PERIOD_NAMES == ["24h", "7d", "2w", "1m", "3m", "6m", "1y"]

    @pytest.mark.parametrize("name,days,capacity,cadence", [
        ("24h", 1, 288, 1),
        ("7d", 7, 168, 12),
        ("2w", 14, 84, 48),
        ("1m", 30, 30, 288),
        ("3m", 90, 90, 288),
        ("6m", 180, 180, 288),
        ("1y", 365, 52, 2016),
    ])
    def test_period_values(self, name, days, capacity, cadence):
        period = get_period(name)
        assert (period.days, period.capacity, period.cadence) == (days, capacity, cadence)

    def test_unknown_period_raises(self):
        with pytest.raises(ValueError):
            get_period("5y")

    def test_periods_are_immutable(self):
        with pytest.raises(AttributeError):
            RETENTION_PERIODS[0].capacity = 1


class TestPeriodsDue:
    """Cadence gate keyed off the tick number"""

    def test_first_tick_only_24h(self):
        assert [p.name for p in periods_due(1)] == ["24h"]

    def test_hourly_tick(self):
        assert [p.name for p in periods_due(12)] == ["24h", "7d"]

    def test_daily_tick(self):
        assert [p.name for p in periods_due(288)] == ["24h", "7d", "2w", "1m", "3m", "6m"]

    def test_weekly_tick_opens_every_gate(self):
        assert [p.name for p in periods_due(2016)] == PERIOD_NAMES


class TestTimeHelpers:
    """Millisecond timestamp helpers"""

    def test_datetime_to_timestamp(self):
        dt = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert datetime_to_timestamp(dt) == 1704110400
        assert datetime_to_timestamp(dt, milliseconds=True) == 1704110400000

    def test_naive_datetime_is_utc(self):
        assert datetime_to_timestamp(datetime(2024, 1, 1, 12, 0, 0)) == 1704110400

    def test_milliseconds_keep_sub_second_part(self):
        dt = datetime(2024, 1, 1, 12, 0, 0, 250000, tzinfo=timezone.utc)
        assert datetime_to_timestamp(dt, milliseconds=True) == 1704110400250

    def test_current_timestamp_in_milliseconds(self):
        assert current_utc_timestamp(milliseconds=True) > 1_700_000_000_000
