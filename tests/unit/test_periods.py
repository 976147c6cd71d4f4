"""Period key tests: reference timezone, ISO weeks, year boundaries."""

from datetime import datetime, timezone

import pytest

from questline.progression.periods import (
    current_period_keys,
    get_date_key,
    get_week_key,
    local_now,
    period_key_for,
)

TZ = "America/New_York"


class TestDateKey:
    def test_uses_reference_timezone(self):
        # 03:00 UTC is still the previous evening in New York.
        now = datetime(2026, 3, 5, 3, 0, tzinfo=timezone.utc)
        assert get_date_key(TZ, now) == "2026-03-04"

    def test_utc_key_differs(self):
        now = datetime(2026, 3, 5, 3, 0, tzinfo=timezone.utc)
        assert get_date_key("UTC", now) == "2026-03-05"

    def test_naive_datetime_treated_as_utc(self):
        naive = datetime(2026, 3, 5, 3, 0)
        assert local_now(TZ, naive) == local_now(TZ, naive.replace(tzinfo=timezone.utc))


class TestWeekKey:
    def test_iso_week_format(self):
        assert get_week_key(TZ, datetime(2026, 3, 4, 15, 0, tzinfo=timezone.utc)) == "2026-W10"

    def test_week_starts_monday(self):
        sunday = datetime(2026, 3, 8, 16, 0, tzinfo=timezone.utc)
        monday = datetime(2026, 3, 9, 16, 0, tzinfo=timezone.utc)
        assert get_week_key(TZ, sunday) == "2026-W10"
        assert get_week_key(TZ, monday) == "2026-W11"

    def test_iso_year_differs_from_calendar_year(self):
        # 2027-01-01 is a Friday and belongs to the last ISO week of 2026.
        assert get_week_key(TZ, datetime(2027, 1, 1, 17, 0, tzinfo=timezone.utc)) == "2026-W53"

    def test_late_december_can_be_week_one(self):
        # 2025-12-29 is the Monday of ISO week 2026-W01.
        assert get_week_key(TZ, datetime(2025, 12, 29, 17, 0, tzinfo=timezone.utc)) == "2026-W01"


class TestPeriodKeyFor:
    def test_daily_and_weekly(self):
        now = datetime(2026, 3, 4, 15, 0, tzinfo=timezone.utc)
        assert period_key_for("daily", TZ, now) == "2026-03-04"
        assert period_key_for("weekly", TZ, now) == "2026-W10"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            period_key_for("monthly", TZ)

    def test_current_period_keys(self):
        now = datetime(2026, 3, 4, 15, 0, tzinfo=timezone.utc)
        assert current_period_keys(TZ, now) == {"daily": "2026-03-04", "weekly": "2026-W10"}
