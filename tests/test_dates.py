"""Tests for business-day bucketing."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from holdfast.domain.dates import (
    calendar_days_between,
    count_nights,
    iter_buckets,
    local_midnight_utc,
    to_utc_bucket,
)
from holdfast.domain.errors import InvalidRequestError

HCM = ZoneInfo("Asia/Ho_Chi_Minh")


class TestToUtcBucket:
    def test_bare_date_is_local_midnight(self):
        assert to_utc_bucket("2025-12-01", HCM) == datetime(2025, 11, 30, 17, 0, tzinfo=timezone.utc)

    def test_iso_datetime_uses_local_calendar_date(self):
        # 20:00Z is already 03:00 on Dec 2 in UTC+7
        assert to_utc_bucket("2025-12-01T20:00:00Z", HCM) == datetime(
            2025, 12, 1, 17, 0, tzinfo=timezone.utc
        )

    def test_naive_iso_datetime_is_utc(self):
        assert to_utc_bucket("2025-12-01T10:00:00", HCM) == datetime(
            2025, 11, 30, 17, 0, tzinfo=timezone.utc
        )

    def test_offset_datetime(self):
        assert to_utc_bucket("2025-12-01T23:30:00+07:00", HCM) == datetime(
            2025, 11, 30, 17, 0, tzinfo=timezone.utc
        )

    def test_date_and_datetime_objects(self):
        expected = datetime(2025, 11, 30, 17, 0, tzinfo=timezone.utc)
        assert to_utc_bucket(date(2025, 12, 1), HCM) == expected
        assert to_utc_bucket(datetime(2025, 12, 1, 1, 0, tzinfo=HCM), HCM) == expected

    def test_bucket_is_idempotent(self):
        bucket = to_utc_bucket("2025-12-01", HCM)
        assert to_utc_bucket(bucket, HCM) == bucket

    @pytest.mark.parametrize("raw", ["", "   ", "not-a-date", "2025-13-01", "2025-02-30", None, 42])
    def test_invalid_input(self, raw):
        with pytest.raises(InvalidRequestError, match="Invalid date"):
            to_utc_bucket(raw, HCM)

    def test_utc_zone(self):
        utc = ZoneInfo("UTC")
        assert to_utc_bucket("2025-12-01", utc) == datetime(2025, 12, 1, tzinfo=timezone.utc)


class TestNights:
    def test_count_nights(self):
        check_in = to_utc_bucket("2025-12-01", HCM)
        check_out = to_utc_bucket("2025-12-04", HCM)
        assert count_nights(check_in, check_out) == 3

    def test_reversed_range_is_negative(self):
        check_in = to_utc_bucket("2025-12-04", HCM)
        check_out = to_utc_bucket("2025-12-01", HCM)
        assert count_nights(check_in, check_out) == -3

    def test_dst_day_rounds_to_whole_night(self):
        paris = ZoneInfo("Europe/Paris")
        check_in = to_utc_bucket("2025-03-29", paris)
        check_out = to_utc_bucket("2025-03-31", paris)
        assert count_nights(check_in, check_out) == 2

    def test_iter_buckets(self):
        check_in = to_utc_bucket("2025-12-01", HCM)
        check_out = to_utc_bucket("2025-12-03", HCM)
        assert list(iter_buckets(check_in, check_out, HCM)) == [
            local_midnight_utc(date(2025, 12, 1), HCM),
            local_midnight_utc(date(2025, 12, 2), HCM),
        ]


class TestCalendarDaysBetween:
    def test_counts_local_calendar_days(self):
        # 16:30Z on Nov 28 is 23:30 local, 17:30Z is already Nov 29 local
        check_in = to_utc_bucket("2025-12-01", HCM)
        assert calendar_days_between(datetime(2025, 11, 28, 16, 30, tzinfo=timezone.utc), check_in, HCM) == 3
        assert calendar_days_between(datetime(2025, 11, 28, 17, 30, tzinfo=timezone.utc), check_in, HCM) == 2
