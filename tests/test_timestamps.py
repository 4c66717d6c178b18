"""Unit tests for timestamp utilities."""

from datetime import datetime, timedelta, timezone

from app.utils.timestamps import (
    ensure_utc,
    format_db_timestamp,
    format_timestamp_for_log,
    parse_db_timestamp,
    parse_iso_datetime,
    utc_now,
)


class TestUtcHelpers:
    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo == timezone.utc

    def test_ensure_utc_naive_is_treated_as_utc(self):
        assert ensure_utc(datetime(2026, 1, 1, 12)) == datetime(2026, 1, 1, 12, tzinfo=timezone.utc)

    def test_ensure_utc_converts_other_zone(self):
        plus_two = timezone(timedelta(hours=2))
        assert ensure_utc(datetime(2026, 1, 1, 12, tzinfo=plus_two)).hour == 10

    def test_ensure_utc_none(self):
        assert ensure_utc(None) is None


class TestParseIsoDatetime:
    def test_z_suffix_with_millis(self):
        parsed = parse_iso_datetime("2026-10-01T12:00:00.000Z")
        assert parsed == datetime(2026, 10, 1, 12, tzinfo=timezone.utc)

    def test_date_only(self):
        assert parse_iso_datetime("2026-10-01") == datetime(2026, 10, 1, tzinfo=timezone.utc)

    def test_garbage_and_blank_return_none(self):
        assert parse_iso_datetime("yesterday") is None
        assert parse_iso_datetime("   ") is None
        assert parse_iso_datetime(None) is None


class TestDbTimestamps:
    def test_format_is_fixed_width(self):
        assert format_db_timestamp(datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)) == (
            "2026-01-02T03:04:05.000000Z"
        )

    def test_lexical_order_matches_chronological(self):
        earlier = format_db_timestamp(datetime(2026, 1, 1, 9, 59, 59, 999999, tzinfo=timezone.utc))
        later = format_db_timestamp(datetime(2026, 1, 1, 10, tzinfo=timezone.utc))
        assert earlier < later

    def test_parse_accepts_values_without_micros(self):
        assert parse_db_timestamp("2026-01-02T03:04:05Z") == datetime(
            2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc
        )

    def test_parse_empty(self):
        assert parse_db_timestamp("") is None

    def test_log_format_drops_micros(self):
        dt = datetime(2026, 1, 2, 3, 4, 5, 123456, tzinfo=timezone.utc)
        assert format_timestamp_for_log(dt) == "2026-01-02T03:04:05Z"
        assert format_timestamp_for_log(None) == ""
