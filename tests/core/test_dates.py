"""Tests for calendar helpers."""

from __future__ import annotations

from datetime import date, datetime, timezone

from optionbook.core.dates import (
    EASTERN_TZ,
    days_between,
    days_held,
    days_to_expiry,
    is_expired,
    to_eastern_date,
)


def test_days_to_expiry_counts_calendar_days():
    assert days_to_expiry(date(2025, 1, 17), as_of=date(2025, 1, 10)) == 7
    assert days_to_expiry(date(2025, 1, 17), as_of=date(2025, 1, 17)) == 0


def test_days_to_expiry_is_negative_once_expired():
    assert days_to_expiry(date(2025, 1, 17), as_of=date(2025, 1, 20)) == -3


def test_days_held_uses_close_date_when_present():
    assert days_held(date(2025, 1, 2), date(2025, 2, 1)) == 30


def test_days_held_uses_as_of_when_open():
    assert days_held(date(2025, 1, 2), as_of=date(2025, 1, 12)) == 10


def test_days_held_never_negative():
    assert days_held(date(2025, 3, 1), as_of=date(2025, 2, 1)) == 0


def test_days_between_is_signed():
    assert days_between(date(2025, 1, 10), date(2025, 1, 5)) == -5


def test_to_eastern_date_converts_aware_datetimes():
    late_utc = datetime(2025, 1, 18, 3, 0, tzinfo=timezone.utc)

    assert to_eastern_date(late_utc) == date(2025, 1, 17)


def test_to_eastern_date_passes_dates_through():
    assert to_eastern_date(date(2025, 6, 1)) == date(2025, 6, 1)


def test_option_is_live_until_market_close():
    expiry = date(2025, 1, 17)

    assert not is_expired(expiry, now=datetime(2025, 1, 17, 15, 59, tzinfo=EASTERN_TZ))
    assert not is_expired(expiry, now=datetime(2025, 1, 17, 16, 0, tzinfo=EASTERN_TZ))
    assert is_expired(expiry, now=datetime(2025, 1, 17, 16, 1, tzinfo=EASTERN_TZ))


def test_is_expired_treats_naive_datetimes_as_eastern():
    assert is_expired(date(2025, 1, 17), now=datetime(2025, 1, 18, 9, 30))
    assert not is_expired(date(2025, 1, 17), now=datetime(2025, 1, 16, 20, 0))


def test_is_expired_converts_other_timezones():
    # 21:30 UTC is 16:30 in New York during standard time.
    assert is_expired(date(2025, 1, 17), now=datetime(2025, 1, 17, 21, 30, tzinfo=timezone.utc))
    assert not is_expired(
        date(2025, 1, 17), now=datetime(2025, 1, 17, 20, 30, tzinfo=timezone.utc)
    )
