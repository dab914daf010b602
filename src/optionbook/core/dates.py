"""Calendar helpers for day counts and expiry checks.

All "today" values are taken on the US/Eastern calendar so that a position
opened late in the evening Pacific time still lands on the exchange date.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

EASTERN_TZ = ZoneInfo("America/New_York")
MARKET_CLOSE = time(16, 0)


def now_eastern() -> datetime:
    return datetime.now(EASTERN_TZ)


def to_eastern_date(value: Optional[date | datetime] = None) -> date:
    """Coerce ``value`` (or the current time) to a US/Eastern calendar date."""
    if value is None:
        return now_eastern().date()
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(EASTERN_TZ).date()
    return value


def days_between(start: date | datetime, end: date | datetime) -> int:
    """Return the signed number of calendar days from ``start`` to ``end``."""
    return (to_eastern_date(end) - to_eastern_date(start)).days


def days_to_expiry(expiry: date, *, as_of: Optional[date | datetime] = None) -> int:
    """Days from ``as_of`` (default today) to ``expiry``; negative once expired."""
    return days_between(to_eastern_date(as_of), expiry)


def days_held(
    open_date: date,
    close_date: Optional[date] = None,
    *,
    as_of: Optional[date | datetime] = None,
) -> int:
    """
    Days from ``open_date`` to ``close_date``, or to ``as_of``/today when still open.

    Never negative: a position dated in the future has been held zero days.
    """
    end = close_date if close_date is not None else to_eastern_date(as_of)
    return max(days_between(open_date, end), 0)


def is_expired(expiry: date, *, now: Optional[datetime] = None) -> bool:
    """
    Whether an option expiring on ``expiry`` has expired at ``now``.

    Options stay live through the 16:00 US/Eastern close on their expiry date.
    """
    current = now or now_eastern()
    if current.tzinfo is None:
        current = current.replace(tzinfo=EASTERN_TZ)
    current = current.astimezone(EASTERN_TZ)
    close = datetime.combine(expiry, MARKET_CLOSE, tzinfo=EASTERN_TZ)
    return current > close
