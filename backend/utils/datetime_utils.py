import calendar
import math
from datetime import datetime, date, timedelta, timezone

# Persisted datetimes are naive UTC; SQLite drops tzinfo on round-trip.

SECONDS_PER_DAY = 24 * 60 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_datetime(value: str | datetime | date | None) -> datetime | None:
    """Parse an ISO date or datetime string (a trailing ``Z`` is accepted)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    raw = str(value).strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return to_naive_utc(datetime.fromisoformat(raw))


def start_of_day(d: date) -> datetime:
    return datetime(d.year, d.month, d.day)


def end_of_day(d: date) -> datetime:
    return datetime(d.year, d.month, d.day, 23, 59, 59, 999999)


def days_left_until(end: datetime, now: datetime | None = None) -> int:
    """Whole days remaining until ``end``, rounded up and clamped at zero."""
    if now is None:
        now = utcnow()
    remaining = (to_naive_utc(end) - to_naive_utc(now)).total_seconds() / SECONDS_PER_DAY
    return max(0, math.ceil(remaining))


def add_days(value: datetime, days: int) -> datetime:
    return value + timedelta(days=days)


def isoformat_z(value: datetime | None) -> str | None:
    if value is None:
        return None
    return to_naive_utc(value).isoformat(timespec="milliseconds") + "Z"


def add_months(value: datetime, months: int) -> datetime:
    """Same day ``months`` later, clamped to the last day of the target month."""
    index = value.month - 1 + months
    year, month = value.year + index // 12, index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
