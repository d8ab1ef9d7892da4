"""Local-day and time-of-day bucketing under an integer UTC offset."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple, Optional, Tuple

HOURS_PER_WINDOW = 4


class TimeWindow(NamedTuple):
    label: str
    start_hour: int
    end_hour: int

    def contains(self, hour: int) -> bool:
        return self.start_hour <= hour < self.end_hour


class LocalTime(NamedTuple):
    local_date: date
    local_hour: int


def _build_windows() -> Tuple[TimeWindow, ...]:
    out = []
    for start in range(0, 24, HOURS_PER_WINDOW):
        end = start + HOURS_PER_WINDOW
        out.append(TimeWindow(f"{start:02d}:00-{end:02d}:00", start, end))
    return tuple(out)


# [0,4) [4,8) ... [20,24)
WINDOWS: Tuple[TimeWindow, ...] = _build_windows()


def as_utc(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def localize(instant_utc: datetime, offset_hours: int) -> LocalTime:
    """Map a UTC instant to (local calendar date, local hour) for an offset.

    The date comes from shifting the instant by ``offset_hours`` as a
    duration; the hour is normalised into [0, 24) for negative offsets.
    """
    instant_utc = as_utc(instant_utc)
    local_hour = (instant_utc.hour + offset_hours + 24) % 24
    local_date = (instant_utc + timedelta(hours=offset_hours)).date()
    return LocalTime(local_date, local_hour)


def window_of(local_hour: int) -> TimeWindow:
    for window in WINDOWS:
        if window.contains(local_hour):
            return window
    raise ValueError(f"hour out of range: {local_hour}")


def day_range_utc(local_date: date, offset_hours: int) -> Tuple[datetime, datetime]:
    """Return the inclusive UTC range covering ``local_date`` under the offset."""
    shift = timedelta(hours=offset_hours)
    start = datetime.combine(local_date, time(0, 0, 0), tzinfo=timezone.utc) - shift
    end = datetime.combine(local_date, time(23, 59, 59, 999000), tzinfo=timezone.utc) - shift
    return start, end


def day_start_utc(local_date: date, offset_hours: int) -> datetime:
    return day_range_utc(local_date, offset_hours)[0]


def parse_local_date(text: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string."""
    return datetime.strptime(text, "%Y-%m-%d").date()


def today_local(offset_hours: int, now: Optional[datetime] = None) -> date:
    if now is None:
        now = datetime.now(timezone.utc)
    return localize(now, offset_hours).local_date


def truncate_to_millis(instant: datetime) -> datetime:
    return instant.replace(microsecond=(instant.microsecond // 1000) * 1000)
