"""Speed aggregation by local day and time-of-day window."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from .timebuckets import WINDOWS, day_range_utc, day_start_utc, localize, window_of

TRAILING_DAYS = 7


def _round(value: float, places: int) -> float:
    # Ties round away from zero
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return _round(sum(values) / len(values), 2)


def delta(current: Optional[float], baseline: Optional[float]) -> Dict[str, Optional[float]]:
    """Difference and percent change of ``current`` against ``baseline``.

    ``diff`` needs both values; ``percentChange`` additionally needs a non-zero
    baseline. Missing inputs give None rather than 0.
    """
    diff = None
    percent = None
    if current is not None and baseline is not None:
        diff = _round(current - baseline, 2)
        if baseline != 0:
            percent = _round(diff / baseline * 100, 1)
    return {"diff": diff, "percentChange": percent}


def _speeds_by_window(samples: Iterable, offset_hours: int) -> Dict[str, List[float]]:
    buckets: Dict[str, List[float]] = defaultdict(list)
    for s in samples:
        hour = localize(s.scraped_at, offset_hours).local_hour
        buckets[window_of(hour).label].append(s.speed_knots)
    return buckets


def window_averages(samples: Iterable, offset_hours: int = 0) -> Dict[str, Optional[float]]:
    """Map every window label to its mean speed, or None without data."""
    buckets = _speeds_by_window(samples, offset_hours)
    return {w.label: _mean(buckets.get(w.label, [])) for w in WINDOWS}


def window_stats(samples: Iterable, offset_hours: int = 0) -> List[Dict]:
    """Per-window mean speed for windows that have samples, in window order."""
    buckets = _speeds_by_window(samples, offset_hours)
    out: List[Dict] = []
    for w in WINDOWS:
        speeds = buckets.get(w.label)
        if not speeds:
            continue
        out.append(
            {
                "window": w.label,
                "startHour": w.start_hour,
                "endHour": w.end_hour,
                "avgSpeed": _mean(speeds),
                "dataPoints": len(speeds),
            }
        )
    return out


def daily_stats(samples: Iterable, offset_hours: int = 0) -> List[Dict]:
    """Group samples by local calendar date and aggregate each day.

    Days without samples never appear, so an empty input gives an empty list.
    """
    by_date: Dict[date, List] = defaultdict(list)
    for s in samples:
        by_date[localize(s.scraped_at, offset_hours).local_date].append(s)
    out: List[Dict] = []
    for day in sorted(by_date):
        day_samples = by_date[day]
        out.append(
            {
                "date": day.isoformat(),
                "avgSpeed": _mean([s.speed_knots for s in day_samples]),
                "dataPoints": len(day_samples),
                "timeWindows": window_stats(day_samples, offset_hours),
            }
        )
    return out


def team_analytics(samples: List, offset_hours: int = 0) -> Optional[Dict]:
    if not samples:
        return None
    return {
        "teamName": samples[0].team_name,
        "sourceUrl": samples[0].source_url,
        "timezone": offset_hours,
        "dailyStats": daily_stats(samples, offset_hours),
    }


def compare_trailing(current: List, trailing: List, offset_hours: int = 0) -> List[Dict]:
    """Build per-team rows comparing the target day to the trailing baseline.

    Args:
        current: Samples for the target local day.
        trailing: Samples for the preceding seven local days.
        offset_hours: UTC offset used to assign samples to windows.

    Returns:
        One row per team seen in either input, sorted by team name. Each
        window label maps to ``current``, ``sevenDayAvg``, ``diff`` and
        ``percentChange``.
    """
    today_by_team: Dict[str, List] = defaultdict(list)
    past_by_team: Dict[str, List] = defaultdict(list)
    for s in current:
        today_by_team[s.team_name].append(s)
    for s in trailing:
        past_by_team[s.team_name].append(s)

    rows: List[Dict] = []
    for team in sorted(set(today_by_team) | set(past_by_team)):
        today = today_by_team.get(team, [])
        past = past_by_team.get(team, [])
        now_avg = window_averages(today, offset_hours)
        past_avg = window_averages(past, offset_hours)
        row: Dict = {
            "teamName": team,
            "dailyAverage": _mean([s.speed_knots for s in today]),
            "sevenDayAverage": _mean([s.speed_knots for s in past]),
            "dataPoints": len(today),
            "historicalDataPoints": len(past),
        }
        for w in WINDOWS:
            row[w.label] = {
                "current": now_avg[w.label],
                "sevenDayAvg": past_avg[w.label],
                **delta(now_avg[w.label], past_avg[w.label]),
            }
        rows.append(row)
    return rows


def table_analytics(store, source_url: str, target: date, offset_hours: int = 0) -> Dict:
    """Compare every team's day ``target`` against the 7 local days before it.

    Uses exactly two range reads, however many teams the source has.
    """
    start, end = day_range_utc(target, offset_hours)
    trailing_start = day_start_utc(target - timedelta(days=TRAILING_DAYS), offset_hours)
    current = store.list_samples(source_url=source_url, start=start, end=end)
    trailing = store.list_samples(source_url=source_url, start=trailing_start, end=start, end_exclusive=True)
    rows = compare_trailing(current, trailing, offset_hours)
    return {
        "date": target.isoformat(),
        "sourceUrl": source_url,
        "timezone": offset_hours,
        "comparisonPeriod": f"{TRAILING_DAYS} days",
        "count": len(rows),
        "data": rows,
    }


def available_dates(instants: Iterable, offset_hours: int = 0) -> List[str]:
    """Distinct local dates of the given scrape instants, newest first."""
    dates = {localize(t, offset_hours).local_date for t in instants}
    return [d.isoformat() for d in sorted(dates, reverse=True)]
