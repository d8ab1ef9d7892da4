"""Timeline selection for map playback.

The tracker refreshes boats in irregular, partial batches while we scrape on a
fixed cadence, so most distinct ``scraped_at`` values differ from their
neighbours by zero or one boat. Only instants at which at least half of the
known boats carry a sample are kept as playback frames.
"""

from __future__ import annotations

import bisect
import math
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .analytics import delta
from .timebuckets import as_utc

MEANINGFUL_RATIO = 0.5


def _group_by_boat(samples: List) -> Dict[str, List]:
    boats: Dict[str, List] = defaultdict(list)
    for s in samples:
        boats[s.team_name].append(s)
    for series in boats.values():
        series.sort(key=lambda s: as_utc(s.scraped_at))
    return boats


def meaningful_timestamps(samples: List, ratio: float = MEANINGFUL_RATIO) -> Tuple[List[datetime], int]:
    """Return (retained instants newest first, number of distinct instants)."""
    boats = _group_by_boat(samples)
    reporters: Dict[datetime, set] = defaultdict(set)
    for team, series in boats.items():
        for s in series:
            reporters[as_utc(s.scraped_at)].add(team)
    threshold = max(1, math.ceil(len(boats) * ratio))
    kept = [t for t, teams in reporters.items() if len(teams) >= threshold]
    kept.sort(reverse=True)
    return kept, len(reporters)


def _boat_entry(sample, previous) -> Optional[Dict]:
    lat, lng = sample.lat, sample.lng
    if lat is None or lng is None:
        return None
    prev_speed = previous.speed_knots if previous is not None else None
    change = delta(sample.speed_knots, prev_speed)
    return {
        "name": sample.team_name,
        "lat": lat,
        "lng": lng,
        "latOriginal": sample.latitude,
        "lngOriginal": sample.longitude,
        "speed": sample.speed_knots,
        "course": sample.course_degrees,
        "lastUpdate": sample.last_update,
        "scrapedAt": as_utc(sample.scraped_at).isoformat(),
        "previousSpeed": prev_speed,
        "speedDiff": change["diff"],
        "percentChange": change["percentChange"],
    }


def _stamps_by_boat(boats: Dict[str, List]) -> Dict[str, List[datetime]]:
    return {team: [as_utc(s.scraped_at) for s in series] for team, series in boats.items()}


def build_frame(
    boats: Dict[str, List], instant: datetime, stamps: Optional[Dict[str, List[datetime]]] = None
) -> List[Dict]:
    """Position of every boat as of ``instant``, with change vs. its prior sample.

    ``stamps`` holds each boat's sorted UTC instants; pass it when building many
    frames from the same boats.
    """
    if stamps is None:
        stamps = _stamps_by_boat(boats)
    frame: List[Dict] = []
    for team in sorted(boats):
        series = boats[team]
        idx = bisect.bisect_right(stamps[team], instant) - 1
        if idx < 0:
            continue
        previous = series[idx - 1] if idx > 0 else None
        entry = _boat_entry(series[idx], previous)
        if entry is not None:
            frame.append(entry)
    return frame


def map_playback(samples: List, source_url: Optional[str] = None) -> Dict:
    boats = _group_by_boat(samples)
    kept, total = meaningful_timestamps(samples)
    stamps = _stamps_by_boat(boats)
    frames = [{"timestamp": t.isoformat(), "boats": build_frame(boats, t, stamps)} for t in kept]
    latest = frames[0]["boats"] if frames else []
    return {
        "sourceUrl": source_url,
        "totalTimestamps": total,
        "filteredTimestamps": len(kept),
        "timestamps": [t.isoformat() for t in kept],
        "frames": frames,
        "count": len(latest),
        "data": latest,
    }
