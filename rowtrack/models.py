"""Sample record and tolerant parsers for the published tracker fields."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Optional

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)")
_LEADING_INT = re.compile(r"^\s*[-+]?\d+")

# Columns that make up the identity of a stored sample.
KEY_FIELDS = ("team_name", "source_url", "last_update")


def parse_speed(raw: Optional[str]) -> float:
    """Return the leading number of a free-text speed such as ``"3.2 kts"``.

    Anything unparsable (or negative) counts as ``0.0``.
    """
    if raw is None:
        return 0.0
    m = _LEADING_NUMBER.match(str(raw))
    if not m:
        return 0.0
    try:
        val = float(m.group(0))
    except ValueError:
        return 0.0
    if math.isnan(val) or val < 0:
        return 0.0
    return val


def parse_course(raw: Optional[str]) -> int:
    if raw is None:
        return 0
    m = _LEADING_INT.match(str(raw))
    if not m:
        return 0
    return int(m.group(0)) % 360


def parse_coordinate(raw: Optional[str]) -> Optional[float]:
    """Return a decimal coordinate, or None when the text is not numeric."""
    if raw is None:
        return None
    try:
        val = float(str(raw).strip())
    except ValueError:
        return None
    if math.isnan(val) or math.isinf(val):
        return None
    return val


@dataclass
class Sample:
    """One boat observation for one source update.

    ``last_update`` is the label exactly as the tracker publishes it; it is not
    parsed. ``scraped_at`` is the UTC instant this system saw the row.
    """

    team_name: str
    source_url: str
    last_update: str
    scraped_at: datetime
    latitude: str = ""
    longitude: str = ""
    latitude_decimal: str = ""
    longitude_decimal: str = ""
    speed: str = ""
    course: str = ""
    no: str = ""
    device: str = ""
    next_waypoint: str = ""
    dtf: str = ""
    vmg: str = ""
    created_at: Optional[datetime] = field(default=None, compare=False)
    updated_at: Optional[datetime] = field(default=None, compare=False)

    @property
    def key(self) -> tuple:
        return (self.team_name, self.source_url, self.last_update)

    @property
    def speed_knots(self) -> float:
        return parse_speed(self.speed)

    @property
    def course_degrees(self) -> int:
        return parse_course(self.course)

    @property
    def lat(self) -> Optional[float]:
        return parse_coordinate(self.latitude_decimal)

    @property
    def lng(self) -> Optional[float]:
        return parse_coordinate(self.longitude_decimal)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Sample":
        """Build a Sample from a mapping (e.g. a RealDictCursor row)."""
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for name in names:
            if name in row:
                val = row[name]
                if val is None and name not in ("created_at", "updated_at"):
                    val = ""
                kwargs[name] = val
        return cls(**kwargs)

    def to_row(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
