"""Validated request parameters for the analytics and map endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional
from urllib.parse import urlparse

from .timebuckets import parse_local_date, today_local

MIN_OFFSET = -12
MAX_OFFSET = 14

_EXAMPLE_SOURCE = "https://yb.tl/Simple/arc2025"


class QueryError(ValueError):
    """Missing or malformed query parameter; reported to the caller as 400."""


def _required(args: Mapping[str, str], name: str, example: str) -> str:
    val = (args.get(name) or "").strip()
    if not val:
        raise QueryError(f"Parameter '{name}' is required. Example: {example}")
    return val


def _timezone(args: Mapping[str, str], example: str) -> int:
    raw = (args.get("timezone") or "").strip()
    if not raw:
        return 0
    try:
        offset = int(raw)
    except ValueError:
        raise QueryError(f"Invalid timezone '{raw}'. Expected whole hours from UTC. Example: {example}") from None
    if not MIN_OFFSET <= offset <= MAX_OFFSET:
        raise QueryError(f"Timezone {offset} out of range [{MIN_OFFSET}, {MAX_OFFSET}]. Example: {example}")
    return offset


def _date(args: Mapping[str, str], name: str, example: str) -> Optional[date]:
    raw = (args.get(name) or "").strip()
    if not raw:
        return None
    try:
        return parse_local_date(raw)
    except ValueError:
        raise QueryError(f"Invalid {name} '{raw}'. Expected YYYY-MM-DD. Example: {example}") from None


@dataclass(frozen=True)
class TeamQuery:
    name: str
    source_url: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    timezone: int = 0

    EXAMPLE = f"/analytics/team?name=TeamName&sourceUrl={_EXAMPLE_SOURCE}&timezone=-4"

    @classmethod
    def from_args(cls, args: Mapping[str, str]) -> "TeamQuery":
        name = _required(args, "name", cls.EXAMPLE)
        start = _date(args, "startDate", cls.EXAMPLE)
        end = _date(args, "endDate", cls.EXAMPLE)
        if start and end and start > end:
            raise QueryError(f"startDate {start} is after endDate {end}. Example: {cls.EXAMPLE}")
        return cls(
            name=name,
            source_url=(args.get("sourceUrl") or "").strip() or None,
            start_date=start,
            end_date=end,
            timezone=_timezone(args, cls.EXAMPLE),
        )


@dataclass(frozen=True)
class TableQuery:
    source_url: str
    date: date
    timezone: int = 0

    EXAMPLE = f"/analytics/table?sourceUrl={_EXAMPLE_SOURCE}&date=2025-12-05&timezone=0"

    @classmethod
    def from_args(cls, args: Mapping[str, str]) -> "TableQuery":
        source = _required(args, "sourceUrl", cls.EXAMPLE)
        offset = _timezone(args, cls.EXAMPLE)
        target = _date(args, "date", cls.EXAMPLE) or today_local(offset)
        return cls(source_url=source, date=target, timezone=offset)


@dataclass(frozen=True)
class DatesQuery:
    source_url: str
    timezone: int = 0

    EXAMPLE = f"/analytics/dates?sourceUrl={_EXAMPLE_SOURCE}&timezone=0"

    @classmethod
    def from_args(cls, args: Mapping[str, str]) -> "DatesQuery":
        return cls(
            source_url=_required(args, "sourceUrl", cls.EXAMPLE),
            timezone=_timezone(args, cls.EXAMPLE),
        )


@dataclass(frozen=True)
class MapQuery:
    source_url: str

    EXAMPLE = f"/map/data?sourceUrl={_EXAMPLE_SOURCE}"

    @classmethod
    def from_args(cls, args: Mapping[str, str]) -> "MapQuery":
        return cls(source_url=_required(args, "sourceUrl", cls.EXAMPLE))


@dataclass(frozen=True)
class ScrapeQuery:
    url: str

    EXAMPLE = f"/scrape-url?url={_EXAMPLE_SOURCE}"

    @classmethod
    def from_args(cls, args: Mapping[str, str]) -> "ScrapeQuery":
        url = _required(args, "url", cls.EXAMPLE)
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise QueryError(f"Invalid URL format '{url}'. Example: {cls.EXAMPLE}")
        return cls(url=url)
