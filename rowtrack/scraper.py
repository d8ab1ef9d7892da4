"""Fetch and parse the tracker's "Simple" position table.

Each configured source is fetched, parsed into Samples, written to CSV and
then ingested. Sources are processed one after another; a failure on one is
logged and the cycle moves on to the next.
"""

import csv
import logging
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

import requests
from bs4 import BeautifulSoup

from .ingest import IngestResult, ingest_batch
from .models import Sample
from .timebuckets import truncate_to_millis

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
MIN_CELLS = 11

_DEGREES_MINUTES = re.compile(r"(\d+)°\s*(\d+\.\d+)([NSEW])")

CSV_COLUMNS = [
    ("no", "No"),
    ("device", "Device"),
    ("team_name", "Name"),
    ("last_update", "Last Update (UTC)"),
    ("latitude", "Latitude"),
    ("longitude", "Longitude"),
    ("latitude_decimal", "Latitude (Decimal)"),
    ("longitude_decimal", "Longitude (Decimal)"),
    ("speed", "Speed"),
    ("course", "Course"),
    ("next_waypoint", "Next Waypoint"),
    ("dtf", "DTF (NM)"),
    ("vmg", "VMG (knots)"),
    ("source_url", "Source URL"),
    ("scraped_at", "Scraped At"),
]

_session: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    global _session
    if _session is None:
        _session = requests.Session()
        _session.headers.update({"User-Agent": USER_AGENT})
    return _session


def to_decimal_degrees(coordinate: str) -> str:
    """Convert ``"017° 00.462N"`` style text to signed decimal degrees.

    Returns the value formatted with six decimals (``"17.007700"``), or an
    empty string when the text does not match.
    """
    if not coordinate or not coordinate.strip():
        return ""
    m = _DEGREES_MINUTES.search(coordinate)
    if not m:
        return ""
    decimal = int(m.group(1)) + float(m.group(2)) / 60
    if m.group(3) in ("S", "W"):
        decimal = -decimal
    return f"{decimal:.6f}"


def fetch_page(url: str, timeout: int = 30) -> str:
    resp = _get_session().get(url, timeout=timeout)
    resp.raise_for_status()
    return resp.text


def parse_rows(html: str, source_url: str, scraped_at: datetime) -> List[Sample]:
    soup = BeautifulSoup(html, "html.parser")
    samples: List[Sample] = []
    for tr in soup.select("table.table tbody tr"):
        tds = tr.find_all("td")
        cells = [td.get_text(strip=True) for td in tds]
        if len(cells) < MIN_CELLS:
            continue
        latitude, longitude = cells[4], cells[5]
        samples.append(
            Sample(
                no=cells[0],
                device=re.sub(r"\s+", " ", tds[1].get_text()).strip(),
                team_name=cells[2],
                last_update=cells[3],
                latitude=latitude,
                longitude=longitude,
                latitude_decimal=to_decimal_degrees(latitude),
                longitude_decimal=to_decimal_degrees(longitude),
                speed=cells[6],
                course=cells[7],
                next_waypoint=cells[8],
                dtf=cells[9],
                vmg=cells[10],
                source_url=source_url,
                scraped_at=scraped_at,
            )
        )
    return samples


def url_slug(url: str) -> str:
    tail = url.rstrip("/").split("/")[-1]
    return re.sub(r"[^a-zA-Z0-9]", "_", tail) or "data"


def write_csv(samples: List[Sample], data_dir: Path, scraped_at: datetime) -> Path:
    """Write a timestamped CSV snapshot and refresh ``latest-<slug>.csv``."""
    data_dir.mkdir(parents=True, exist_ok=True)
    slug = url_slug(samples[0].source_url)
    stamp = re.sub(r"[:.+]", "-", scraped_at.isoformat())
    path = data_dir / f"rowing-data-{slug}-{stamp}.csv"
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow([title for _attr, title in CSV_COLUMNS])
        for s in samples:
            row = []
            for attr, _title in CSV_COLUMNS:
                val = getattr(s, attr)
                row.append(val.isoformat() if isinstance(val, datetime) else val)
            writer.writerow(row)
    shutil.copyfile(path, data_dir / f"latest-{slug}.csv")
    logger.info("Data saved to %s", path)
    return path


def scrape_source(store, url: str, data_dir: Optional[Path] = None, timeout: int = 30) -> Optional[IngestResult]:
    """Fetch, parse, persist and ingest one source.

    Fetch errors propagate; an empty table is a warning and returns None.
    CSV output does not depend on the database write succeeding.
    """
    logger.info("Fetching data from %s", url)
    html = fetch_page(url, timeout=timeout)
    scraped_at = truncate_to_millis(datetime.now(timezone.utc))
    samples = parse_rows(html, url, scraped_at)
    logger.info("Parsed %d rows from %s", len(samples), url)
    if not samples:
        logger.warning("No data found in the table at %s", url)
        return None
    if data_dir is not None:
        try:
            write_csv(samples, data_dir, scraped_at)
        except OSError:
            logger.exception("Could not write CSV for %s", url)
    return ingest_batch(store, samples, scraped_at=scraped_at)


def scrape_sources(store, urls: Iterable[str], data_dir: Optional[Path] = None, timeout: int = 30) -> List[IngestResult]:
    results: List[IngestResult] = []
    for url in urls:
        try:
            res = scrape_source(store, url, data_dir=data_dir, timeout=timeout)
        except requests.RequestException as exc:
            logger.error("Error fetching %s: %s", url, exc)
            continue
        except Exception:  # pylint: disable=broad-except
            logger.exception("Error scraping %s", url)
            continue
        if res is not None:
            results.append(res)
    return results
