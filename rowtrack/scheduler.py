import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .config import Settings
from .scraper import scrape_sources

logger = logging.getLogger(__name__)


def seconds_until_next_run(now: datetime, interval_minutes: int) -> float:
    """Seconds from ``now`` to the next multiple of the interval past midnight UTC.

    With the default 60 minutes this is the top of the next hour.
    """
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    step = timedelta(minutes=interval_minutes)
    elapsed = now - midnight
    next_run = midnight + step * (elapsed // step + 1)
    return (next_run - now).total_seconds()


def run_cycle(store, settings: Settings) -> None:
    started = datetime.now(timezone.utc)
    logger.info("[CRON] Running scheduled data scrape at %s", started.isoformat())
    try:
        results = scrape_sources(
            store, settings.source_urls, data_dir=settings.data_dir, timeout=settings.http_timeout
        )
    except Exception:  # pylint: disable=broad-except
        logger.exception("[CRON] Error during scheduled scrape")
        return
    saved = sum(r.upserted for r in results)
    logger.info("[CRON] Scrape completed: %d sources, %d rows upserted", len(results), saved)


def run_forever(
    store,
    settings: Settings,
    sleep: Callable[[float], None] = time.sleep,
    max_cycles: Optional[int] = None,
) -> int:
    """Run one cycle now, then one per interval boundary, never overlapping."""
    cycles = 0
    while True:
        run_cycle(store, settings)
        cycles += 1
        if max_cycles is not None and cycles >= max_cycles:
            return cycles
        wait = seconds_until_next_run(datetime.now(timezone.utc), settings.scrape_interval_minutes)
        logger.info("Next scheduled run in %.0f seconds", wait)
        sleep(wait)
