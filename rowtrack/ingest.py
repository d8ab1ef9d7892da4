"""Idempotent ingestion of parsed tracker rows into the samples table."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Sequence

from .timebuckets import as_utc, truncate_to_millis

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    source_url: Optional[str]
    upserted: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


def ingest_batch(store, samples: Sequence, scraped_at: Optional[datetime] = None) -> IngestResult:
    """Upsert one source's batch keyed by (team, source, last update label).

    A new label inserts a row; a repeated label refreshes the existing row and
    stamps it with this batch's ``scraped_at``. Instants are stored in UTC with
    millisecond precision. Store errors are collected and logged once for the
    batch instead of being raised.
    """
    source_url = samples[0].source_url if samples else None
    result = IngestResult(source_url=source_url)
    if not samples:
        return result

    try:
        store.ensure_connected()
    except Exception as exc:  # pylint: disable=broad-except
        result.failed = len(samples)
        result.errors.append(str(exc))
        logger.error("ingest_batch source=%s store unavailable; %d rows not saved: %s", source_url, len(samples), exc)
        return result

    for sample in samples:
        stamp = scraped_at if scraped_at is not None else sample.scraped_at
        sample = replace(sample, scraped_at=truncate_to_millis(as_utc(stamp)))
        try:
            store.upsert_sample(sample)
        except Exception as exc:  # pylint: disable=broad-except
            result.failed += 1
            result.errors.append(f"{sample.team_name}: {exc}")
            continue
        result.upserted += 1

    logger.info("ingest_batch source=%s upserted=%d failed=%d", source_url, result.upserted, result.failed)
    if result.failed:
        logger.error(
            "ingest_batch source=%s had %d failed writes; first error: %s",
            source_url,
            result.failed,
            result.errors[0],
        )
    return result
