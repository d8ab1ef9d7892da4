"""Command line entry points: web server, one-off scrape, scheduler, schema."""

import argparse
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .config import load_settings
from .datastore import SampleStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rowtrack", description="Ocean-rowing tracker ingestion and analytics")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None)

    scrape = sub.add_parser("scrape", help="Run one ingestion cycle")
    scrape.add_argument("--url", action="append", help="Source URL (repeatable); defaults to SCRAPE_URLS")

    sub.add_parser("schedule", help="Scrape now and then on every interval boundary")
    sub.add_parser("init-db", help="Create or upgrade the samples table")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    args = build_parser().parse_args(argv)
    settings = load_settings()
    if not settings.database_url:
        logger.error("DATABASE_URL is not set")
        return 2
    store = SampleStore(pool_min=settings.pool_min, pool_max=settings.pool_max)

    if args.command == "serve":
        from . import create_app

        create_app(settings=settings, store=store).run(host=args.host, port=args.port or settings.port)
        return 0

    if args.command == "init-db":
        store.ensure_schema()
        logger.info("Schema is up to date")
        return 0

    if args.command == "scrape":
        from .scraper import scrape_sources

        urls = args.url or settings.source_urls
        results = scrape_sources(store, urls, data_dir=settings.data_dir, timeout=settings.http_timeout)
        failed = sum(r.failed for r in results)
        logger.info("Scraped %d of %d sources (%d failed writes)", len(results), len(urls), failed)
        return 0

    if args.command == "schedule":
        from .scheduler import run_forever

        try:
            run_forever(store, settings)
        except KeyboardInterrupt:
            logger.info("Scheduler stopped")
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
