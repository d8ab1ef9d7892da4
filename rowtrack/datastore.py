# Store client handed to routes, ingestion and the CLI. It delegates every
# query to datastore_pg, looked up at call time so tests can swap the module
# functions for in-memory ones.

from datetime import datetime
from typing import List, Optional

from . import datastore_pg as _pg
from .models import Sample


class SampleStore:
    """Explicit handle on the samples table with connect-on-demand."""

    def __init__(self, pool_min: int = 1, pool_max: int = 10):
        self.pool_min = pool_min
        self.pool_max = pool_max
        self.connected = False

    def ensure_connected(self) -> None:
        """Initialise the pool and verify the server answers, once."""
        if self.connected:
            return
        _pg.init_pool(minconn=self.pool_min, maxconn=self.pool_max)
        _pg.ping()
        self.connected = True

    def ping(self) -> None:
        _pg.ping()

    def ensure_schema(self) -> None:
        self.ensure_connected()
        _pg.ensure_schema()

    def upsert_sample(self, sample: Sample) -> None:
        _pg.upsert_sample(sample)

    def list_samples(
        self,
        source_url: Optional[str] = None,
        team_name: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        end_exclusive: bool = False,
    ) -> List[Sample]:
        self.ensure_connected()
        return _pg.list_samples(
            source_url=source_url,
            team_name=team_name,
            start=start,
            end=end,
            end_exclusive=end_exclusive,
        )

    def list_scrape_instants(self, source_url: str) -> List[datetime]:
        self.ensure_connected()
        return _pg.list_scrape_instants(source_url)
