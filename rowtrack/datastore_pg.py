import os
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import pool as pg_pool
from psycopg2.extras import RealDictCursor

from .models import KEY_FIELDS, Sample


_POOL: Optional[pg_pool.AbstractConnectionPool] = None

TABLE = "rowing_samples"

# Non-key columns overwritten when a report is re-scraped.
_DATA_COLUMNS = (
    "no",
    "device",
    "latitude",
    "longitude",
    "latitude_decimal",
    "longitude_decimal",
    "speed",
    "course",
    "next_waypoint",
    "dtf",
    "vmg",
    "scraped_at",
)

_SELECT_COLUMNS = ", ".join(KEY_FIELDS + _DATA_COLUMNS + ("created_at", "updated_at"))

SCHEMA_STATEMENTS = (
    f"""
    CREATE TABLE IF NOT EXISTS {TABLE} (
        id BIGSERIAL PRIMARY KEY,
        team_name TEXT NOT NULL,
        source_url TEXT NOT NULL,
        last_update TEXT NOT NULL,
        no TEXT NOT NULL DEFAULT '',
        device TEXT NOT NULL DEFAULT '',
        latitude TEXT NOT NULL DEFAULT '',
        longitude TEXT NOT NULL DEFAULT '',
        latitude_decimal TEXT NOT NULL DEFAULT '',
        longitude_decimal TEXT NOT NULL DEFAULT '',
        speed TEXT NOT NULL DEFAULT '',
        course TEXT NOT NULL DEFAULT '',
        next_waypoint TEXT NOT NULL DEFAULT '',
        dtf TEXT NOT NULL DEFAULT '',
        vmg TEXT NOT NULL DEFAULT '',
        scraped_at TIMESTAMPTZ NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    # Older tables may hold repeated reports; keep the oldest of each triple
    f"""
    DELETE FROM {TABLE} a USING (
        SELECT MIN(id) AS keep_id, team_name, source_url, last_update
        FROM {TABLE}
        GROUP BY team_name, source_url, last_update
        HAVING COUNT(*) > 1
    ) b
    WHERE a.team_name = b.team_name
      AND a.source_url = b.source_url
      AND a.last_update = b.last_update
      AND a.id <> b.keep_id
    """,
    f"CREATE UNIQUE INDEX IF NOT EXISTS {TABLE}_identity_key ON {TABLE} (team_name, source_url, last_update)",
    f"CREATE INDEX IF NOT EXISTS {TABLE}_source_url_idx ON {TABLE} (source_url)",
    f"CREATE INDEX IF NOT EXISTS {TABLE}_scraped_at_idx ON {TABLE} (scraped_at)",
    f"CREATE INDEX IF NOT EXISTS {TABLE}_team_name_idx ON {TABLE} (team_name)",
)

UPSERT_SQL = f"""
    INSERT INTO {TABLE} ({", ".join(KEY_FIELDS + _DATA_COLUMNS)})
    VALUES ({", ".join(["%s"] * (len(KEY_FIELDS) + len(_DATA_COLUMNS)))})
    ON CONFLICT (team_name, source_url, last_update) DO UPDATE SET
        {", ".join(f"{c} = EXCLUDED.{c}" for c in _DATA_COLUMNS)},
        updated_at = now()
"""


def _env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    val = os.environ.get(name)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _connect_kwargs() -> Dict[str, Any]:
    """Connection kwargs shared by the pool and direct connections.

    connect_timeout defaults to 10s (DB_CONNECT_TIMEOUT); keepalives are on
    unless DB_KEEPALIVES is 0/false; idle/interval/count tunables are passed
    through when set.
    """
    kwargs: Dict[str, Any] = {"connect_timeout": _env_int("DB_CONNECT_TIMEOUT", 10)}
    ka_env = os.environ.get("DB_KEEPALIVES")
    kwargs["keepalives"] = 0 if ka_env is not None and ka_env.lower() in ("0", "false") else 1
    for env_name, kw in (
        ("DB_KEEPALIVES_IDLE", "keepalives_idle"),
        ("DB_KEEPALIVES_INTERVAL", "keepalives_interval"),
        ("DB_KEEPALIVES_COUNT", "keepalives_count"),
    ):
        val = _env_int(env_name)
        if val is not None:
            kwargs[kw] = val
    return kwargs


def init_pool(minconn: int = 1, maxconn: int = 10) -> None:
    """Create the process-wide pool from DATABASE_URL; later calls are no-ops."""
    global _POOL
    if _POOL is not None:
        return
    url = os.environ.get("DATABASE_URL")
    if not url:
        # Callers fall back to direct connections
        return
    _POOL = pg_pool.ThreadedConnectionPool(minconn, maxconn, dsn=url, **_connect_kwargs())


def _is_healthy(conn) -> bool:
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
        if not getattr(conn, "autocommit", False):
            conn.rollback()
    except (psycopg2.OperationalError, psycopg2.InterfaceError):
        return False
    return True


def _release(conn) -> None:
    # status 1 = active, 2 = intrans, 3 = inerror
    if getattr(conn, "closed", 0) == 0 and not getattr(conn, "autocommit", False):
        if getattr(conn, "status", 0) in (1, 2, 3):
            try:
                conn.rollback()
            except psycopg2.Error:
                pass


@contextmanager
def _get_conn():
    """Yield a pooled connection (health-checked, one retry) or a direct one.

    Any exception raised inside the block rolls the transaction back before
    propagating; the connection is always returned or closed.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set; configure a PostgreSQL connection string")
    if _POOL is None:
        conn = psycopg2.connect(url, **_connect_kwargs())
        try:
            yield conn
        except Exception:
            try:
                conn.rollback()
            except psycopg2.Error:
                pass
            raise
        finally:
            try:
                conn.close()
            except psycopg2.Error:
                pass
        return

    conn = _POOL.getconn()
    if not _is_healthy(conn):
        # Stale connection (e.g. server restart): discard it and retry once
        _POOL.putconn(conn, close=True)
        conn = _POOL.getconn()
        if not _is_healthy(conn):
            _POOL.putconn(conn, close=True)
            raise psycopg2.OperationalError("Failed to acquire healthy DB connection after retry")
    try:
        try:
            yield conn
        except Exception:
            try:
                conn.rollback()
            except psycopg2.Error:
                pass
            raise
    finally:
        try:
            _release(conn)
        finally:
            _POOL.putconn(conn)


def ping() -> None:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute("SELECT 1")


def ensure_schema() -> None:
    with _get_conn() as conn:
        with conn.cursor() as cur:
            for stmt in SCHEMA_STATEMENTS:
                cur.execute(stmt)
        conn.commit()


def upsert_sample(sample: Sample) -> None:
    """Insert the sample or refresh the existing row with the same identity."""
    params = [getattr(sample, c) for c in KEY_FIELDS + _DATA_COLUMNS]
    with _get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(UPSERT_SQL, params)
        conn.commit()


def list_samples(
    source_url: Optional[str] = None,
    team_name: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    end_exclusive: bool = False,
) -> List[Sample]:
    """Range read ordered by scraped_at; ``end`` is inclusive unless told otherwise."""
    clauses: List[str] = []
    params: List[Any] = []
    if source_url is not None:
        clauses.append("source_url = %s")
        params.append(source_url)
    if team_name is not None:
        clauses.append("team_name = %s")
        params.append(team_name)
    if start is not None:
        clauses.append("scraped_at >= %s")
        params.append(start)
    if end is not None:
        clauses.append("scraped_at < %s" if end_exclusive else "scraped_at <= %s")
        params.append(end)
    sql = f"SELECT {_SELECT_COLUMNS} FROM {TABLE}"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY scraped_at, team_name"
    with _get_conn() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(sql, params)
        return [Sample.from_row(r) for r in cur.fetchall()]


def list_scrape_instants(source_url: str) -> List[datetime]:
    with _get_conn() as conn, conn.cursor() as cur:
        cur.execute(
            f"SELECT DISTINCT scraped_at FROM {TABLE} WHERE source_url = %s ORDER BY scraped_at DESC",
            (source_url,),
        )
        return [row[0] for row in cur.fetchall()]
