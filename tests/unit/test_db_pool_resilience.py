import importlib

import pytest


class _Cursor:
    def __init__(self, fail=False):
        self.fail = fail

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, sql, params=None):
        if self.fail:
            from psycopg2 import OperationalError

            raise OperationalError("SSL connection has been closed unexpectedly")


class _Conn:
    autocommit = False
    closed = 0
    status = 0

    def __init__(self, fail=False):
        self.fail = fail
        self.rollbacks = 0

    def cursor(self, cursor_factory=None):
        return _Cursor(self.fail)

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = 1


class FakePool:
    def __init__(self, bad_checkouts=1):
        self.bad_checkouts = bad_checkouts
        self.calls_get = 0
        self.calls_put = []

    def getconn(self):
        self.calls_get += 1
        return _Conn(fail=self.calls_get <= self.bad_checkouts)

    def putconn(self, conn, close=False):
        self.calls_put.append((conn, close))
        if close:
            conn.close()


def test_pool_checkout_retries_on_stale_connection(monkeypatch):
    import rowtrack.datastore_pg as pg
    pg = importlib.reload(pg)

    pool = FakePool(bad_checkouts=1)
    monkeypatch.setattr(pg, "_POOL", pool)

    with pg._get_conn() as conn:
        assert conn.fail is False

    assert pool.calls_get == 2
    # Stale connection discarded, healthy one returned to the pool
    assert pool.calls_put[0][1] is True
    assert pool.calls_put[-1] == (conn, False)


def test_pool_checkout_gives_up_after_second_failure(monkeypatch):
    import psycopg2
    import rowtrack.datastore_pg as pg
    pg = importlib.reload(pg)

    pool = FakePool(bad_checkouts=2)
    monkeypatch.setattr(pg, "_POOL", pool)

    with pytest.raises(psycopg2.OperationalError):
        with pg._get_conn():
            pass
    assert all(close for (_c, close) in pool.calls_put)


def test_error_inside_block_rolls_back_and_returns_connection(monkeypatch):
    import rowtrack.datastore_pg as pg
    pg = importlib.reload(pg)

    pool = FakePool(bad_checkouts=0)
    monkeypatch.setattr(pg, "_POOL", pool)

    with pytest.raises(ValueError):
        with pg._get_conn() as conn:
            raise ValueError("bad row")
    # One rollback after the health ping, one for the failed block
    assert conn.rollbacks >= 2
    assert pool.calls_put == [(conn, False)]
