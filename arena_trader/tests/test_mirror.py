"""
Postgres mirror: fire-and-forget writes that never raise into the caller.
"""
from arena_trader.mirror import NullMirror, PostgresMirror, build_mirror
from arena_trader.schemas import EquitySnapshot, OrderRecord


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        if self.conn.fail:
            raise RuntimeError("connection reset")
        self.conn.statements.append((sql, params))


class FakeConnection:
    def __init__(self, fail=False):
        self.fail = fail
        self.statements = []
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        self.closed = True


class TestPostgresMirror:
    def test_writes_dispatched_in_order(self):
        conn = FakeConnection()
        mirror = PostgresMirror("postgres://example", connect=lambda url, autocommit: conn)
        mirror.insert_order(OrderRecord(ts=1, agent_id="alpha", symbol="AAPL", side="buy",
                                        notional_usd=10, status="accepted"))
        mirror.insert_equity_snapshot(EquitySnapshot(ts=2, agent_id="alpha", equity_usd=10000))
        mirror.flush(timeout=5)
        assert [s[0].split()[2] for s in conn.statements] == ["orders", "equity_snapshots"]
        assert conn.statements[1][1] == (2, "alpha", 10000)
        mirror.close()

    def test_failures_are_suppressed(self):
        conn = FakeConnection(fail=True)
        mirror = PostgresMirror("postgres://example", connect=lambda url, autocommit: conn)
        mirror.set_meta("last_fill_iso", "2024-01-01T00:00:00Z")
        mirror.flush(timeout=5)
        assert conn.closed
        mirror.close()

    def test_connection_failure_suppressed(self):
        def refuse(url, autocommit):
            raise OSError("refused")

        mirror = PostgresMirror("postgres://example", connect=refuse)
        mirror.ensure_schema()
        mirror.flush(timeout=5)
        mirror.close()

    def test_dispatch_after_close_is_dropped(self):
        mirror = PostgresMirror("postgres://example", connect=lambda url, autocommit: FakeConnection())
        mirror.close()
        mirror.set_meta("k", "v")


class TestBuildMirror:
    def test_no_url_gives_null_mirror(self):
        assert isinstance(build_mirror(None), NullMirror)
        assert isinstance(build_mirror(""), NullMirror)
