"""
Best-effort secondary mirror of the arena store.

Writes are dispatched to a single background worker and never awaited by the
caller. A failing mirror logs and moves on: it is eventually consistent,
non-authoritative, and never read back by the arena.
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from .schemas import ClientOrderMapping, EquitySnapshot, FillRecord, MarketSnapshot, OrderRecord

logger = logging.getLogger("arena_trader.mirror")

PG_SCHEMA = """
CREATE TABLE IF NOT EXISTS market_snapshots (
    ts BIGINT NOT NULL,
    symbol TEXT NOT NULL,
    price DOUBLE PRECISION NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_market_snapshots_symbol_ts ON market_snapshots(symbol, ts);

CREATE TABLE IF NOT EXISTS orders (
    ts BIGINT NOT NULL,
    agent_id TEXT NOT NULL,
    symbol TEXT NOT NULL,
    side TEXT NOT NULL,
    notional_usd DOUBLE PRECISION NOT NULL,
    status TEXT NOT NULL,
    order_id TEXT
);
CREATE INDEX IF NOT EXISTS idx_orders_agent_ts ON orders(agent_id, ts);

CREATE TABLE IF NOT EXISTS equity_snapshots (
    ts BIGINT NOT NULL,
    agent_id TEXT NOT NULL,
    equity_usd DOUBLE PRECISION NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_equity_agent_ts ON equity_snapshots(agent_id, ts);

CREATE TABLE IF NOT EXISTS order_client_map (
    client_id TEXT PRIMARY KEY,
    agent_id TEXT NOT NULL,
    symbol TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS fills (
    ts BIGINT NOT NULL,
    agent_id TEXT NOT NULL,
    symbol TEXT NOT NULL,
    side TEXT NOT NULL,
    qty DOUBLE PRECISION NOT NULL,
    price DOUBLE PRECISION NOT NULL,
    activity_id TEXT UNIQUE
);
CREATE INDEX IF NOT EXISTS idx_fills_agent_ts ON fills(agent_id, ts);

CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class SecondaryMirror:
    """No-op mirror; subclasses override the writes they support."""

    def ensure_schema(self) -> None:
        pass

    def insert_market_snapshot(self, snapshot: MarketSnapshot) -> None:
        pass

    def insert_order(self, order: OrderRecord) -> None:
        pass

    def insert_fill(self, fill: FillRecord) -> None:
        pass

    def insert_equity_snapshot(self, snapshot: EquitySnapshot) -> None:
        pass

    def upsert_client_order(self, mapping: ClientOrderMapping) -> None:
        pass

    def set_meta(self, key: str, value: str) -> None:
        pass

    def close(self) -> None:
        pass


class NullMirror(SecondaryMirror):
    """Used when no DATABASE_URL is configured."""


class PostgresMirror(SecondaryMirror):
    """Fire-and-forget Postgres mirror using psycopg on a background thread."""

    def __init__(self, database_url: str, connect: Optional[Callable[..., Any]] = None):
        if connect is None:
            import psycopg

            connect = psycopg.connect
        self._connect = connect
        self._database_url = database_url
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="arena-mirror")
        self._conn: Any = None

    def _connection(self) -> Any:
        if self._conn is None or getattr(self._conn, "closed", False):
            self._conn = self._connect(self._database_url, autocommit=True)
        return self._conn

    def _run(self, label: str, sql: str, params: tuple = ()) -> None:
        try:
            with self._connection().cursor() as cur:
                cur.execute(sql, params or None)
        except Exception as e:
            logger.warning(f"Mirror write '{label}' failed: {e}")
            self._reset()

    def _reset(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            try:
                conn.close()
            except Exception as e:
                logger.debug(f"Mirror connection close failed: {e}")

    def _dispatch(self, label: str, sql: str, params: tuple = ()) -> Optional[Future]:
        try:
            return self._executor.submit(self._run, label, sql, params)
        except RuntimeError as e:
            # Executor already shut down during process exit.
            logger.debug(f"Mirror dispatch '{label}' dropped: {e}")
            return None

    def ensure_schema(self) -> None:
        self._dispatch("schema", PG_SCHEMA)

    def insert_market_snapshot(self, snapshot: MarketSnapshot) -> None:
        self._dispatch(
            "market_snapshot",
            "INSERT INTO market_snapshots (ts, symbol, price) VALUES (%s, %s, %s)",
            (snapshot.observed_at, snapshot.symbol, snapshot.price),
        )

    def insert_order(self, order: OrderRecord) -> None:
        self._dispatch(
            "order",
            "INSERT INTO orders (ts, agent_id, symbol, side, notional_usd, status, order_id) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s)",
            (order.ts, order.agent_id, order.symbol, order.side, order.notional_usd, order.status, order.order_id),
        )

    def insert_fill(self, fill: FillRecord) -> None:
        self._dispatch(
            "fill",
            "INSERT INTO fills (ts, agent_id, symbol, side, qty, price, activity_id) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s) ON CONFLICT DO NOTHING",
            (fill.ts, fill.agent_id, fill.symbol, fill.side, fill.qty, fill.price, fill.activity_id),
        )

    def insert_equity_snapshot(self, snapshot: EquitySnapshot) -> None:
        self._dispatch(
            "equity_snapshot",
            "INSERT INTO equity_snapshots (ts, agent_id, equity_usd) VALUES (%s, %s, %s)",
            (snapshot.ts, snapshot.agent_id, snapshot.equity_usd),
        )

    def upsert_client_order(self, mapping: ClientOrderMapping) -> None:
        self._dispatch(
            "client_order",
            "INSERT INTO order_client_map (client_id, agent_id, symbol) VALUES (%s, %s, %s) "
            "ON CONFLICT (client_id) DO UPDATE SET agent_id = EXCLUDED.agent_id, symbol = EXCLUDED.symbol",
            (mapping.client_order_id, mapping.agent_id, mapping.symbol),
        )

    def set_meta(self, key: str, value: str) -> None:
        self._dispatch(
            "meta",
            "INSERT INTO meta (key, value) VALUES (%s, %s) "
            "ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value",
            (key, value),
        )

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for queued writes. Only tests and shutdown need this."""
        self._executor.submit(lambda: None).result(timeout=timeout)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self._reset()


def build_mirror(database_url: Optional[str]) -> SecondaryMirror:
    """PostgresMirror when a URL is configured and psycopg is installed, else NullMirror."""
    if not database_url:
        return NullMirror()
    try:
        return PostgresMirror(database_url)
    except ImportError:
        logger.warning("DATABASE_URL is set but psycopg is not installed; mirror disabled")
        return NullMirror()
