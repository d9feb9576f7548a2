"""
SQLite persistence for the arena: an append log plus a few upsert tables.

Every primary write is forwarded to the optional secondary mirror after it
commits locally. The mirror never feeds back into reads.
"""
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from .mirror import NullMirror, SecondaryMirror
from .schemas import (
    ClientOrderMapping,
    EquitySnapshot,
    FillRecord,
    MarketSnapshot,
    OrderRecord,
)

logger = logging.getLogger("arena_trader.store")

LAST_FILL_KEY = "last_fill_iso"

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS market_snapshots (
        ts INTEGER NOT NULL,
        symbol TEXT NOT NULL,
        price REAL NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_market_snapshots_symbol_ts ON market_snapshots(symbol, ts)",
    """
    CREATE TABLE IF NOT EXISTS orders (
        ts INTEGER NOT NULL,
        agent_id TEXT NOT NULL,
        symbol TEXT NOT NULL,
        side TEXT NOT NULL,
        notional_usd REAL NOT NULL,
        status TEXT NOT NULL,
        order_id TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_orders_agent_ts ON orders(agent_id, ts)",
    """
    CREATE TABLE IF NOT EXISTS equity_snapshots (
        ts INTEGER NOT NULL,
        agent_id TEXT NOT NULL,
        equity_usd REAL NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_equity_agent_ts ON equity_snapshots(agent_id, ts)",
    """
    CREATE TABLE IF NOT EXISTS order_client_map (
        client_id TEXT PRIMARY KEY,
        agent_id TEXT NOT NULL,
        symbol TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS fills (
        ts INTEGER NOT NULL,
        agent_id TEXT NOT NULL,
        symbol TEXT NOT NULL,
        side TEXT NOT NULL,
        qty REAL NOT NULL,
        price REAL NOT NULL,
        activity_id TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_fills_agent_ts ON fills(agent_id, ts)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_fills_activity_id ON fills(activity_id)",
    """
    CREATE TABLE IF NOT EXISTS meta (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS agent_state (
        agent_id TEXT PRIMARY KEY,
        state_json TEXT NOT NULL,
        updated_ts INTEGER NOT NULL
    )
    """,
]


class ArenaStore:
    """SQLite-backed arena store. Safe to share between the tick loop and API threads."""

    def __init__(self, db_path: str, mirror: Optional[SecondaryMirror] = None):
        self.db_path = db_path
        self.mirror = mirror or NullMirror()
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def initialize(self) -> None:
        """Create tables and indexes if they do not exist yet."""
        if self._initialized:
            return
        with self._lock:
            conn = self._get_connection()
            if self.db_path != ":memory:":
                conn.execute("PRAGMA journal_mode = WAL")
            for statement in SCHEMA:
                conn.execute(statement)
            conn.commit()
            self._initialized = True
        self.mirror.ensure_schema()
        logger.info(f"Arena store initialized at {self.db_path}")

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        self.initialize()
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor

    def _query(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        self.initialize()
        with self._lock:
            return self._get_connection().execute(sql, params).fetchall()

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                self._initialized = False
        self.mirror.close()

    # -- appends ---------------------------------------------------------

    def record_market_snapshot(self, snapshot: MarketSnapshot) -> None:
        self._execute(
            "INSERT INTO market_snapshots (ts, symbol, price) VALUES (?, ?, ?)",
            (snapshot.observed_at, snapshot.symbol, snapshot.price),
        )
        self.mirror.insert_market_snapshot(snapshot)

    def record_order(self, order: OrderRecord) -> None:
        self._execute(
            """
            INSERT INTO orders (ts, agent_id, symbol, side, notional_usd, status, order_id)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (order.ts, order.agent_id, order.symbol, order.side, order.notional_usd, order.status, order.order_id),
        )
        self.mirror.insert_order(order)

    def record_fill(self, fill: FillRecord) -> bool:
        """Append a fill. Returns False when the activity id was already recorded."""
        cursor = self._execute(
            """
            INSERT OR IGNORE INTO fills (ts, agent_id, symbol, side, qty, price, activity_id)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (fill.ts, fill.agent_id, fill.symbol, fill.side, fill.qty, fill.price, fill.activity_id),
        )
        if cursor.rowcount == 0:
            logger.info(f"Fill {fill.activity_id} already recorded; skipping")
            return False
        self.mirror.insert_fill(fill)
        return True

    def record_equity_snapshot(self, snapshot: EquitySnapshot) -> None:
        self._execute(
            "INSERT INTO equity_snapshots (ts, agent_id, equity_usd) VALUES (?, ?, ?)",
            (snapshot.ts, snapshot.agent_id, snapshot.equity_usd),
        )
        self.mirror.insert_equity_snapshot(snapshot)

    # -- client order mapping -------------------------------------------

    def upsert_client_order(self, mapping: ClientOrderMapping) -> None:
        self._execute(
            """
            INSERT INTO order_client_map (client_id, agent_id, symbol) VALUES (?, ?, ?)
            ON CONFLICT(client_id) DO UPDATE SET agent_id = excluded.agent_id, symbol = excluded.symbol
            """,
            (mapping.client_order_id, mapping.agent_id, mapping.symbol),
        )
        self.mirror.upsert_client_order(mapping)

    def find_agent_for_client_order(self, client_order_id: str) -> Optional[str]:
        rows = self._query(
            "SELECT agent_id FROM order_client_map WHERE client_id = ?",
            (client_order_id,),
        )
        return rows[0]["agent_id"] if rows else None

    def find_agent_for_broker_order(self, order_id: str) -> Optional[str]:
        """Agent that submitted the brokerage order id, via the orders log."""
        rows = self._query(
            "SELECT agent_id FROM orders WHERE order_id = ? ORDER BY ts DESC LIMIT 1",
            (order_id,),
        )
        return rows[0]["agent_id"] if rows else None

    # -- meta / checkpoint ----------------------------------------------

    def get_meta(self, key: str) -> Optional[str]:
        rows = self._query("SELECT value FROM meta WHERE key = ?", (key,))
        return rows[0]["value"] if rows else None

    def set_meta(self, key: str, value: str) -> None:
        self._execute(
            """
            INSERT INTO meta (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )
        self.mirror.set_meta(key, value)

    def get_last_fill_checkpoint(self) -> Optional[str]:
        return self.get_meta(LAST_FILL_KEY)

    def set_last_fill_checkpoint(self, iso: str) -> None:
        self.set_meta(LAST_FILL_KEY, iso)

    # -- reads -----------------------------------------------------------

    def get_fills_ordered(self) -> List[FillRecord]:
        rows = self._query(
            "SELECT ts, agent_id, symbol, side, qty, price, activity_id FROM fills ORDER BY ts ASC, rowid ASC"
        )
        return [FillRecord(**dict(row)) for row in rows]

    def get_latest_equity_by_agent(self) -> List[EquitySnapshot]:
        """Latest equity snapshot per agent, highest equity first."""
        rows = self._query(
            """
            SELECT e.ts, e.agent_id, e.equity_usd
            FROM equity_snapshots e
            JOIN (
                SELECT agent_id, MAX(ts) AS max_ts FROM equity_snapshots GROUP BY agent_id
            ) latest ON latest.agent_id = e.agent_id AND latest.max_ts = e.ts
            ORDER BY e.rowid ASC
            """
        )
        # Two snapshots can share a millisecond; keep the later-inserted one.
        latest: Dict[str, EquitySnapshot] = {}
        for row in rows:
            latest[row["agent_id"]] = EquitySnapshot(**dict(row))
        return sorted(latest.values(), key=lambda s: s.equity_usd, reverse=True)

    def get_recent_orders(self, limit: int = 50) -> List[OrderRecord]:
        rows = self._query(
            """
            SELECT ts, agent_id, symbol, side, notional_usd, status, order_id
            FROM orders ORDER BY ts DESC, rowid DESC LIMIT ?
            """,
            (limit,),
        )
        return [OrderRecord(**dict(row)) for row in rows]

    def get_equity_history(self, agent_id: str, limit: int = 500) -> List[EquitySnapshot]:
        """Most recent equity snapshots for one agent, oldest first."""
        rows = self._query(
            """
            SELECT ts, agent_id, equity_usd FROM equity_snapshots
            WHERE agent_id = ? ORDER BY ts DESC, rowid DESC LIMIT ?
            """,
            (agent_id, limit),
        )
        return [EquitySnapshot(**dict(row)) for row in reversed(rows)]

    def count_orders(self, agent_id: Optional[str] = None) -> int:
        if agent_id is None:
            rows = self._query("SELECT COUNT(*) AS n FROM orders")
        else:
            rows = self._query("SELECT COUNT(*) AS n FROM orders WHERE agent_id = ?", (agent_id,))
        return int(rows[0]["n"])

    # -- agent memory ----------------------------------------------------

    def get_agent_state(self, agent_id: str) -> Dict[str, Any]:
        rows = self._query("SELECT state_json FROM agent_state WHERE agent_id = ?", (agent_id,))
        if not rows:
            return {}
        try:
            state = json.loads(rows[0]["state_json"])
        except ValueError:
            logger.warning(f"Corrupt agent state for {agent_id}; ignoring")
            return {}
        return state if isinstance(state, dict) else {}

    def update_agent_state(self, agent_id: str, patch: Dict[str, Any], ts: int) -> Dict[str, Any]:
        """Merge patch into the stored state for agent_id and return the result."""
        with self._lock:
            state = self.get_agent_state(agent_id)
            state.update(patch)
            self._execute(
                """
                INSERT INTO agent_state (agent_id, state_json, updated_ts) VALUES (?, ?, ?)
                ON CONFLICT(agent_id) DO UPDATE SET state_json = excluded.state_json, updated_ts = excluded.updated_ts
                """,
                (agent_id, json.dumps(state), ts),
            )
        return state
