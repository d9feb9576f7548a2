"""
Data shaping for the dashboard: store reads turned into pandas frames.
"""
from typing import List

import pandas as pd

from ..engine.ledger import compute_realized_pnl
from ..store import ArenaStore

LEADERBOARD_COLUMNS = ["rank", "agent_id", "equity_usd", "return_pct", "as_of"]
PNL_COLUMNS = ["agent_id", "realized_pnl"]
ORDER_COLUMNS = ["time", "agent_id", "symbol", "side", "notional_usd", "status", "order_id"]
EQUITY_COLUMNS = ["time", "agent_id", "equity_usd"]


def _to_time(ts_ms: pd.Series) -> pd.Series:
    return pd.to_datetime(ts_ms, unit="ms", utc=True)


def leaderboard_frame(store: ArenaStore, starting_cash: float) -> pd.DataFrame:
    rows = store.get_latest_equity_by_agent()
    if not rows:
        return pd.DataFrame(columns=LEADERBOARD_COLUMNS)
    df = pd.DataFrame([r.model_dump() for r in rows])
    df = df.sort_values("equity_usd", ascending=False).reset_index(drop=True)
    df["rank"] = df.index + 1
    df["return_pct"] = (df["equity_usd"] / starting_cash - 1) * 100
    df["as_of"] = _to_time(df["ts"])
    return df[LEADERBOARD_COLUMNS]


def pnl_frame(store: ArenaStore, agent_ids: List[str]) -> pd.DataFrame:
    """Realized PnL per configured agent; unattributed fills are excluded."""
    results = compute_realized_pnl(store.get_fills_ordered(), agent_ids)
    df = pd.DataFrame(
        [{"agent_id": r.agent_id, "realized_pnl": r.realized_pnl} for r in results.values()],
        columns=PNL_COLUMNS,
    )
    return df.sort_values("realized_pnl", ascending=False).reset_index(drop=True)


def orders_frame(store: ArenaStore, limit: int = 50) -> pd.DataFrame:
    records = store.get_recent_orders(limit)
    if not records:
        return pd.DataFrame(columns=ORDER_COLUMNS)
    df = pd.DataFrame([r.model_dump() for r in records])
    df["time"] = _to_time(df["ts"])
    return df[ORDER_COLUMNS]


def equity_frame(store: ArenaStore, agent_ids: List[str], limit: int = 500) -> pd.DataFrame:
    """Long-format equity history for all agents, oldest first."""
    frames = []
    for agent_id in agent_ids:
        history = store.get_equity_history(agent_id, limit)
        if history:
            frames.append(pd.DataFrame([s.model_dump() for s in history]))
    if not frames:
        return pd.DataFrame(columns=EQUITY_COLUMNS)
    df = pd.concat(frames, ignore_index=True)
    df["time"] = _to_time(df["ts"])
    return df.sort_values(["time", "agent_id"]).reset_index(drop=True)[EQUITY_COLUMNS]
