"""
Dashboard frames built from the store.
"""
from arena_trader.dashboard.data import (
    LEADERBOARD_COLUMNS,
    ORDER_COLUMNS,
    equity_frame,
    leaderboard_frame,
    orders_frame,
    pnl_frame,
)
from arena_trader.schemas import EquitySnapshot, FillRecord, OrderRecord


class TestDashboardFrames:
    def test_empty_store(self, store):
        assert list(leaderboard_frame(store, 10000.0).columns) == LEADERBOARD_COLUMNS
        assert list(orders_frame(store).columns) == ORDER_COLUMNS
        assert equity_frame(store, ["alpha"]).empty
        assert list(pnl_frame(store, ["alpha"])["realized_pnl"]) == [0.0]

    def test_leaderboard_returns(self, store):
        store.record_equity_snapshot(EquitySnapshot(ts=1000, agent_id="alpha", equity_usd=10500.0))
        store.record_equity_snapshot(EquitySnapshot(ts=1000, agent_id="beta", equity_usd=9000.0))
        df = leaderboard_frame(store, 10000.0)
        assert list(df["agent_id"]) == ["alpha", "beta"]
        assert list(df["rank"]) == [1, 2]
        assert round(df["return_pct"].iloc[0], 6) == 5.0
        assert round(df["return_pct"].iloc[1], 6) == -10.0

    def test_pnl_and_orders(self, store):
        store.record_fill(FillRecord(ts=1, agent_id="beta", symbol="AAPL", side="buy", qty=2, price=10.0))
        store.record_fill(FillRecord(ts=2, agent_id="beta", symbol="AAPL", side="sell", qty=2, price=12.0))
        store.record_order(OrderRecord(ts=5, agent_id="beta", symbol="AAPL", side="buy", notional_usd=20.0, status="filled"))

        pnl = pnl_frame(store, ["alpha", "beta"])
        assert list(pnl["agent_id"]) == ["beta", "alpha"]
        assert pnl["realized_pnl"].iloc[0] == 4.0

        orders = orders_frame(store)
        assert orders["status"].iloc[0] == "filled"
        assert str(orders["time"].dt.tz) == "UTC"

    def test_equity_long_format(self, store):
        for ts, value in ((1000, 10000.0), (2000, 10010.0)):
            store.record_equity_snapshot(EquitySnapshot(ts=ts, agent_id="alpha", equity_usd=value))
            store.record_equity_snapshot(EquitySnapshot(ts=ts, agent_id="beta", equity_usd=value - 5))
        df = equity_frame(store, ["alpha", "beta"])
        assert len(df) == 4
        assert list(df["agent_id"][:2]) == ["alpha", "beta"]
        assert df["equity_usd"].iloc[-1] == 10005.0
