"""
Ledger reconstruction: equity replay and realized PnL.
"""
import pytest

from arena_trader.engine.ledger import compute_equity, compute_realized_pnl, replay_books
from arena_trader.schemas import FillRecord


def fill(ts, agent, side, qty, price, symbol="AAPL"):
    return FillRecord(ts=ts, agent_id=agent, symbol=symbol, side=side, qty=qty, price=price)


class TestEquity:
    def test_buy_then_mark_to_market(self):
        """$10,000 cash, buy 5 @ $20, price now $25 -> $10,025."""
        fills = [fill(1, "alpha", "buy", 5, 20)]
        equity = compute_equity(fills, ["alpha"], 10000, {"AAPL": 25})
        assert equity["alpha"] == pytest.approx(10025)

    def test_cash_and_quantity_after_round_trip(self):
        fills = [fill(1, "alpha", "buy", 10, 10), fill(2, "alpha", "sell", 4, 12)]
        book = replay_books(fills, ["alpha"], 10000)["alpha"]
        assert book.cash == pytest.approx(10000 - 100 + 48)
        assert book.quantities["AAPL"] == pytest.approx(6)

    def test_missing_price_marks_at_zero(self):
        fills = [fill(1, "alpha", "buy", 5, 20)]
        equity = compute_equity(fills, ["alpha"], 10000, {})
        assert equity["alpha"] == pytest.approx(9900)

    def test_unknown_fills_are_excluded(self):
        fills = [fill(1, "unknown", "buy", 100, 50), fill(2, "alpha", "buy", 1, 50)]
        equity = compute_equity(fills, ["alpha", "beta"], 10000, {"AAPL": 50})
        assert equity == {"alpha": pytest.approx(10000), "beta": pytest.approx(10000)}

    def test_agents_without_fills_sit_at_starting_cash(self):
        assert compute_equity([], ["alpha"], 5000, {"AAPL": 1}) == {"alpha": 5000}

    def test_replay_is_deterministic(self):
        fills = [fill(i, "alpha", "buy" if i % 3 else "sell", 1 + i % 4, 10 + i) for i in range(1, 30)]
        prices = {"AAPL": 33.0}
        assert compute_equity(fills, ["alpha"], 10000, prices) == compute_equity(fills, ["alpha"], 10000, prices)
        first = compute_realized_pnl(fills)["alpha"].realized_pnl
        assert compute_realized_pnl(fills)["alpha"].realized_pnl == first

    def test_ties_keep_insertion_order(self):
        """A sell recorded after a buy at the same ts closes that buy."""
        fills = [fill(5, "alpha", "buy", 2, 10), fill(5, "alpha", "sell", 2, 15)]
        assert compute_realized_pnl(fills)["alpha"].realized_pnl == pytest.approx(10)


class TestRealizedPnl:
    def test_partial_close(self):
        """Buy 10 @ $10, sell 4 @ $12 -> PnL $8, 6 left with $60 basis."""
        fills = [fill(1, "alpha", "buy", 10, 10), fill(2, "alpha", "sell", 4, 12)]
        result = compute_realized_pnl(fills)["alpha"]
        assert result.realized_pnl == pytest.approx(8)
        assert result.holdings["AAPL"].qty == pytest.approx(6)
        assert result.holdings["AAPL"].cost == pytest.approx(60)

    def test_average_cost_across_buys(self):
        fills = [fill(1, "alpha", "buy", 1, 10), fill(2, "alpha", "buy", 1, 20), fill(3, "alpha", "sell", 2, 20)]
        assert compute_realized_pnl(fills)["alpha"].realized_pnl == pytest.approx(10)

    def test_short_excess_is_ignored(self):
        fills = [fill(1, "alpha", "buy", 2, 10), fill(2, "alpha", "sell", 5, 11)]
        result = compute_realized_pnl(fills)["alpha"]
        assert result.realized_pnl == pytest.approx(2)
        assert result.holdings["AAPL"].qty == 0

    def test_sell_without_position_realizes_nothing(self):
        assert compute_realized_pnl([fill(1, "alpha", "sell", 3, 10)])["alpha"].realized_pnl == 0

    def test_unknown_never_reported(self):
        fills = [fill(1, "unknown", "buy", 1, 10), fill(2, "unknown", "sell", 1, 20)]
        assert "unknown" not in compute_realized_pnl(fills)

    def test_configured_agents_always_present(self):
        result = compute_realized_pnl([fill(1, "ghost", "buy", 1, 1)], ["alpha"])
        assert list(result) == ["alpha"]
        assert result["alpha"].realized_pnl == 0

    def test_symbols_tracked_separately(self):
        fills = [
            fill(1, "alpha", "buy", 1, 10, "AAPL"),
            fill(2, "alpha", "buy", 1, 100, "MSFT"),
            fill(3, "alpha", "sell", 1, 12, "AAPL"),
        ]
        result = compute_realized_pnl(fills)["alpha"]
        assert result.realized_pnl == pytest.approx(2)
        assert result.holdings["MSFT"].qty == 1
