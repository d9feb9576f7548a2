"""
Read API over a temporary store.
"""
import random

import pytest
from fastapi.testclient import TestClient

from arena_trader.api import create_app
from arena_trader.engine.orchestrator import ArenaOrchestrator
from arena_trader.schemas import EquitySnapshot, FillRecord, OrderRecord

from conftest import FakeBroker, FakeClock, ScriptedAgent, intent


@pytest.fixture
def seeded(store):
    store.record_equity_snapshot(EquitySnapshot(ts=1000, agent_id="alpha", equity_usd=10000.0))
    store.record_equity_snapshot(EquitySnapshot(ts=1000, agent_id="beta", equity_usd=10000.0))
    store.record_equity_snapshot(EquitySnapshot(ts=2000, agent_id="alpha", equity_usd=10025.0))
    store.record_equity_snapshot(EquitySnapshot(ts=2000, agent_id="beta", equity_usd=9990.0))
    for i in range(3):
        store.record_order(OrderRecord(ts=1000 + i, agent_id="alpha", symbol="AAPL", side="buy",
                                       notional_usd=100.0, status="accepted", order_id=f"o{i}"))
    store.record_fill(FillRecord(ts=1, agent_id="alpha", symbol="AAPL", side="buy", qty=2, price=100.0, activity_id="f1"))
    store.record_fill(FillRecord(ts=2, agent_id="alpha", symbol="AAPL", side="sell", qty=1, price=108.0, activity_id="f2"))
    store.record_fill(FillRecord(ts=3, agent_id="unknown", symbol="AAPL", side="sell", qty=5, price=500.0, activity_id="f3"))
    return store


@pytest.fixture
def client(config, seeded):
    with TestClient(create_app(config, seeded)) as c:
        yield c


class TestReadEndpoints:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["agents"] == ["alpha", "beta"]
        assert "scheduler_running" not in body

    def test_leaderboard_ranks_latest_equity(self, client):
        rows = client.get("/leaderboard").json()
        assert [(r["rank"], r["agent_id"], r["equity_usd"]) for r in rows] == [
            (1, "alpha", 10025.0),
            (2, "beta", 9990.0),
        ]

    def test_pnl_excludes_unknown(self, client):
        rows = client.get("/pnl").json()
        assert [r["agent_id"] for r in rows] == ["alpha", "beta"]
        assert rows[0]["realized_pnl"] == 8.0
        assert rows[0]["open_positions"] == {"AAPL": 1.0}
        assert rows[1]["realized_pnl"] == 0.0

    def test_orders_newest_first_with_limit(self, client):
        rows = client.get("/orders", params={"limit": 2}).json()
        assert [r["order_id"] for r in rows] == ["o2", "o1"]
        assert client.get("/orders", params={"limit": 0}).status_code == 422

    def test_equity_history(self, client):
        rows = client.get("/equity/alpha").json()
        assert [r["equity_usd"] for r in rows] == [10000.0, 10025.0]

    def test_equity_unknown_agent(self, client):
        assert client.get("/equity/nobody").status_code == 404

    def test_tick_without_orchestrator(self, client):
        assert client.post("/tick").status_code == 503


class TestTickEndpoint:
    @pytest.fixture
    def orchestrated(self, config, store):
        broker = FakeBroker(prices={"AAPL": 100.0, "MSFT": 50.0})
        agents = [ScriptedAgent("alpha", [intent("AAPL", "buy", 100)]), ScriptedAgent("beta")]
        orch = ArenaOrchestrator(config, broker, store, agents, clock=FakeClock(), rng=random.Random(1))
        with TestClient(create_app(config, store, orch)) as c:
            yield c, orch, broker

    def test_manual_tick(self, orchestrated):
        client, orch, broker = orchestrated
        response = client.post("/tick")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert [(a["agent_id"], a["orders"]) for a in body["agents"]] == [("alpha", 1), ("beta", 0)]
        assert set(body["equity"]) == {"alpha", "beta"}
        assert len(broker.placed) == 1

        health = client.get("/health").json()
        assert health["tick_in_progress"] is False
        assert health["last_tick_at"] is not None

    def test_tick_in_progress_conflicts(self, orchestrated):
        client, orch, broker = orchestrated
        orch._tick_in_progress = True
        assert client.post("/tick").status_code == 409
        assert broker.placed == []
