"""
Shared fakes and fixtures for arena tests. Nothing here touches the network.
"""
from typing import Dict, List, Optional

import pytest

from arena_trader.agents.base import TradingAgent
from arena_trader.config import AgentSpec, ArenaConfig
from arena_trader.schemas import DecisionContext, FillActivity, OrderIntent
from arena_trader.store import ArenaStore

START = 1_700_000_000.0


class FakeClock:
    """Callable clock in epoch seconds that tests advance by hand."""

    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StatusError(Exception):
    """Provider-style error carrying an HTTP status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class FakeBroker:
    def __init__(self, prices: Optional[Dict[str, float]] = None):
        self.prices = dict(prices or {})
        self.positions: List[dict] = []
        self.positions_error: Optional[Exception] = None
        self.is_open = True
        self.clock_error: Optional[Exception] = None
        self.fills: List[FillActivity] = []
        self.fills_error: Optional[Exception] = None
        self.order_error: Optional[Exception] = None
        self.placed: List[dict] = []
        self.fill_requests: List[str] = []
        self.price_requests: List[str] = []

    async def get_latest_price(self, symbol: str) -> float:
        self.price_requests.append(symbol)
        price = self.prices.get(symbol)
        if price is None:
            raise RuntimeError(f"no price for {symbol}")
        return price

    async def get_positions(self) -> List[dict]:
        if self.positions_error:
            raise self.positions_error
        return self.positions

    async def get_clock(self) -> dict:
        if self.clock_error:
            raise self.clock_error
        return {"is_open": self.is_open}

    async def place_limit_order(self, symbol, side, limit_price, qty, client_order_id) -> dict:
        if self.order_error:
            raise self.order_error
        order = {
            "symbol": symbol,
            "side": side,
            "limit_price": limit_price,
            "qty": qty,
            "client_order_id": client_order_id,
        }
        self.placed.append(order)
        return {"order_id": f"broker-{len(self.placed)}", "status": "accepted"}

    async def list_fills_since(self, after_iso: str) -> List[FillActivity]:
        self.fill_requests.append(after_iso)
        if self.fills_error:
            raise self.fills_error
        return list(self.fills)

    async def aclose(self) -> None:
        pass


class ScriptedAgent(TradingAgent):
    """Returns the same intents every call, or raises the configured error."""

    kind = "scripted"

    def __init__(self, agent_id: str, intents: Optional[List[OrderIntent]] = None, error: Optional[Exception] = None):
        super().__init__(agent_id)
        self.intents = intents or []
        self.error = error
        self.calls = 0
        self.contexts: List[DecisionContext] = []

    async def decide(self, context: DecisionContext) -> List[OrderIntent]:
        self.calls += 1
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        return list(self.intents)


def make_config(**overrides) -> ArenaConfig:
    values = dict(
        symbols=["AAPL", "MSFT"],
        agents=[AgentSpec(agent_id="alpha"), AgentSpec(agent_id="beta")],
        max_position_usd=1000.0,
        max_order_usd=250.0,
        starting_cash_per_agent=10000.0,
        min_call_interval_seconds=300.0,
        decision_interval_seconds=60.0,
    )
    values.update(overrides)
    return ArenaConfig(**values)


def intent(symbol: str = "AAPL", side: str = "buy", notional: float = 100.0) -> OrderIntent:
    return OrderIntent(symbol=symbol, side=side, notional_usd=notional)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def broker():
    return FakeBroker(prices={"AAPL": 100.0, "MSFT": 50.0})


@pytest.fixture
def store(tmp_path):
    s = ArenaStore(str(tmp_path / "arena.sqlite"))
    s.initialize()
    yield s
    s.close()


@pytest.fixture
def config():
    return make_config()
