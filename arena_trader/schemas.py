"""
Pydantic schemas shared by the orchestrator, agents, store and read API.
"""
import json
import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger("arena_trader.schemas")

UNKNOWN_AGENT = "unknown"

Side = Literal["buy", "sell"]


class MarketSnapshot(BaseModel):
    """Latest price for one symbol, observed this tick."""
    symbol: str
    price: float = Field(gt=0)
    observed_at: int = Field(..., description="Epoch milliseconds")

    @field_validator("symbol")
    @classmethod
    def uppercase_symbol(cls, v: str) -> str:
        return v.upper().strip()

    @field_validator("price")
    @classmethod
    def finite_price(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("price must be finite")
        return v


class PositionSnapshot(BaseModel):
    """Signed quantity held at the brokerage (negative = short)."""
    symbol: str
    qty: float
    avg_price: Optional[float] = None


class OrderIntent(BaseModel):
    """A proposed order, not yet risk-checked."""
    symbol: str = Field(..., min_length=1, max_length=16)
    side: Side
    notional_usd: float = Field(gt=0, allow_inf_nan=False)

    @field_validator("symbol")
    @classmethod
    def uppercase_symbol(cls, v: str) -> str:
        return v.upper().strip()


class RiskCeilings(BaseModel):
    max_order_usd: float
    max_position_usd: float


class DecisionContext(BaseModel):
    """Everything an agent sees when asked for a decision."""
    markets: List[MarketSnapshot] = []
    positions: List[PositionSnapshot] = []
    ceilings: RiskCeilings

    def prices(self) -> Dict[str, float]:
        return {m.symbol: m.price for m in self.markets}

    def position_qty(self) -> Dict[str, float]:
        return {p.symbol: p.qty for p in self.positions}


class RiskCheckResult(BaseModel):
    allowed: bool
    notes: str
    projected_exposure_usd: Optional[float] = None


class OrderRecord(BaseModel):
    ts: int
    agent_id: str
    symbol: str
    side: Side
    notional_usd: float
    status: str
    order_id: Optional[str] = None


class ClientOrderMapping(BaseModel):
    client_order_id: str
    agent_id: str
    symbol: str


class FillActivity(BaseModel):
    """A fill as reported by the brokerage activity feed."""
    transaction_time: Optional[str] = None
    symbol: str
    side: Side
    qty: float
    price: float
    activity_id: Optional[str] = None
    order_id: Optional[str] = None
    client_order_id: Optional[str] = None


class FillRecord(BaseModel):
    ts: int
    agent_id: str
    symbol: str
    side: Side
    qty: float
    price: float
    activity_id: Optional[str] = None


class EquitySnapshot(BaseModel):
    ts: int
    agent_id: str
    equity_usd: float


class AgentTickOutcome(BaseModel):
    """What happened to one agent during a tick."""
    agent_id: str
    status: Literal["ran", "blocked", "failed"] = "ran"
    blocked_reason: Optional[str] = None
    error: Optional[str] = None
    backoff_minutes: int = 0
    intents: List[OrderIntent] = []
    rejected: List[str] = []
    orders: List[OrderRecord] = []


class TickResult(BaseModel):
    """Audit record for one tick."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    market_open: bool = True
    prices: Dict[str, float] = {}
    positions: Dict[str, float] = {}
    agents: List[AgentTickOutcome] = []
    equity: Dict[str, float] = {}
    fills_reconciled: int = 0
    errors: List[str] = []
    skipped: bool = False

    @property
    def duration_ms(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds() * 1000


def parse_intents(raw: Any) -> List[OrderIntent]:
    """
    Validate provider output into order intents.

    Accepts a JSON string, a list of intent dicts, or {"intents": [...]}.
    Malformed entries are dropped; a malformed payload yields [].
    Both "notional_usd" and "notionalUsd" keys are accepted.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Provider returned non-JSON content; treating as no intents")
            return []

    if isinstance(raw, dict):
        raw = raw.get("intents")
    if not isinstance(raw, list):
        return []

    intents: List[OrderIntent] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        data = dict(item)
        if "notional_usd" not in data and "notionalUsd" in data:
            data["notional_usd"] = data.pop("notionalUsd")
        notional = data.get("notional_usd")
        # Reject strings and bools so "100" or True never become an order size.
        if isinstance(notional, bool) or not isinstance(notional, (int, float)):
            continue
        if not isinstance(data.get("symbol"), str):
            continue
        try:
            intents.append(OrderIntent(**data))
        except ValidationError:
            continue
    return intents
