"""
Ledger reconstruction from the fill log.

Everything here is a pure function of (fills, prices): replaying the same
fills twice gives the same numbers. Fills attributed to "unknown" never touch
an agent's books.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..schemas import UNKNOWN_AGENT, FillRecord


@dataclass
class AgentBook:
    cash: float
    quantities: Dict[str, float] = field(default_factory=dict)

    def equity(self, prices: Dict[str, float]) -> float:
        return self.cash + sum(qty * prices.get(symbol, 0.0) for symbol, qty in self.quantities.items())


@dataclass
class CostBasis:
    qty: float = 0.0
    cost: float = 0.0

    @property
    def avg_cost(self) -> float:
        return self.cost / self.qty if self.qty > 0 else 0.0


@dataclass
class RealizedPnl:
    agent_id: str
    realized_pnl: float = 0.0
    holdings: Dict[str, CostBasis] = field(default_factory=dict)


def _ordered(fills: Iterable[FillRecord]) -> List[FillRecord]:
    # sorted() is stable, so equal timestamps keep their insertion order.
    return sorted(fills, key=lambda f: f.ts)


def replay_books(
    fills: Iterable[FillRecord],
    agent_ids: Iterable[str],
    starting_cash: float,
) -> Dict[str, AgentBook]:
    """Cash and per-symbol quantity for each agent after replaying all fills."""
    books = {agent_id: AgentBook(cash=starting_cash) for agent_id in agent_ids}
    for fill in _ordered(fills):
        if fill.agent_id == UNKNOWN_AGENT:
            continue
        book = books.get(fill.agent_id)
        if book is None:
            continue
        signed = fill.qty if fill.side == "buy" else -fill.qty
        book.cash -= signed * fill.price
        book.quantities[fill.symbol] = book.quantities.get(fill.symbol, 0.0) + signed
    return books


def compute_equity(
    fills: Iterable[FillRecord],
    agent_ids: Iterable[str],
    starting_cash: float,
    prices: Dict[str, float],
) -> Dict[str, float]:
    """Mark-to-market equity per agent. Symbols without a fresh price mark at 0."""
    books = replay_books(fills, agent_ids, starting_cash)
    return {agent_id: book.equity(prices) for agent_id, book in books.items()}


def compute_realized_pnl(
    fills: Iterable[FillRecord],
    agent_ids: Optional[Iterable[str]] = None,
) -> Dict[str, RealizedPnl]:
    """
    Realized PnL per agent using average cost per symbol.

    A sell closes at most the current long quantity; any excess (a short)
    is not attributed. When agent_ids is given those agents are always
    present in the result, even with no fills.
    """
    results: Dict[str, RealizedPnl] = {}
    if agent_ids is not None:
        for agent_id in agent_ids:
            results[agent_id] = RealizedPnl(agent_id=agent_id)

    for fill in _ordered(fills):
        if fill.agent_id == UNKNOWN_AGENT:
            continue
        if agent_ids is not None and fill.agent_id not in results:
            continue
        pnl = results.setdefault(fill.agent_id, RealizedPnl(agent_id=fill.agent_id))
        basis = pnl.holdings.setdefault(fill.symbol, CostBasis())

        if fill.side == "buy":
            basis.qty += fill.qty
            basis.cost += fill.qty * fill.price
            continue

        closed = min(basis.qty, fill.qty)
        if closed <= 0:
            continue
        avg = basis.avg_cost
        pnl.realized_pnl += closed * (fill.price - avg)
        basis.qty -= closed
        basis.cost = basis.qty * avg
    return results
