"""
TradingAgent - the single capability every arena agent implements.
"""
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Dict, List

from ..schemas import DecisionContext, OrderIntent


class TradingAgent(ABC):
    kind: str = "agent"

    def __init__(self, agent_id: str):
        self.agent_id = agent_id

    @abstractmethod
    async def decide(self, context: DecisionContext) -> List[OrderIntent]:
        """Propose zero or more intents for this tick."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.agent_id!r})"


class PriceHistoryMixin:
    """Bounded per-symbol price history kept across ticks."""

    history_size: int = 20

    def _init_history(self) -> None:
        self._history: Dict[str, Deque[float]] = {}

    def observe(self, symbol: str, price: float) -> List[float]:
        prices = self._history.setdefault(symbol, deque(maxlen=self.history_size))
        prices.append(price)
        return list(prices)
