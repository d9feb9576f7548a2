"""
MomentumAgent - follows the short-term price move.
"""
import random
from typing import List, Optional

from ..schemas import DecisionContext, OrderIntent
from .base import PriceHistoryMixin, TradingAgent

ADD_TO_POSITION_PROBABILITY = 0.2


def momentum_signal(prices: List[float]) -> float:
    """Last price minus the price two observations earlier; 0 until three are seen."""
    if len(prices) < 3:
        return 0.0
    return prices[-1] - prices[-3]


class MomentumAgent(PriceHistoryMixin, TradingAgent):
    """
    Buys upward momentum and sells downward momentum at max order size.

    Trades that reduce an open position always pass; trades that add to it
    pass only occasionally.
    """

    kind = "momentum"
    history_size = 20

    def __init__(self, agent_id: str, rng: Optional[random.Random] = None):
        super().__init__(agent_id)
        self._init_history()
        self.rng = rng or random.Random()

    async def decide(self, context: DecisionContext) -> List[OrderIntent]:
        intents: List[OrderIntent] = []
        for market in context.markets:
            signal = momentum_signal(self.observe(market.symbol, market.price))
            if signal > 0:
                intents.append(OrderIntent(symbol=market.symbol, side="buy", notional_usd=context.ceilings.max_order_usd))
            elif signal < 0:
                intents.append(OrderIntent(symbol=market.symbol, side="sell", notional_usd=context.ceilings.max_order_usd))

        positions = context.position_qty()
        return [i for i in intents if self._keep(i, positions.get(i.symbol))]

    def _keep(self, intent: OrderIntent, qty: Optional[float]) -> bool:
        if qty is None:
            return True
        if intent.side == "buy" and qty < 0:
            return True
        if intent.side == "sell" and qty > 0:
            return True
        return self.rng.random() < ADD_TO_POSITION_PROBABILITY
