"""
MeanReversionAgent - fades deviations from a short moving average.
"""
from typing import List, Optional

from ..schemas import DecisionContext, OrderIntent
from .base import PriceHistoryMixin, TradingAgent

SMA_WINDOW = 10
DEVIATION_THRESHOLD = 0.003


def sma(values: List[float], n: int) -> Optional[float]:
    if len(values) < n:
        return None
    return sum(values[-n:]) / n


class MeanReversionAgent(PriceHistoryMixin, TradingAgent):
    """Buys 0.3% below SMA(10), sells 0.3% above it."""

    kind = "mean_reversion"
    history_size = 50

    def __init__(self, agent_id: str):
        super().__init__(agent_id)
        self._init_history()

    async def decide(self, context: DecisionContext) -> List[OrderIntent]:
        intents: List[OrderIntent] = []
        for market in context.markets:
            avg = sma(self.observe(market.symbol, market.price), SMA_WINDOW)
            if avg is None or avg <= 0:
                continue
            deviation = (market.price - avg) / avg
            if deviation < -DEVIATION_THRESHOLD:
                intents.append(OrderIntent(symbol=market.symbol, side="buy", notional_usd=context.ceilings.max_order_usd))
            elif deviation > DEVIATION_THRESHOLD:
                intents.append(OrderIntent(symbol=market.symbol, side="sell", notional_usd=context.ceilings.max_order_usd))
        return intents
