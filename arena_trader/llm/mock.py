"""
Deterministic stand-in provider for demos and tests.
"""
import math
from typing import List

from ..schemas import OrderIntent
from .base import LLMClient, LLMRequest


class MockLLMClient(LLMClient):
    """Trades the first symbol; side alternates with the parity of the floored price."""

    name = "mock"

    async def decide(self, request: LLMRequest) -> List[OrderIntent]:
        if not request.symbols:
            return []
        symbol = request.symbols[0]
        price = request.prices.get(symbol, 0.0)
        if not math.isfinite(price) or price <= 0:
            return []
        side = "buy" if math.floor(price) % 2 == 0 else "sell"
        return [OrderIntent(symbol=symbol, side=side, notional_usd=min(50.0, request.max_order_usd))]
