"""
MarketDataGate - latest prices for the configured symbols.

Fetches run in batches of at most `concurrency` requests in flight.
A failed symbol yields 0 instead of aborting the tick.
"""
import asyncio
import logging
import math
from typing import Dict, List

logger = logging.getLogger("arena_trader.engine.market_data")


class MarketDataGate:
    def __init__(self, broker, concurrency: int = 8):
        self.broker = broker
        self.concurrency = max(1, concurrency)

    async def _fetch_one(self, symbol: str) -> float:
        try:
            price = float(await self.broker.get_latest_price(symbol))
        except Exception as e:
            logger.warning(f"Price unavailable for {symbol}: {e}")
            return 0.0
        if not math.isfinite(price) or price <= 0:
            logger.warning(f"Unusable price for {symbol}: {price}")
            return 0.0
        return price

    async def fetch_prices(self, symbols: List[str]) -> Dict[str, float]:
        prices: Dict[str, float] = {}
        for start in range(0, len(symbols), self.concurrency):
            batch = symbols[start:start + self.concurrency]
            results = await asyncio.gather(*(self._fetch_one(s) for s in batch))
            prices.update(zip(batch, results))
        return prices
