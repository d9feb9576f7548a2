"""
Async Alpaca paper REST client: prices, positions, clock, orders and fill activity.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import ArenaConfig
from .schemas import FillActivity

logger = logging.getLogger("arena_trader.broker")


class BrokerError(Exception):
    """Non-2xx or transport failure talking to the brokerage."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PriceUnavailable(BrokerError):
    """No usable latest price for a symbol."""


class AlpacaBroker:
    """Alpaca paper trading client built on httpx.AsyncClient."""

    def __init__(self, cfg: ArenaConfig, client: Optional[httpx.AsyncClient] = None):
        self.cfg = cfg
        self.base_url = cfg.alpaca_paper_base_url
        self.data_url = cfg.alpaca_data_base_url
        self.headers = {
            "APCA-API-KEY-ID": cfg.alpaca_key_id,
            "APCA-API-SECRET-KEY": cfg.alpaca_secret_key,
            "Content-Type": "application/json",
        }
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.cfg.request_timeout_seconds)
        return self._client

    async def _request(self, method: str, endpoint: str, base: Optional[str] = None, **kwargs) -> Any:
        """Make an authenticated request and return decoded JSON, raising BrokerError on failure."""
        base = base if base is not None else self.base_url
        url = f"{base}{endpoint}"
        try:
            response = await self.client.request(method, url, headers=self.headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            body = e.response.text[:200]
            raise BrokerError(
                f"{method} {endpoint} failed with {e.response.status_code}: {body}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise BrokerError(f"{method} {endpoint} failed: {e}") from e
        if not response.content:
            return {}
        return response.json()

    async def get_account(self) -> Dict[str, Any]:
        return await self._request("GET", "/v2/account")

    async def get_latest_price(self, symbol: str) -> float:
        """Latest trade price for symbol. Raises PriceUnavailable."""
        try:
            data = await self._request("GET", f"/v2/stocks/{symbol}/trades/latest", base=self.data_url)
        except BrokerError as e:
            raise PriceUnavailable(f"{symbol}: {e}", status_code=e.status_code) from e
        trade = data.get("trade") if isinstance(data, dict) else None
        price = trade.get("p") if isinstance(trade, dict) else None
        try:
            value = float(price)
        except (TypeError, ValueError):
            raise PriceUnavailable(f"{symbol}: no trade price in response")
        if value <= 0:
            raise PriceUnavailable(f"{symbol}: non-positive price {value}")
        return value

    async def get_positions(self) -> List[Dict[str, Any]]:
        """Open positions as reported by the brokerage."""
        result = await self._request("GET", "/v2/positions")
        return result if isinstance(result, list) else []

    async def get_clock(self) -> Dict[str, Any]:
        result = await self._request("GET", "/v2/clock")
        return {
            "is_open": bool(result.get("is_open", False)),
            "next_open": result.get("next_open"),
            "next_close": result.get("next_close"),
        }

    async def place_limit_order(
        self,
        symbol: str,
        side: str,
        limit_price: float,
        qty: float,
        client_order_id: str,
    ) -> Dict[str, Any]:
        """Submit a GTC limit order. Returns {"order_id", "status"}."""
        order_data = {
            "symbol": symbol.upper(),
            "side": side.lower(),
            "type": "limit",
            "time_in_force": "gtc",
            "limit_price": f"{round(limit_price, 2):.2f}",
            "qty": f"{qty:.3f}",
            "client_order_id": client_order_id,
        }
        result = await self._request("POST", "/v2/orders", json=order_data)
        return {
            "order_id": result.get("id"),
            "status": result.get("status") or "submitted",
        }

    async def list_fills_since(self, after_iso: str) -> List[FillActivity]:
        """FILL activities with transaction time after after_iso."""
        params = {"activity_types": "FILL", "after": after_iso, "direction": "asc"}
        result = await self._request("GET", "/v2/account/activities", params=params)
        if not isinstance(result, list):
            return []

        fills: List[FillActivity] = []
        for raw in result:
            if not isinstance(raw, dict):
                continue
            if str(raw.get("activity_type", "FILL")).upper() != "FILL":
                continue
            side = str(raw.get("side", "buy")).lower()
            try:
                fills.append(
                    FillActivity(
                        transaction_time=raw.get("transaction_time") or raw.get("date"),
                        symbol=str(raw.get("symbol", "")).upper(),
                        side="sell" if side.startswith("sell") else "buy",
                        qty=float(raw.get("qty") or raw.get("quantity") or 0),
                        price=float(raw.get("price") or 0),
                        activity_id=raw.get("id") or raw.get("activity_id"),
                        order_id=raw.get("order_id"),
                        client_order_id=raw.get("client_order_id"),
                    )
                )
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed fill activity {raw.get('id')}: {e}")
        return fills

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
