"""
Alpaca REST client against an in-process httpx transport.
"""
import json

import httpx
import pytest

from arena_trader.broker import AlpacaBroker, BrokerError, PriceUnavailable

from conftest import make_config


def broker_with(handler):
    cfg = make_config(alpaca_key_id="key", alpaca_secret_key="secret")
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AlpacaBroker(cfg, client=client)


class TestAlpacaBroker:
    @pytest.mark.asyncio
    async def test_latest_price(self):
        def handler(request):
            assert request.url.host == "data.alpaca.markets"
            assert request.url.path == "/v2/stocks/AAPL/trades/latest"
            assert request.headers["APCA-API-KEY-ID"] == "key"
            return httpx.Response(200, json={"symbol": "AAPL", "trade": {"p": 187.25}})

        assert await broker_with(handler).get_latest_price("AAPL") == 187.25

    @pytest.mark.asyncio
    async def test_price_http_error_is_price_unavailable(self):
        broker = broker_with(lambda request: httpx.Response(404, json={"message": "not found"}))
        with pytest.raises(PriceUnavailable) as exc:
            await broker.get_latest_price("ZZZZ")
        assert exc.value.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_trade_is_price_unavailable(self):
        broker = broker_with(lambda request: httpx.Response(200, json={"trade": None}))
        with pytest.raises(PriceUnavailable):
            await broker.get_latest_price("AAPL")

    @pytest.mark.asyncio
    async def test_limit_order_body(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "ord-1", "status": "accepted"})

        result = await broker_with(handler).place_limit_order("aapl", "BUY", 187.25, 2, "alpha-1-abcdef")
        assert result == {"order_id": "ord-1", "status": "accepted"}
        assert seen["path"] == "/v2/orders"
        assert seen["body"] == {
            "symbol": "AAPL",
            "side": "buy",
            "type": "limit",
            "time_in_force": "gtc",
            "limit_price": "187.25",
            "qty": "2.000",
            "client_order_id": "alpha-1-abcdef",
        }

    @pytest.mark.asyncio
    async def test_order_rejection_carries_status(self):
        broker = broker_with(lambda request: httpx.Response(403, json={"message": "insufficient buying power"}))
        with pytest.raises(BrokerError) as exc:
            await broker.place_limit_order("AAPL", "buy", 10, 1, "c")
        assert exc.value.status_code == 403

    @pytest.mark.asyncio
    async def test_fill_activities_parsed(self):
        def handler(request):
            assert request.url.params["activity_types"] == "FILL"
            assert request.url.params["after"] == "2024-01-01T00:00:00Z"
            return httpx.Response(200, json=[
                {"id": "a1", "activity_type": "FILL", "transaction_time": "2024-01-02T15:00:00.123Z",
                 "symbol": "AAPL", "side": "sell_short", "qty": "3", "price": "101.5", "order_id": "o1"},
                {"id": "a2", "activity_type": "DIV", "symbol": "AAPL"},
                "garbage",
            ])

        fills = await broker_with(handler).list_fills_since("2024-01-01T00:00:00Z")
        assert len(fills) == 1
        f = fills[0]
        assert (f.activity_id, f.side, f.qty, f.price, f.order_id) == ("a1", "sell", 3.0, 101.5, "o1")
        assert f.client_order_id is None

    @pytest.mark.asyncio
    async def test_clock_and_positions(self):
        def handler(request):
            if request.url.path == "/v2/clock":
                return httpx.Response(200, json={"is_open": False, "next_open": "2024-01-03T14:30:00Z"})
            return httpx.Response(200, json=[{"symbol": "AAPL", "qty": "1", "side": "long"}])

        broker = broker_with(handler)
        assert (await broker.get_clock())["is_open"] is False
        assert (await broker.get_positions())[0]["symbol"] == "AAPL"
        await broker.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(BrokerError) as exc:
            await broker_with(handler).get_clock()
        assert exc.value.status_code is None
