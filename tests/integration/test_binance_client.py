import asyncio
import json

import httpx
import pytest

from libs.common.errors import DataUnavailableError
from libs.common.market_types import Candle
from services.control_plane.src.clients.binance_client import BinanceClient


def _kline(open_ms, close):
    return [open_ms, "1.0", "2.0", "0.5", str(close), "100", open_ms + 59_999, "0", 1, "0", "0", "0"]


def _client(handler):
    return BinanceClient(base_url="https://binance.test", transport=httpx.MockTransport(handler))


def test_get_candles_converts_and_sorts():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json=[_kline(120_000, 1.6), _kline(60_000, 1.5)])

    candles = asyncio.run(_client(handler).get_candles("btc/usdt", "1m", limit=2))

    assert candles == [Candle(60, 1.0, 2.0, 0.5, 1.5), Candle(120, 1.0, 2.0, 0.5, 1.6)]
    assert seen["symbol"] == "BTCUSDT"
    assert seen["limit"] == "2"


def test_binance_error_payload_raises_data_unavailable():
    def handler(request):
        return httpx.Response(400, json={"code": -1121, "msg": "Invalid symbol."})

    with pytest.raises(DataUnavailableError) as excinfo:
        asyncio.run(_client(handler).get_candles("NOPEUSDT", "1d"))

    assert "Invalid symbol." in str(excinfo.value)
    assert excinfo.value.symbol == "NOPEUSDT"


def test_empty_and_malformed_payloads_raise():
    def empty(request):
        return httpx.Response(200, json=[])

    def malformed(request):
        return httpx.Response(200, json=[_kline(60_000, 1.5), ["bad"]])

    with pytest.raises(DataUnavailableError):
        asyncio.run(_client(empty).get_candles("BTCUSDT", "1d"))
    with pytest.raises(DataUnavailableError):
        asyncio.run(_client(malformed).get_candles("BTCUSDT", "1d"))


def test_unsupported_interval_never_hits_network():
    def handler(request):
        raise AssertionError("unexpected request")

    with pytest.raises(DataUnavailableError):
        asyncio.run(_client(handler).get_candles("BTCUSDT", "7m"))


def test_transport_error_raises_data_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(DataUnavailableError):
        asyncio.run(_client(handler).get_candles("BTCUSDT", "1d"))


def test_get_prices_batches_symbols():
    seen = {}

    def handler(request):
        seen["symbols"] = json.loads(request.url.params["symbols"])
        return httpx.Response(200, json=[
            {"symbol": "BTCUSDT", "price": "65000.10"},
            {"symbol": "ETHUSDT", "price": "bad"},
        ])

    prices = asyncio.run(_client(handler).get_prices(["ethusdt", "BTC/USDT", "BTCUSDT"]))

    assert seen["symbols"] == ["BTCUSDT", "ETHUSDT"]
    assert prices == {"BTCUSDT": 65000.10}
