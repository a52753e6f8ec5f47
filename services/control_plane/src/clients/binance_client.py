"""HTTP client for Binance public kline and ticker endpoints."""

from __future__ import annotations

import json
import logging
from typing import Dict, Iterable, List, Optional

import httpx

from libs.common.candle_store import coerce_candle
from libs.common.errors import DataUnavailableError
from libs.common.market_types import INTERVAL_SECONDS, Candle

logger = logging.getLogger(__name__)

BINANCE_BASE_URL = "https://api.binance.com"
SUPPORTED_INTERVALS = frozenset(INTERVAL_SECONDS)


class BinanceClient:
    """Fetches candles and prices from Binance using public REST endpoints."""

    def __init__(
        self,
        base_url: str = BINANCE_BASE_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def get_candles(
        self,
        symbol: str,
        interval: str = "1d",
        limit: int = 150,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
    ) -> List[Candle]:
        """Fetch OHLC candles, oldest first.

        Args:
            symbol: e.g. "BTCUSDT"
            interval: Binance interval string (1m, 1h, 1d, etc.)
            limit: number of rows to return (max 1000 per Binance API)
            start_time: optional ms timestamp
            end_time: optional ms timestamp

        Raises:
            DataUnavailableError: transport failure, HTTP error, a Binance
                error payload (``{"code": ..., "msg": ...}``) or malformed rows.
        """
        symbol = self._normalize_symbol(symbol)
        if interval not in SUPPORTED_INTERVALS:
            raise DataUnavailableError(symbol, interval, f"Unsupported interval: {interval}")

        params = {
            "symbol": symbol,
            "interval": interval,
            "limit": min(max(limit, 1), 1000),
        }
        if start_time:
            params["startTime"] = start_time
        if end_time:
            params["endTime"] = end_time

        data = await self._get_json("/api/v3/klines", params, symbol, interval)

        if isinstance(data, dict) and "code" in data:
            raise DataUnavailableError(symbol, interval, f"Binance API Error: {data.get('msg')}")
        if not isinstance(data, list) or not data:
            raise DataUnavailableError(symbol, interval, "empty kline payload")

        candles = [self._decorate_row(row) for row in data]
        if any(candle is None for candle in candles):
            raise DataUnavailableError(symbol, interval, "malformed kline rows")
        return sorted(candles, key=lambda c: c.time)

    async def get_prices(self, symbols: Iterable[str]) -> Dict[str, float]:
        """Latest trade price for each symbol in a single request."""
        wanted = sorted({self._normalize_symbol(s) for s in symbols})
        if not wanted:
            return {}
        params = {"symbols": json.dumps(wanted, separators=(",", ":"))}
        data = await self._get_json("/api/v3/ticker/price", params, ",".join(wanted), "ticker")
        if isinstance(data, dict) and "code" in data:
            raise DataUnavailableError(",".join(wanted), "ticker", f"Binance API Error: {data.get('msg')}")

        prices: Dict[str, float] = {}
        for item in data or []:
            try:
                prices[item["symbol"]] = float(item["price"])
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed ticker row: %r", item)
        return prices

    async def _get_json(self, path: str, params: dict, symbol: str, interval: str):
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(f"{self.base_url}{path}", params=params)
                payload = resp.json() if resp.content else None
        except (httpx.HTTPError, ValueError) as exc:
            raise DataUnavailableError(symbol, interval, str(exc)) from exc

        if resp.status_code >= 400:
            message = payload.get("msg") if isinstance(payload, dict) else resp.text
            raise DataUnavailableError(symbol, interval, f"HTTP {resp.status_code}: {message}")
        return payload

    def _normalize_symbol(self, symbol: str) -> str:
        return symbol.replace("/", "").replace("-", "").upper().strip()

    def _decorate_row(self, row: List) -> Optional[Candle]:
        if not isinstance(row, (list, tuple)) or len(row) < 5:
            return None
        try:
            open_time = int(row[0]) // 1000
        except (TypeError, ValueError):
            return None
        return coerce_candle([open_time, *row[1:5]])


__all__ = ["BinanceClient", "SUPPORTED_INTERVALS"]
