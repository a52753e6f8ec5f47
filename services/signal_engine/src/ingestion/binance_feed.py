"""Binance live candle feed delivering one tick at a time per subscription."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import ccxt.async_support as ccxt_async

from libs.common.market_types import Candle

logger = logging.getLogger(__name__)

_QUOTE_RE = re.compile(r"^([A-Z0-9]{2,}?)(USDT|USDC|FDUSD|BUSD|BTC|ETH|BNB)$")

TickHandler = Callable[[Candle], None]
FaultHandler = Callable[[Exception], None]


def to_ccxt_symbol(symbol: str) -> str:
    """BTCUSDT -> BTC/USDT, the unified form ccxt expects."""
    symbol = symbol.upper().replace("-", "").strip()
    if "/" in symbol:
        return symbol
    match = _QUOTE_RE.match(symbol)
    if not match:
        return symbol
    return f"{match.group(1)}/{match.group(2)}"


@dataclass
class FeedSubscription:
    """Handle returned by ``BinanceFeed.subscribe``."""
    symbol: str
    interval: str
    on_tick: TickHandler
    on_fault: Optional[FaultHandler] = None
    task: Optional[asyncio.Task] = None
    last_delivered: Optional[Candle] = None
    faulted: bool = False
    closed: bool = False
    error: Optional[str] = None
    ticks_delivered: int = field(default=0)


class BinanceFeed:
    """Polls the most recent kline and pushes changes to subscribers.

    Identical consecutive candles are delivered once. A failing poll marks the
    subscription faulted and ends it; the caller resubscribes to recover.
    """

    def __init__(
        self,
        client: Any = None,
        poll_interval: float = 5.0,
        api_key: str | None = None,
        api_secret: str | None = None,
    ):
        self.client = client or ccxt_async.binance({
            "apiKey": api_key or "",
            "secret": api_secret or "",
            "enableRateLimit": True,
            "options": {"defaultType": "spot"},
        })
        self.poll_interval = poll_interval
        self._subscriptions: List[FeedSubscription] = []

    async def fetch_latest(self, symbol: str, interval: str, limit: int = 2) -> List[Candle]:
        rows = await self.client.fetch_ohlcv(to_ccxt_symbol(symbol), timeframe=interval, limit=limit)
        return [self._decorate(row) for row in rows]

    def subscribe(
        self,
        symbol: str,
        interval: str,
        on_tick: TickHandler,
        on_fault: Optional[FaultHandler] = None,
    ) -> FeedSubscription:
        """Start streaming ticks for ``symbol``/``interval``.

        Must be called from a running event loop.
        """
        subscription = FeedSubscription(
            symbol=symbol.upper(),
            interval=interval,
            on_tick=on_tick,
            on_fault=on_fault,
        )
        subscription.task = asyncio.get_running_loop().create_task(self._run(subscription))
        self._subscriptions.append(subscription)
        logger.info("Subscribed to %s %s", subscription.symbol, interval)
        return subscription

    def unsubscribe(self, subscription: FeedSubscription) -> None:
        subscription.closed = True
        if subscription.task is not None and not subscription.task.done():
            subscription.task.cancel()
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        logger.info("Unsubscribed from %s %s", subscription.symbol, subscription.interval)

    async def _run(self, subscription: FeedSubscription) -> None:
        while not subscription.closed:
            try:
                candles = await self.fetch_latest(subscription.symbol, subscription.interval)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                subscription.faulted = True
                subscription.error = str(exc)
                logger.error(
                    "Feed fault for %s %s: %s",
                    subscription.symbol,
                    subscription.interval,
                    exc,
                )
                if subscription.on_fault is not None:
                    subscription.on_fault(exc)
                return

            if candles and not subscription.closed:
                self._deliver(subscription, candles[-1])
            await asyncio.sleep(self.poll_interval)

    def _deliver(self, subscription: FeedSubscription, candle: Candle) -> None:
        if candle == subscription.last_delivered:
            return
        subscription.last_delivered = candle
        subscription.ticks_delivered += 1
        try:
            subscription.on_tick(candle)
        except Exception:
            logger.exception("Tick handler failed for %s", subscription.symbol)

    def _decorate(self, row: List[Any]) -> Candle:
        open_time, open_, high, low, close = row[:5]
        return Candle(
            time=int(open_time) // 1000,
            open=float(open_),
            high=float(high),
            low=float(low),
            close=float(close),
        )

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            self.unsubscribe(subscription)
        await self.client.close()


__all__ = ["BinanceFeed", "FeedSubscription", "to_ccxt_symbol"]
