"""Data types shared by the candle store, alert engine and chart overlay."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Optional, Tuple


INTERVAL_SECONDS = {
    "1m": 60,
    "3m": 3 * 60,
    "5m": 5 * 60,
    "15m": 15 * 60,
    "30m": 30 * 60,
    "1h": 60 * 60,
    "2h": 2 * 60 * 60,
    "4h": 4 * 60 * 60,
    "6h": 6 * 60 * 60,
    "8h": 8 * 60 * 60,
    "12h": 12 * 60 * 60,
    "1d": 24 * 60 * 60,
    "3d": 3 * 24 * 60 * 60,
    "1w": 7 * 24 * 60 * 60,
}


class Candle(NamedTuple):
    """OHLC candle keyed by its open time in unix seconds."""
    time: int
    open: float
    high: float
    low: float
    close: float

    def to_dict(self) -> dict:
        return self._asdict()


class Direction(str, Enum):
    """Trade direction of an armed hypothesis."""
    LONG = "long"
    SHORT = "short"


class DrawingPoint(NamedTuple):
    time: int
    price: float


@dataclass
class TrendlineDrawing:
    """Chart annotation suggested by the analysis service."""
    points: List[DrawingPoint] = field(default_factory=list)
    type: str = "trendline"
    label: str = ""

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "label": self.label,
            "points": [p._asdict() for p in self.points],
        }


@dataclass(frozen=True)
class TradeHypothesis:
    """An armed trade signal.

    Price levels are None when the analysis service returned something that
    could not be parsed as a number; the corresponding checks and drawings are
    skipped. ``direction`` is None when the sentiment text was neither bullish
    nor bearish.
    """
    symbol: str
    interval: str
    entry_price: Optional[float]
    take_profit: Optional[float]
    stop_loss: Optional[float]
    direction: Optional[Direction]
    anchor_time: int
    sentiment: str = ""
    drawings: Tuple[TrendlineDrawing, ...] = ()

    @property
    def is_long(self) -> bool:
        return self.direction == Direction.LONG

    @property
    def is_short(self) -> bool:
        return self.direction == Direction.SHORT

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "interval": self.interval,
            "entry_price": self.entry_price,
            "take_profit": self.take_profit,
            "stop_loss": self.stop_loss,
            "direction": self.direction.value if self.direction else None,
            "anchor_time": self.anchor_time,
            "sentiment": self.sentiment,
            "drawings": [d.to_dict() for d in self.drawings],
        }


def interval_seconds(interval: str) -> int:
    """Return the candle duration for a Binance interval string."""
    try:
        return INTERVAL_SECONDS[interval]
    except KeyError:
        raise ValueError(f"Unsupported interval: {interval}") from None


def display_symbol(symbol: str) -> str:
    """BTCUSDT -> BTC/USDT, the way notifications name a pair."""
    symbol = symbol.upper()
    if "/" in symbol:
        return symbol
    return symbol.replace("USDT", "/USDT")


__all__ = [
    "INTERVAL_SECONDS",
    "Candle",
    "Direction",
    "DrawingPoint",
    "TrendlineDrawing",
    "TradeHypothesis",
    "interval_seconds",
    "display_symbol",
]
