"""In-memory candle sequence for the active symbol session.

Times are unique and ascending. When two candles share a time the most
recently received one wins, so a live tick for the still-open candle replaces
the value that came in with the historical batch.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from libs.common.market_types import Candle

logger = logging.getLogger(__name__)


def coerce_candle(raw: Any) -> Optional[Candle]:
    """Build a Candle from a Candle, a dict or a kline-style row.

    Returns None for rows that cannot be read as numbers.
    """
    try:
        if isinstance(raw, Candle):
            candle = raw
        elif isinstance(raw, dict):
            candle = Candle(
                time=int(raw["time"]),
                open=float(raw["open"]),
                high=float(raw["high"]),
                low=float(raw["low"]),
                close=float(raw["close"]),
            )
        else:
            time_, open_, high, low, close = list(raw)[:5]
            candle = Candle(int(time_), float(open_), float(high), float(low), float(close))
    except (KeyError, TypeError, ValueError):
        return None

    if candle.time <= 0:
        return None
    return candle


def _dedupe_sorted(candles: Iterable[Candle]) -> List[Candle]:
    by_time = {}
    for candle in candles:
        by_time[candle.time] = candle
    return [by_time[t] for t in sorted(by_time)]


class CandleStore:
    """Ordered, de-duplicated candles merged with live updates."""

    def __init__(self) -> None:
        self._candles: List[Candle] = []
        self.data_unavailable = False

    @property
    def candles(self) -> List[Candle]:
        return list(self._candles)

    @property
    def last_time(self) -> Optional[int]:
        return self._candles[-1].time if self._candles else None

    @property
    def last_close(self) -> Optional[float]:
        return self._candles[-1].close if self._candles else None

    def __len__(self) -> int:
        return len(self._candles)

    def window(self, size: int) -> List[Candle]:
        """Most recent ``size`` candles, oldest first."""
        if size <= 0:
            return []
        return self._candles[-size:]

    def reset(self) -> None:
        self._candles = []
        self.data_unavailable = False

    def merge(self, batch: Optional[Iterable[Any]]) -> List[Candle]:
        """Merge a historical batch with held candles.

        An empty or malformed batch empties the store and raises the
        ``data_unavailable`` flag instead of throwing.
        """
        rows = list(batch) if batch is not None else []
        parsed = [coerce_candle(row) for row in rows]

        if not rows or any(candle is None for candle in parsed):
            logger.warning(
                "Discarding candle batch (%d rows, %d malformed)",
                len(rows),
                sum(1 for c in parsed if c is None),
            )
            self._candles = []
            self.data_unavailable = True
            return []

        self._candles = _dedupe_sorted([*self._candles, *parsed])
        self.data_unavailable = False
        return self.candles

    def apply_tick(self, candle: Candle) -> List[Candle]:
        """Append or overwrite the candle at ``candle.time``."""
        if not self._candles or candle.time > self._candles[-1].time:
            self._candles.append(candle)
        elif candle.time == self._candles[-1].time:
            self._candles[-1] = candle
        else:
            self._candles = _dedupe_sorted([*self._candles, candle])
        self.data_unavailable = False
        return self.candles


__all__ = ["CandleStore", "coerce_candle"]
