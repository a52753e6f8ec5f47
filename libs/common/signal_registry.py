"""Holds the armed trade hypothesis for each symbol of a session."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from libs.common.analysis_result import AnalysisResult
from libs.common.market_types import DrawingPoint, TradeHypothesis, TrendlineDrawing
from libs.common.price_levels import direction_from_sentiment, parse_price

logger = logging.getLogger(__name__)


def build_hypothesis(
    result: AnalysisResult,
    symbol: str,
    interval: str,
    anchor_time: int,
) -> TradeHypothesis:
    """Turn an analysis result into an armable hypothesis.

    Unparsable levels become None. Unresolved direction is kept as None and
    logged; entry crossing is never evaluated for such a hypothesis.
    """
    direction = direction_from_sentiment(result.sentiment)
    hypothesis = TradeHypothesis(
        symbol=symbol.upper(),
        interval=interval,
        entry_price=parse_price(result.entry_price),
        take_profit=parse_price(result.take_profit),
        stop_loss=parse_price(result.stop_loss),
        direction=direction,
        anchor_time=anchor_time,
        sentiment=result.sentiment or "",
        drawings=tuple(
            TrendlineDrawing(
                type=drawing.type,
                label=drawing.label,
                points=[DrawingPoint(p.time, p.price) for p in drawing.points],
            )
            for drawing in result.drawings
        ),
    )

    if direction is None:
        logger.warning(
            "Sentiment %r for %s has no clear direction; entry alerts disabled",
            result.sentiment,
            hypothesis.symbol,
        )
    for name in ("entry_price", "take_profit", "stop_loss"):
        if getattr(hypothesis, name) is None:
            logger.warning("Unparsable %s for %s: %r", name, hypothesis.symbol, getattr(result, name))
    return hypothesis


class SignalRegistry:
    """At most one armed hypothesis per symbol."""

    def __init__(self) -> None:
        self._armed: Dict[str, TradeHypothesis] = {}

    def arm(self, hypothesis: TradeHypothesis) -> Optional[TradeHypothesis]:
        """Arm a hypothesis, returning the one it replaced (if any)."""
        key = hypothesis.symbol.upper()
        previous = self._armed.get(key)
        self._armed[key] = hypothesis
        return previous

    def get(self, symbol: str) -> Optional[TradeHypothesis]:
        return self._armed.get(symbol.upper())

    def clear(self, symbol: str) -> bool:
        return self._armed.pop(symbol.upper(), None) is not None

    def clear_all(self) -> None:
        self._armed.clear()

    def __len__(self) -> int:
        return len(self._armed)


__all__ = ["SignalRegistry", "build_hypothesis"]
