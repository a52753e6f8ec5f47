"""Parsing helpers for price levels and sentiment labels returned by analysis."""

from __future__ import annotations

import math
import re
from typing import Any, Optional

from libs.common.market_types import Direction

_LEADING_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


def parse_price(value: Any) -> Optional[float]:
    """Parse a price level such as ``"$27,345.10"`` or ``27345.1``.

    Returns None for anything that is not a finite positive number
    (``"N/A"``, empty strings, None). Callers treat None as "level disabled".
    Only a leading number is read: ``"100 USDT"`` gives 100, while
    ``"approx 95-100"`` is rejected rather than guessed.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "").replace("$", "")
        match = _LEADING_NUMBER_RE.match(text)
        if not match:
            return None
        number = float(match.group(0))

    if math.isnan(number) or math.isinf(number) or number <= 0:
        return None
    return number


def direction_from_sentiment(sentiment: Optional[str]) -> Optional[Direction]:
    """Infer trade direction from a free-text sentiment label.

    "Strong Bullish" -> LONG, "Bearish" -> SHORT. Neutral or mixed labels
    ("Ranging/Neutral", text mentioning both) stay unresolved.
    """
    if not sentiment:
        return None
    text = sentiment.lower()
    bullish = "bullish" in text
    bearish = "bearish" in text
    if bullish and not bearish:
        return Direction.LONG
    if bearish and not bullish:
        return Direction.SHORT
    return None


def format_price(price: float) -> str:
    """Render a level without float noise: 100.0 -> "100", 0.000123 stays."""
    if float(price).is_integer():
        return str(int(price))
    return f"{price:.8f}".rstrip("0").rstrip(".")


__all__ = ["parse_price", "direction_from_sentiment", "format_price"]
