"""Domain errors raised at component boundaries."""

from __future__ import annotations


class DataUnavailableError(RuntimeError):
    """Historical candles could not be fetched or were empty/malformed."""

    def __init__(self, symbol: str, interval: str, reason: str):
        super().__init__(f"No candle data for {symbol} {interval}: {reason}")
        self.symbol = symbol
        self.interval = interval
        self.reason = reason


class AnalysisServiceError(RuntimeError):
    """The remote analysis service failed or answered with an error payload."""


__all__ = ["DataUnavailableError", "AnalysisServiceError"]
