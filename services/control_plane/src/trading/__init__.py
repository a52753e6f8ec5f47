"""Trading Module - background sweep over persisted price alerts.

This module contains:
- PriceMonitor: checks active alerts against current prices every N seconds
"""

from services.control_plane.src.trading.price_monitor import PriceMonitor

__all__ = [
    "PriceMonitor",
]
