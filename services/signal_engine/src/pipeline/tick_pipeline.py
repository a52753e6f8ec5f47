"""Pipeline applying one tick: candle store, then trigger engine, then overlay."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from libs.common.alert_state import AlertEvent, TriggerState
from libs.common.candle_store import CandleStore
from libs.common.market_types import Candle
from services.signal_engine.src.pipeline.alert_engine import AlertTriggerEngine

logger = logging.getLogger(__name__)


class TickOverlay(Protocol):
    def on_tick(self, candle: Candle, state: TriggerState) -> None:
        ...


class TickPipeline:
    def __init__(
        self,
        store: CandleStore,
        engine: AlertTriggerEngine,
        overlay: Optional[TickOverlay] = None,
    ):
        self.store = store
        self.engine = engine
        self.overlay = overlay

    def on_tick(self, candle: Candle) -> Optional[AlertEvent]:
        self.store.apply_tick(candle)

        event = None
        try:
            event = self.engine.on_tick(candle)
        except Exception:
            logger.exception("Trigger evaluation failed at %s", candle.time)

        if self.overlay is not None and self.engine.armed:
            try:
                self.overlay.on_tick(candle, self.engine.state)
            except Exception:
                logger.exception("Overlay update failed at %s", candle.time)
        return event


__all__ = ["TickPipeline", "TickOverlay"]
