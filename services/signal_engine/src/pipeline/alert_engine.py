"""Live alert trigger engine for the active symbol session.

Wraps the pure ``advance`` transition with the bookkeeping a tick stream
needs: the armed hypothesis, the previous tick's close and delivery of fired
events to the notification sink.
"""

from __future__ import annotations

import logging
from typing import Optional

from libs.common.alert_state import (
    AlertEvent,
    TriggerState,
    advance,
    format_alert_message,
    level_for_event,
)
from libs.common.market_types import Candle, TradeHypothesis
from services.signal_engine.src.pipeline.notification_sink import NotificationSink

logger = logging.getLogger(__name__)


class AlertTriggerEngine:
    def __init__(self, sink: Optional[NotificationSink] = None):
        self.sink = sink
        self.hypothesis: Optional[TradeHypothesis] = None
        self.state = TriggerState()
        self._prev_close: Optional[float] = None

    @property
    def armed(self) -> bool:
        return self.hypothesis is not None

    @property
    def prev_close(self) -> Optional[float]:
        return self._prev_close

    def arm(self, hypothesis: TradeHypothesis) -> None:
        """Start watching a new hypothesis from a clean state.

        The previous close is forgotten, so the first tick after arming can
        never count as an entry cross.
        """
        self.hypothesis = hypothesis
        self.state = TriggerState()
        self._prev_close = None
        logger.info(
            "Armed %s %s entry=%s tp=%s sl=%s",
            hypothesis.symbol,
            hypothesis.direction.value if hypothesis.direction else "unresolved",
            hypothesis.entry_price,
            hypothesis.take_profit,
            hypothesis.stop_loss,
        )

    def disarm(self) -> None:
        self.hypothesis = None
        self.state = TriggerState()
        self._prev_close = None

    def on_tick(self, candle: Candle) -> Optional[AlertEvent]:
        """Evaluate one tick. Returns the event fired on this tick, if any."""
        hypothesis = self.hypothesis
        if hypothesis is None:
            return None

        prev_close = self._prev_close
        self._prev_close = candle.close
        if self.state.closed:
            return None

        self.state, event = advance(self.state, prev_close, candle.close, hypothesis, candle.time)
        if event is not None:
            self._emit(hypothesis, event)
        return event

    def _emit(self, hypothesis: TradeHypothesis, event: AlertEvent) -> None:
        price = level_for_event(hypothesis, event)
        message = format_alert_message(hypothesis.symbol, event, price)
        logger.info("Alert fired for %s: %s", hypothesis.symbol, message)
        if self.sink is None:
            return
        try:
            self.sink.notify(message)
        except Exception:
            logger.exception("Notification sink failed for %s", hypothesis.symbol)


__all__ = ["AlertTriggerEngine"]
