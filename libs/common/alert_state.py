"""Price alert state machine for an armed trade hypothesis.

Lifecycle per hypothesis:

    WAITING_ENTRY --entry cross--> IN_TRADE --TP or SL--> CLOSED

Entry uses a crossing test against the previous tick's close, so a price that
already sits beyond the entry level when the alert is armed never fires.
Take-profit and stop-loss are plain threshold tests, TP checked first, and are
only evaluated once the trade is entered. CLOSED is terminal.

``advance`` is pure: it takes the current state and returns the next one with
the event that fired on this tick, if any.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from libs.common.market_types import Direction, TradeHypothesis, display_symbol
from libs.common.price_levels import format_price


class TriggerPhase(str, Enum):
    """Trigger phase enum."""
    WAITING_ENTRY = "WAITING_ENTRY"
    IN_TRADE = "IN_TRADE"
    CLOSED = "CLOSED"


class AlertEvent(str, Enum):
    """Level crossings reported to the notification sink."""
    ENTRY = "entry"
    TAKE_PROFIT = "tp"
    STOP_LOSS = "sl"


TERMINAL_EVENTS = frozenset({AlertEvent.TAKE_PROFIT, AlertEvent.STOP_LOSS})


@dataclass(frozen=True)
class TriggerState:
    """Trigger state of one armed hypothesis.

    Attributes:
        phase: Current phase
        fired_events: Events fired so far; only ever grows
        trade_end_time: Tick time of the TP/SL event, set once
    """
    phase: TriggerPhase = TriggerPhase.WAITING_ENTRY
    fired_events: FrozenSet[AlertEvent] = field(default_factory=frozenset)
    trade_end_time: Optional[int] = None

    @property
    def entered(self) -> bool:
        return self.phase != TriggerPhase.WAITING_ENTRY

    @property
    def closed(self) -> bool:
        return self.phase == TriggerPhase.CLOSED

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "entered": self.entered,
            "fired_events": sorted(event.value for event in self.fired_events),
            "trade_end_time": self.trade_end_time,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TriggerState:
        return cls(
            phase=TriggerPhase(data.get("phase", TriggerPhase.WAITING_ENTRY.value)),
            fired_events=frozenset(AlertEvent(e) for e in data.get("fired_events", [])),
            trade_end_time=data.get("trade_end_time"),
        )


def entry_crossed(
    direction: Optional[Direction],
    entry_price: Optional[float],
    prev_close: Optional[float],
    curr_close: float,
) -> bool:
    """True when price moved from one side of entry onto or past it."""
    if direction is None or entry_price is None or prev_close is None:
        return False
    if direction == Direction.LONG:
        return prev_close < entry_price <= curr_close
    return prev_close > entry_price >= curr_close


def take_profit_hit(
    direction: Optional[Direction],
    take_profit: Optional[float],
    curr_close: float,
) -> bool:
    if direction is None or take_profit is None:
        return False
    if direction == Direction.LONG:
        return curr_close >= take_profit
    return curr_close <= take_profit


def stop_loss_hit(
    direction: Optional[Direction],
    stop_loss: Optional[float],
    curr_close: float,
) -> bool:
    if direction is None or stop_loss is None:
        return False
    if direction == Direction.LONG:
        return curr_close <= stop_loss
    return curr_close >= stop_loss


def _fire(state: TriggerState, event: AlertEvent, tick_time: int) -> TriggerState:
    if event in TERMINAL_EVENTS:
        return replace(
            state,
            phase=TriggerPhase.CLOSED,
            fired_events=state.fired_events | {event},
            trade_end_time=tick_time,
        )
    return replace(
        state,
        phase=TriggerPhase.IN_TRADE,
        fired_events=state.fired_events | {event},
    )


def advance(
    state: TriggerState,
    prev_close: Optional[float],
    curr_close: float,
    hypothesis: TradeHypothesis,
    tick_time: int,
) -> Tuple[TriggerState, Optional[AlertEvent]]:
    """Evaluate one tick against the armed hypothesis.

    Args:
        state: Current trigger state
        prev_close: Close of the previous tick, None on the first tick after arming
        curr_close: Close of the incoming tick
        hypothesis: Armed hypothesis (levels may be None when unparsable)
        tick_time: Time of the incoming tick

    Returns:
        Tuple of (next state, fired event or None). At most one event fires
        per tick and each event fires at most once per hypothesis.
    """
    direction = hypothesis.direction

    if state.phase == TriggerPhase.WAITING_ENTRY:
        if AlertEvent.ENTRY not in state.fired_events and entry_crossed(
            direction, hypothesis.entry_price, prev_close, curr_close
        ):
            return _fire(state, AlertEvent.ENTRY, tick_time), AlertEvent.ENTRY
        return state, None

    if state.phase == TriggerPhase.IN_TRADE:
        if state.fired_events & TERMINAL_EVENTS:
            return state, None
        if take_profit_hit(direction, hypothesis.take_profit, curr_close):
            return _fire(state, AlertEvent.TAKE_PROFIT, tick_time), AlertEvent.TAKE_PROFIT
        if stop_loss_hit(direction, hypothesis.stop_loss, curr_close):
            return _fire(state, AlertEvent.STOP_LOSS, tick_time), AlertEvent.STOP_LOSS
        return state, None

    return state, None


def level_for_event(hypothesis: TradeHypothesis, event: AlertEvent) -> Optional[float]:
    if event == AlertEvent.ENTRY:
        return hypothesis.entry_price
    if event == AlertEvent.TAKE_PROFIT:
        return hypothesis.take_profit
    return hypothesis.stop_loss


def format_alert_message(symbol: str, event: AlertEvent, price: float) -> str:
    """Human-readable notification naming the pair, level kind and price."""
    pair = display_symbol(symbol)
    level = format_price(price)
    if event == AlertEvent.ENTRY:
        return f"{pair} has crossed the Entry Price at {level}."
    if event == AlertEvent.TAKE_PROFIT:
        return f"{pair} has reached the Take Profit level at {level}."
    return f"{pair} has hit the Stop Loss level at {level}."


__all__ = [
    "TriggerPhase",
    "AlertEvent",
    "TERMINAL_EVENTS",
    "TriggerState",
    "entry_crossed",
    "take_profit_hit",
    "stop_loss_hit",
    "advance",
    "level_for_event",
    "format_alert_message",
]
