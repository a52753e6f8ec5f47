from libs.common.alert_state import (
    AlertEvent,
    TriggerPhase,
    TriggerState,
    advance,
    format_alert_message,
)
from libs.common.market_types import Direction, TradeHypothesis


def _hypothesis(entry, tp, sl, direction=Direction.LONG):
    return TradeHypothesis(
        symbol="BTCUSDT",
        interval="1h",
        entry_price=entry,
        take_profit=tp,
        stop_loss=sl,
        direction=direction,
        anchor_time=1000,
    )


def _run(hypothesis, closes, start=2000, step=60):
    state = TriggerState()
    prev = None
    events = []
    for i, close in enumerate(closes):
        state, event = advance(state, prev, close, hypothesis, start + i * step)
        events.append(event)
        prev = close
    return state, events


def test_long_entry_then_take_profit():
    hypothesis = _hypothesis(100, 110, 95)
    state, events = _run(hypothesis, [98, 101, 103, 111])

    assert events == [None, AlertEvent.ENTRY, None, AlertEvent.TAKE_PROFIT]
    assert state.phase == TriggerPhase.CLOSED
    assert state.fired_events == {AlertEvent.ENTRY, AlertEvent.TAKE_PROFIT}
    assert state.trade_end_time == 2000 + 3 * 60


def test_short_entry_then_take_profit():
    hypothesis = _hypothesis(50, 40, 55, Direction.SHORT)
    state, events = _run(hypothesis, [52, 49, 41, 40])

    assert events == [None, AlertEvent.ENTRY, None, AlertEvent.TAKE_PROFIT]
    assert state.closed


def test_first_tick_after_arming_never_enters():
    hypothesis = _hypothesis(100, 110, 95)
    state, event = advance(TriggerState(), None, 100, hypothesis, 2000)

    assert event is None
    assert state.phase == TriggerPhase.WAITING_ENTRY


def test_price_already_beyond_entry_does_not_fire():
    hypothesis = _hypothesis(100, 110, 95)
    state, events = _run(hypothesis, [105, 105, 105])

    assert events == [None, None, None]
    assert not state.entered


def test_touching_entry_from_below_counts_as_cross():
    hypothesis = _hypothesis(100, 110, 95)
    _, events = _run(hypothesis, [95, 100])

    assert events == [None, AlertEvent.ENTRY]


def test_entry_and_exit_need_separate_ticks():
    hypothesis = _hypothesis(100, 110, 95)
    state, events = _run(hypothesis, [98, 115, 115])

    assert events == [None, AlertEvent.ENTRY, AlertEvent.TAKE_PROFIT]
    assert state.trade_end_time == 2000 + 2 * 60


def test_stop_loss_closes_long_trade():
    hypothesis = _hypothesis(100, 110, 95)
    state, events = _run(hypothesis, [98, 101, 94])

    assert events[-1] == AlertEvent.STOP_LOSS
    assert state.fired_events == {AlertEvent.ENTRY, AlertEvent.STOP_LOSS}


def test_take_profit_and_stop_loss_are_mutually_exclusive():
    hypothesis = _hypothesis(100, 110, 95)
    state, events = _run(hypothesis, [98, 101, 111, 90, 120])

    assert events[2:] == [AlertEvent.TAKE_PROFIT, None, None]
    assert AlertEvent.STOP_LOSS not in state.fired_events
    assert state.trade_end_time == 2000 + 2 * 60


def test_unparsable_stop_loss_disables_only_that_branch():
    hypothesis = _hypothesis(100, 110, None)
    state, events = _run(hypothesis, [98, 101, 50, 111])

    assert events == [None, AlertEvent.ENTRY, None, AlertEvent.TAKE_PROFIT]
    assert state.closed


def test_unresolved_direction_never_enters():
    hypothesis = _hypothesis(100, 110, 95, direction=None)
    state, events = _run(hypothesis, [98, 101, 111])

    assert events == [None, None, None]
    assert state.phase == TriggerPhase.WAITING_ENTRY


def test_state_round_trips_through_dict():
    state = TriggerState(TriggerPhase.CLOSED, frozenset({AlertEvent.ENTRY, AlertEvent.STOP_LOSS}), 1234)
    data = state.to_dict()

    assert data["fired_events"] == ["entry", "sl"]
    assert TriggerState.from_dict(data) == state


def test_format_alert_message():
    assert format_alert_message("BTCUSDT", AlertEvent.ENTRY, 100.0) == (
        "BTC/USDT has crossed the Entry Price at 100."
    )
    assert format_alert_message("ETHUSDT", AlertEvent.TAKE_PROFIT, 2500.5) == (
        "ETH/USDT has reached the Take Profit level at 2500.5."
    )
    assert format_alert_message("ETHUSDT", AlertEvent.STOP_LOSS, 2400) == (
        "ETH/USDT has hit the Stop Loss level at 2400."
    )
