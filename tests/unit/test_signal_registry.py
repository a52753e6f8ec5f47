from libs.common.analysis_result import AnalysisResult
from libs.common.market_types import Direction
from libs.common.signal_registry import SignalRegistry, build_hypothesis


def _result(**overrides):
    payload = {
        "description": "Breakout above resistance",
        "entryPrice": "$100",
        "takeProfit": "110",
        "stopLoss": "95",
        "sentiment": "Bullish",
        "drawings": [
            {"type": "trendline", "label": "Support", "points": [{"time": 10, "price": 90}, {"time": 20, "price": 95}]},
        ],
    }
    payload.update(overrides)
    return AnalysisResult.model_validate(payload)


def test_build_hypothesis_parses_levels_and_direction():
    hypothesis = build_hypothesis(_result(), "btcusdt", "1h", anchor_time=5000)

    assert hypothesis.symbol == "BTCUSDT"
    assert (hypothesis.entry_price, hypothesis.take_profit, hypothesis.stop_loss) == (100.0, 110.0, 95.0)
    assert hypothesis.direction == Direction.LONG
    assert hypothesis.anchor_time == 5000
    assert hypothesis.drawings[0].label == "Support"
    assert [p.time for p in hypothesis.drawings[0].points] == [10, 20]


def test_build_hypothesis_keeps_unparsable_levels_as_none():
    hypothesis = build_hypothesis(_result(stopLoss="N/A", sentiment="Neutral"), "ETHUSDT", "1d", 1)

    assert hypothesis.stop_loss is None
    assert hypothesis.direction is None
    assert hypothesis.take_profit == 110.0


def test_analysis_result_drops_non_object_drawings():
    result = _result(drawings=["oops", {"points": []}])

    assert len(result.drawings) == 1
    assert result.drawings[0].type == "trendline"


def test_registry_replaces_previous_hypothesis():
    registry = SignalRegistry()
    first = build_hypothesis(_result(), "BTCUSDT", "1h", 1)
    second = build_hypothesis(_result(entryPrice="105"), "BTCUSDT", "1h", 2)

    assert registry.arm(first) is None
    assert registry.arm(second) is first
    assert registry.get("btcusdt") is second
    assert len(registry) == 1


def test_registry_clear():
    registry = SignalRegistry()
    registry.arm(build_hypothesis(_result(), "BTCUSDT", "1h", 1))
    registry.arm(build_hypothesis(_result(), "ETHUSDT", "1h", 1))

    assert registry.clear("BTCUSDT") is True
    assert registry.clear("BTCUSDT") is False
    registry.clear_all()
    assert len(registry) == 0
