from libs.common.alert_state import AlertEvent, TriggerPhase, TriggerState
from libs.common.config.schema import OverlaySettings
from libs.common.market_types import Candle, Direction, DrawingPoint, TradeHypothesis, TrendlineDrawing
from services.control_plane.src.overlay.chart_overlay import (
    ChartOverlayRenderer,
    JsonChartSurface,
    OverlayLayer,
    band_bounds,
    trendline_points,
)

HOUR = 3600


def _hypothesis(**overrides):
    data = dict(
        symbol="BTCUSDT",
        interval="1h",
        entry_price=100.0,
        take_profit=110.0,
        stop_loss=95.0,
        direction=Direction.LONG,
        anchor_time=10 * HOUR,
    )
    data.update(overrides)
    return TradeHypothesis(**data)


def _renderer():
    surface = JsonChartSurface()
    return ChartOverlayRenderer(surface, HOUR, OverlaySettings(lookahead_bars=10)), surface


def _series(surface, name):
    return next(s for s in surface.snapshot() if s["name"] == name)


def test_band_bounds_by_direction():
    assert band_bounds(_hypothesis()) == {"tp": (100.0, 110.0), "sl": (95.0, 100.0)}
    short = _hypothesis(entry_price=50.0, take_profit=40.0, stop_loss=55.0, direction=Direction.SHORT)
    assert band_bounds(short) == {"tp": (40.0, 50.0), "sl": (50.0, 55.0)}
    assert band_bounds(_hypothesis(stop_loss=None)) == {"tp": (100.0, 110.0)}


def test_arm_draws_all_layers_upper_band_first():
    renderer, surface = _renderer()
    renderer.arm(_hypothesis())

    names = [s["name"] for s in surface.snapshot()]
    assert names == [
        "entryLine", "tpLine", "slLine",
        "tpBandFill", "tpBandErase", "slBandFill", "slBandErase",
    ]
    assert _series(surface, "entryLine")["options"]["lineStyle"] == 2
    assert _series(surface, "tpLine")["options"]["lineStyle"] == 0


def test_short_hypothesis_draws_loss_band_first():
    renderer, surface = _renderer()
    renderer.arm(_hypothesis(entry_price=50.0, take_profit=40.0, stop_loss=55.0, direction=Direction.SHORT))

    bands = [s["name"] for s in surface.snapshot() if s["kind"] == "area"]
    assert bands == ["slBandFill", "slBandErase", "tpBandFill", "tpBandErase"]


def test_open_trade_projects_lookahead_past_latest_tick():
    renderer, surface = _renderer()
    hypothesis = _hypothesis()
    renderer.arm(hypothesis, latest_time=hypothesis.anchor_time)

    assert renderer.right_edge() == 20 * HOUR
    renderer.on_tick(Candle(12 * HOUR, 1, 1, 1, 101), TriggerState(TriggerPhase.IN_TRADE))

    assert renderer.right_edge() == 22 * HOUR
    data = _series(surface, "tpBandFill")["data"]
    assert data == [{"time": 10 * HOUR, "value": 110.0}, {"time": 22 * HOUR, "value": 110.0}]


def test_closed_trade_freezes_right_edge():
    renderer, surface = _renderer()
    renderer.arm(_hypothesis())
    closed = TriggerState(TriggerPhase.CLOSED, frozenset({AlertEvent.ENTRY, AlertEvent.TAKE_PROFIT}), 13 * HOUR)

    renderer.on_tick(Candle(13 * HOUR, 1, 1, 1, 111), closed)
    renderer.on_tick(Candle(15 * HOUR, 1, 1, 1, 112), closed)

    assert renderer.right_edge() == 13 * HOUR
    assert _series(surface, "slLine")["data"][-1]["time"] == 13 * HOUR


def test_missing_level_skips_its_line_and_band():
    renderer, surface = _renderer()
    renderer.arm(_hypothesis(stop_loss=None))

    names = {s["name"] for s in surface.snapshot()}
    assert "slLine" not in names
    assert "slBandFill" not in names
    assert OverlayLayer.TP_BAND_FILL in renderer.layers


def test_trendline_uses_first_drawing_with_points():
    drawings = (
        TrendlineDrawing(points=[], label="empty"),
        TrendlineDrawing(
            points=[DrawingPoint(30, 3.0), DrawingPoint(10, 1.0), DrawingPoint(30, 3.5)],
            label="Resistance",
        ),
    )
    hypothesis = _hypothesis(drawings=drawings)

    assert trendline_points(hypothesis) == [DrawingPoint(10, 1.0), DrawingPoint(30, 3.5)]

    renderer, surface = _renderer()
    renderer.arm(hypothesis)
    line = _series(surface, "trendline")
    assert line["options"]["title"] == "Resistance"
    assert [p["time"] for p in line["data"]] == [10, 30]


def test_trendline_needs_two_distinct_times():
    hypothesis = _hypothesis(drawings=(TrendlineDrawing(points=[DrawingPoint(10, 1.0), DrawingPoint(10, 2.0)]),))
    renderer, surface = _renderer()
    renderer.arm(hypothesis)

    assert trendline_points(hypothesis) == []
    assert OverlayLayer.TRENDLINE not in renderer.layers


def test_clear_all_removes_every_layer():
    renderer, surface = _renderer()
    renderer.arm(_hypothesis())
    renderer.clear_all()

    assert len(surface) == 0
    assert renderer.layers == {}
    assert renderer.right_edge() is None


def test_rearm_replaces_previous_overlay():
    renderer, surface = _renderer()
    renderer.arm(_hypothesis())
    renderer.arm(_hypothesis(entry_price=200.0, take_profit=220.0, stop_loss=190.0))

    assert len(surface) == 7
    assert _series(surface, "entryLine")["data"][0]["value"] == 200.0
