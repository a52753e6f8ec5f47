"""Chart overlay for an armed trade hypothesis.

Draws three horizontal levels (entry dashed, TP and SL solid), a profit band
and a loss band, and an optional trendline. Bands are pairs of area series
over a bottom-anchored baseline: the fill series covers everything below the
band's top in the band colour, the erase series repaints everything below the
band's bottom in the chart background. The upper band is drawn first so the
lower band's fill is not erased.

While the trade is open the right edge of every layer projects a fixed number
of candles past the latest tick; once TP or SL fires it is frozen at the
trade end time.
"""

from __future__ import annotations

import itertools
import logging
from enum import Enum
from typing import Dict, List, Optional, Protocol, Tuple

from libs.common.alert_state import TriggerState
from libs.common.config.schema import OverlaySettings
from libs.common.market_types import Candle, Direction, DrawingPoint, TradeHypothesis

logger = logging.getLogger(__name__)

Point = Tuple[int, float]

LINE_SOLID = 0
LINE_DASHED = 2


class OverlayLayer(str, Enum):
    ENTRY_LINE = "entryLine"
    TP_LINE = "tpLine"
    SL_LINE = "slLine"
    TP_BAND_FILL = "tpBandFill"
    TP_BAND_ERASE = "tpBandErase"
    SL_BAND_FILL = "slBandFill"
    SL_BAND_ERASE = "slBandErase"
    TRENDLINE = "trendline"


class ChartSurface(Protocol):
    """Drawing primitives of the charting library."""

    def add_line(self, name: str, options: dict) -> str:
        ...

    def add_area(self, name: str, options: dict) -> str:
        ...

    def set_data(self, handle: str, points: List[Point]) -> None:
        ...

    def remove(self, handle: str) -> None:
        ...


class JsonChartSurface:
    """Records series so the browser can replay them with lightweight-charts."""

    def __init__(self) -> None:
        self._series: Dict[str, dict] = {}
        self._ids = itertools.count(1)

    def _add(self, kind: str, name: str, options: dict) -> str:
        handle = f"{name}-{next(self._ids)}"
        self._series[handle] = {
            "id": handle,
            "name": name,
            "kind": kind,
            "options": dict(options),
            "data": [],
        }
        return handle

    def add_line(self, name: str, options: dict) -> str:
        return self._add("line", name, options)

    def add_area(self, name: str, options: dict) -> str:
        return self._add("area", name, options)

    def set_data(self, handle: str, points: List[Point]) -> None:
        self._series[handle]["data"] = [{"time": t, "value": v} for t, v in points]

    def remove(self, handle: str) -> None:
        self._series.pop(handle, None)

    def snapshot(self) -> List[dict]:
        return [dict(series) for series in self._series.values()]

    def __len__(self) -> int:
        return len(self._series)


def band_bounds(hypothesis: TradeHypothesis) -> Dict[str, Tuple[float, float]]:
    """(bottom, top) of the profit ("tp") and loss ("sl") bands.

    A band is omitted when one of its levels is missing. With an unresolved
    direction the levels are ordered by value.
    """
    entry, tp, sl = hypothesis.entry_price, hypothesis.take_profit, hypothesis.stop_loss
    bands: Dict[str, Tuple[float, float]] = {}
    if entry is None:
        return bands

    if tp is not None:
        if hypothesis.direction == Direction.LONG:
            bands["tp"] = (entry, tp)
        elif hypothesis.direction == Direction.SHORT:
            bands["tp"] = (tp, entry)
        else:
            bands["tp"] = (min(entry, tp), max(entry, tp))
    if sl is not None:
        if hypothesis.direction == Direction.LONG:
            bands["sl"] = (sl, entry)
        elif hypothesis.direction == Direction.SHORT:
            bands["sl"] = (entry, sl)
        else:
            bands["sl"] = (min(entry, sl), max(entry, sl))
    return bands


def trendline_points(hypothesis: TradeHypothesis) -> List[DrawingPoint]:
    """Points of the first drawing that has any, de-duplicated by time and sorted.

    Returns an empty list when fewer than two distinct times remain.
    """
    for drawing in hypothesis.drawings:
        if not drawing.points:
            continue
        by_time: Dict[int, DrawingPoint] = {}
        for point in drawing.points:
            by_time[int(point.time)] = DrawingPoint(int(point.time), float(point.price))
        points = [by_time[t] for t in sorted(by_time)]
        return points if len(points) >= 2 else []
    return []


class ChartOverlayRenderer:
    def __init__(
        self,
        surface: ChartSurface,
        interval_seconds: int,
        settings: Optional[OverlaySettings] = None,
    ):
        self.surface = surface
        self.interval_seconds = interval_seconds
        self.settings = settings or OverlaySettings()
        self.layers: Dict[OverlayLayer, str] = {}
        self.hypothesis: Optional[TradeHypothesis] = None
        self.latest_time: Optional[int] = None
        self.trade_end_time: Optional[int] = None

    def clear_all(self) -> None:
        for layer, handle in list(self.layers.items()):
            try:
                self.surface.remove(handle)
            except Exception:
                logger.exception("Failed to remove overlay layer %s", layer.value)
        self.layers.clear()
        self.hypothesis = None
        self.latest_time = None
        self.trade_end_time = None

    def arm(self, hypothesis: TradeHypothesis, latest_time: Optional[int] = None) -> None:
        """Replace whatever is on screen with the overlay for ``hypothesis``."""
        self.clear_all()
        self.hypothesis = hypothesis
        self.latest_time = max(hypothesis.anchor_time, latest_time or hypothesis.anchor_time)

        self._draw_level(OverlayLayer.ENTRY_LINE, hypothesis.entry_price, "#2962ff", LINE_DASHED, "Entry")
        self._draw_level(OverlayLayer.TP_LINE, hypothesis.take_profit, "#26a69a", LINE_SOLID, "Take Profit")
        self._draw_level(OverlayLayer.SL_LINE, hypothesis.stop_loss, "#ef5350", LINE_SOLID, "Stop Loss")
        self._draw_bands(hypothesis)
        self._draw_trendline(hypothesis)
        self._extend()

    def on_tick(self, candle: Candle, state: TriggerState) -> None:
        if self.hypothesis is None:
            return
        if self.latest_time is None or candle.time > self.latest_time:
            self.latest_time = candle.time
        if state.trade_end_time is not None and self.trade_end_time is None:
            self.trade_end_time = state.trade_end_time
        self._extend()

    def right_edge(self) -> Optional[int]:
        if self.hypothesis is None:
            return None
        if self.trade_end_time is not None:
            return self.trade_end_time
        latest = self.latest_time if self.latest_time is not None else self.hypothesis.anchor_time
        return latest + self.settings.lookahead_bars * self.interval_seconds

    def _span(self, value: float) -> List[Point]:
        anchor = self.hypothesis.anchor_time
        right = self.right_edge()
        if right is None or right <= anchor:
            return [(anchor, value)]
        return [(anchor, value), (right, value)]

    def _draw_level(
        self,
        layer: OverlayLayer,
        price: Optional[float],
        color: str,
        line_style: int,
        title: str,
    ) -> None:
        if price is None:
            return
        self.layers[layer] = self.surface.add_line(layer.value, {
            "color": color,
            "lineWidth": 2,
            "lineStyle": line_style,
            "title": title,
            "price": price,
            "lastValueVisible": False,
            "priceLineVisible": False,
        })

    def _draw_bands(self, hypothesis: TradeHypothesis) -> None:
        bands = band_bounds(hypothesis)
        colors = {"tp": self.settings.profit_color, "sl": self.settings.loss_color}
        layer_names = {
            "tp": (OverlayLayer.TP_BAND_FILL, OverlayLayer.TP_BAND_ERASE),
            "sl": (OverlayLayer.SL_BAND_FILL, OverlayLayer.SL_BAND_ERASE),
        }
        for key in sorted(bands, key=lambda k: bands[k][1], reverse=True):
            bottom, top = bands[key]
            fill_layer, erase_layer = layer_names[key]
            self.layers[fill_layer] = self.surface.add_area(fill_layer.value, {
                "topColor": colors[key],
                "bottomColor": colors[key],
                "lineVisible": False,
                "price": top,
                "lastValueVisible": False,
                "priceLineVisible": False,
            })
            self.layers[erase_layer] = self.surface.add_area(erase_layer.value, {
                "topColor": self.settings.background_color,
                "bottomColor": self.settings.background_color,
                "lineVisible": False,
                "price": bottom,
                "lastValueVisible": False,
                "priceLineVisible": False,
            })

    def _draw_trendline(self, hypothesis: TradeHypothesis) -> None:
        points = trendline_points(hypothesis)
        if not points:
            return
        handle = self.surface.add_line(OverlayLayer.TRENDLINE.value, {
            "color": "#f7a600",
            "lineWidth": 2,
            "lineStyle": LINE_SOLID,
            "title": next((d.label for d in hypothesis.drawings if d.points), ""),
            "lastValueVisible": False,
            "priceLineVisible": False,
        })
        self.layers[OverlayLayer.TRENDLINE] = handle
        self.surface.set_data(handle, [(p.time, p.price) for p in points])

    def _extend(self) -> None:
        """Redraw every horizontal layer up to the current right edge."""
        for layer, handle in self.layers.items():
            if layer == OverlayLayer.TRENDLINE:
                continue
            price = self._layer_price(layer)
            if price is not None:
                self.surface.set_data(handle, self._span(price))

    def _layer_price(self, layer: OverlayLayer) -> Optional[float]:
        hypothesis = self.hypothesis
        if layer == OverlayLayer.ENTRY_LINE:
            return hypothesis.entry_price
        if layer == OverlayLayer.TP_LINE:
            return hypothesis.take_profit
        if layer == OverlayLayer.SL_LINE:
            return hypothesis.stop_loss
        bands = band_bounds(hypothesis)
        if layer == OverlayLayer.TP_BAND_FILL:
            return bands["tp"][1]
        if layer == OverlayLayer.TP_BAND_ERASE:
            return bands["tp"][0]
        if layer == OverlayLayer.SL_BAND_FILL:
            return bands["sl"][1]
        if layer == OverlayLayer.SL_BAND_ERASE:
            return bands["sl"][0]
        return None

    def snapshot(self) -> dict:
        return {
            "hypothesis": self.hypothesis.to_dict() if self.hypothesis else None,
            "right_edge": self.right_edge(),
            "trade_end_time": self.trade_end_time,
            "layers": {layer.value: handle for layer, handle in self.layers.items()},
        }


__all__ = [
    "OverlayLayer",
    "ChartSurface",
    "JsonChartSurface",
    "ChartOverlayRenderer",
    "band_bounds",
    "trendline_points",
]
