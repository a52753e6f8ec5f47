"""Symbol session lifecycle.

A session owns everything tied to the current symbol/interval selection: the
candle store, the signal registry, the trigger engine, the overlay and the
tick subscription. Opening a new session always closes the old one first and
bumps a generation counter; history responses and ticks that carry an older
generation are discarded.

Ticks that arrive while the history fetch is still outstanding overwrite a
single latest-tick slot which is applied once the store is ready.

A persisted alert armed from the session is owned by it: the live engine
writes its trigger state back to the record and the price monitor leaves the
record alone. Re-arming, disarming or switching symbol deactivates the record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Set

from libs.common.analysis_result import AnalysisResult
from libs.common.candle_store import CandleStore
from libs.common.config.schema import DashboardSettings, normalize_symbol
from libs.common.errors import DataUnavailableError
from libs.common.market_types import Candle, TradeHypothesis, display_symbol, interval_seconds
from libs.common.repositories import AlertRepository, PriceAlertRecord
from libs.common.signal_registry import SignalRegistry, build_hypothesis
from services.control_plane.src.overlay.chart_overlay import ChartOverlayRenderer, JsonChartSurface
from services.signal_engine.src.ingestion.feed_watchdog import FeedWatchdog
from services.signal_engine.src.pipeline.alert_engine import AlertTriggerEngine
from services.signal_engine.src.pipeline.notification_sink import NotificationSink
from services.signal_engine.src.pipeline.tick_pipeline import TickPipeline

logger = logging.getLogger(__name__)


class HistoricalProvider(Protocol):
    async def get_candles(self, symbol: str, interval: str = "1d", limit: int = 150) -> List[Candle]:
        ...


class TickSource(Protocol):
    def subscribe(self, symbol: str, interval: str, on_tick: Callable[[Candle], None], on_fault=None) -> Any:
        ...

    def unsubscribe(self, subscription: Any) -> None:
        ...


@dataclass
class SymbolSession:
    symbol: str
    interval: str
    generation: int
    store: CandleStore
    registry: SignalRegistry
    engine: AlertTriggerEngine
    surface: JsonChartSurface
    renderer: ChartOverlayRenderer
    pipeline: TickPipeline
    watchdog: Optional[FeedWatchdog] = None
    subscription: Any = None
    ready: bool = False
    closed: bool = False
    stream_faulted: bool = False
    pending_tick: Optional[Candle] = None
    alert_record: Optional[PriceAlertRecord] = None
    error: Optional[str] = None
    ticks_received: int = field(default=0)

    @property
    def data_unavailable(self) -> bool:
        return self.store.data_unavailable

    @property
    def hypothesis(self) -> Optional[TradeHypothesis]:
        return self.registry.get(self.symbol)

    def status(self) -> dict:
        return {
            "symbol": self.symbol,
            "interval": self.interval,
            "generation": self.generation,
            "ready": self.ready,
            "closed": self.closed,
            "candles": len(self.store),
            "data_unavailable": self.data_unavailable,
            "stream_faulted": self.stream_faulted,
            "feed_stale": self.watchdog.is_stale if self.watchdog else False,
            "error": self.error,
            "ticks_received": self.ticks_received,
            "last_close": self.store.last_close,
            "hypothesis": self.hypothesis.to_dict() if self.hypothesis else None,
            "alert_id": self.alert_record.id if self.alert_record else None,
            "trigger": self.engine.state.to_dict(),
        }


class SessionManager:
    def __init__(
        self,
        provider: HistoricalProvider,
        feed: TickSource,
        sink: NotificationSink,
        settings: Optional[DashboardSettings] = None,
        alerts: Optional[AlertRepository] = None,
    ):
        self.provider = provider
        self.feed = feed
        self.sink = sink
        self.alerts = alerts
        self.settings = settings or DashboardSettings()
        self.current: Optional[SymbolSession] = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def _build_session(self, symbol: str, interval: str, generation: int) -> SymbolSession:
        store = CandleStore()
        engine = AlertTriggerEngine(self.sink)
        surface = JsonChartSurface()
        renderer = ChartOverlayRenderer(surface, interval_seconds(interval), self.settings.overlay)
        watchdog = FeedWatchdog(
            max_gap_seconds=self.settings.feed.max_gap_seconds,
            alert_fn=lambda reason: self._on_feed_gap(symbol, reason),
        )
        return SymbolSession(
            symbol=symbol,
            interval=interval,
            generation=generation,
            store=store,
            registry=SignalRegistry(),
            engine=engine,
            surface=surface,
            renderer=renderer,
            pipeline=TickPipeline(store, engine, renderer),
            watchdog=watchdog,
        )

    async def open_session(self, symbol: str, interval: str) -> SymbolSession:
        """Close the current session, subscribe to ticks and load history."""
        symbol = normalize_symbol(symbol)
        interval_seconds(interval)

        if self.current is not None:
            self.close_session(self.current)

        self._generation += 1
        generation = self._generation
        session = self._build_session(symbol, interval, generation)
        self.current = session

        session.subscription = self.feed.subscribe(
            symbol,
            interval,
            lambda candle: self._on_tick(generation, candle),
            lambda exc: self._on_fault(generation, exc),
        )
        logger.info("Opened session %s %s (generation %d)", symbol, interval, generation)

        await self._load_history(session)
        return session

    def close_session(self, session: SymbolSession, release_alert: bool = True) -> None:
        """Tear the session down.

        With ``release_alert=False`` the owned alert record stays active so the
        price monitor picks it up (used on process shutdown).
        """
        if session.closed:
            return
        session.closed = True
        if release_alert:
            self._release_alert(session)
        session.alert_record = None
        if session.subscription is not None:
            try:
                self.feed.unsubscribe(session.subscription)
            except Exception:
                logger.exception("Failed to unsubscribe %s %s", session.symbol, session.interval)
            session.subscription = None
        session.renderer.clear_all()
        session.engine.disarm()
        session.registry.clear_all()
        session.pending_tick = None
        if self.current is session:
            self.current = None
        logger.info("Closed session %s %s (generation %d)", session.symbol, session.interval, session.generation)

    def _is_current(self, generation: int) -> bool:
        return (
            self.current is not None
            and not self.current.closed
            and self.current.generation == generation
            and generation == self._generation
        )

    async def _load_history(self, session: SymbolSession) -> None:
        batch: List[Candle] = []
        try:
            batch = await self.provider.get_candles(
                session.symbol,
                session.interval,
                limit=self.settings.feed.history_limit,
            )
        except DataUnavailableError as exc:
            session.error = str(exc)
            logger.warning("History unavailable for %s %s: %s", session.symbol, session.interval, exc)

        if not self._is_current(session.generation):
            logger.info(
                "Discarding history for superseded session %s %s (generation %d)",
                session.symbol,
                session.interval,
                session.generation,
            )
            return

        session.store.merge(batch)
        if session.store.data_unavailable and session.error is None:
            session.error = f"No chart data available for {display_symbol(session.symbol)}."
        session.ready = True

        pending, session.pending_tick = session.pending_tick, None
        if pending is not None:
            self._apply_tick(session, pending)

    def _on_tick(self, generation: int, candle: Candle) -> None:
        if not self._is_current(generation):
            logger.debug("Dropping tick from superseded generation %d", generation)
            return
        session = self.current
        session.ticks_received += 1
        if session.watchdog is not None:
            session.watchdog.heartbeat()
        if not session.ready:
            session.pending_tick = candle
            return
        self._apply_tick(session, candle)

    def _apply_tick(self, session: SymbolSession, candle: Candle) -> None:
        event = session.pipeline.on_tick(candle)
        if event is not None and session.alert_record is not None:
            self._sync_alert(session, candle.close)

    def _sync_alert(self, session: SymbolSession, price: float) -> None:
        """Write the live trigger state back to the owned alert record."""
        record = session.alert_record
        record.state = session.engine.state
        record.last_price = price
        if record.state.closed:
            record.is_active = False
            session.alert_record = None
        if self.alerts is None:
            return
        try:
            self.alerts.save(record)
        except Exception as exc:
            logger.error("Failed to update alert %s: %s", record.id, exc)

    def _release_alert(self, session: SymbolSession) -> None:
        record, session.alert_record = session.alert_record, None
        if record is None or self.alerts is None:
            return
        try:
            self.alerts.deactivate(record.id)
        except Exception as exc:
            logger.error("Failed to deactivate alert %s: %s", record.id, exc)
            return
        logger.info("Deactivated alert %s for %s", record.id, record.symbol)

    def track_alert(self, record: PriceAlertRecord) -> None:
        """Hand a persisted alert for the armed hypothesis to the live session."""
        session = self.current
        if session is None or session.closed:
            raise RuntimeError("No active session to own the alert")
        self._release_alert(session)
        session.alert_record = record

    def owned_alert_ids(self) -> Set[str]:
        """Ids of alert records the live engine is evaluating."""
        session = self.current
        if session is None or session.closed or session.alert_record is None:
            return set()
        return {session.alert_record.id}

    def _on_fault(self, generation: int, exc: Exception) -> None:
        if not self._is_current(generation):
            return
        self.current.stream_faulted = True
        self.current.error = f"Price stream stopped: {exc}"

    def _on_feed_gap(self, symbol: str, reason: str) -> None:
        logger.warning("Feed gap for %s: %s", symbol, reason)
        self.sink.show(f"Live prices for {display_symbol(symbol)} are delayed.", level="warning")

    def check_feed(self) -> bool:
        """True while the current session's feed is stale."""
        if self.current is None or self.current.watchdog is None:
            return False
        return self.current.watchdog.check()

    def arm(self, result: AnalysisResult) -> TradeHypothesis:
        """Arm alerts for the current session from an analysis result.

        Replaces any previously armed hypothesis and redraws the overlay.
        """
        session = self.current
        if session is None or not session.ready:
            raise RuntimeError("No active session is ready to arm alerts")
        if session.store.last_time is None:
            raise DataUnavailableError(session.symbol, session.interval, "no candles to anchor the signal")

        hypothesis = build_hypothesis(result, session.symbol, session.interval, session.store.last_time)
        self._release_alert(session)
        session.registry.arm(hypothesis)
        session.engine.arm(hypothesis)
        session.renderer.arm(hypothesis, session.store.last_time)
        return hypothesis

    def disarm(self) -> bool:
        session = self.current
        if session is None or session.hypothesis is None:
            return False
        self._release_alert(session)
        session.registry.clear(session.symbol)
        session.engine.disarm()
        session.renderer.clear_all()
        return True


__all__ = ["SymbolSession", "SessionManager", "HistoricalProvider", "TickSource"]
