"""Process-wide collaborators shared by the routers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from libs.common.analysis_result import AnalysisResult
from libs.common.config.schema import DashboardSettings
from libs.common.repositories import (
    AlertRepository,
    HistoryRepository,
    InMemoryAlertRepository,
    InMemoryHistoryRepository,
    InMemoryNotificationRepository,
    NotificationRepository,
    WorkerAlertRepository,
    WorkerClient,
    WorkerHistoryRepository,
    WorkerNotificationRepository,
)
from services.control_plane.src.clients.analysis_client import AnalysisClient
from services.control_plane.src.clients.binance_client import BinanceClient
from services.control_plane.src.session.symbol_session import SessionManager
from services.control_plane.src.trading.price_monitor import PriceMonitor
from services.signal_engine.src.ingestion.binance_feed import BinanceFeed
from services.signal_engine.src.pipeline.notification_sink import NotificationSink

logger = logging.getLogger(__name__)


@dataclass
class DashboardRuntime:
    settings: DashboardSettings
    notifications: NotificationRepository
    alerts: AlertRepository
    history: HistoryRepository
    binance: BinanceClient
    analysis: AnalysisClient
    sink: NotificationSink
    sessions: SessionManager
    monitor: PriceMonitor
    feed: Optional[BinanceFeed] = None
    last_analysis: Optional[AnalysisResult] = None


def build_runtime(settings: DashboardSettings) -> DashboardRuntime:
    if settings.worker_url:
        logger.info("Using storage worker at %s", settings.worker_url)
        worker = WorkerClient(settings.worker_url, api_token=settings.worker_token)
        notifications: NotificationRepository = WorkerNotificationRepository(worker)
        alerts: AlertRepository = WorkerAlertRepository(worker)
        history: HistoryRepository = WorkerHistoryRepository(worker)
    else:
        logger.warning("SIGNAL_DESK_WORKER_URL not set; using in-memory repositories")
        notifications = InMemoryNotificationRepository()
        alerts = InMemoryAlertRepository()
        history = InMemoryHistoryRepository()

    binance = BinanceClient()
    feed = BinanceFeed(poll_interval=settings.feed.poll_interval_seconds)
    sink = NotificationSink(notifications, settings.user_id)
    sessions = SessionManager(binance, feed, sink, settings, alerts=alerts)
    return DashboardRuntime(
        settings=settings,
        notifications=notifications,
        alerts=alerts,
        history=history,
        binance=binance,
        analysis=AnalysisClient(
            settings.analysis.base_url,
            api_key=settings.analysis.api_key,
            timeout=settings.analysis.timeout_seconds,
            window=settings.analysis.window,
        ),
        sink=sink,
        sessions=sessions,
        monitor=PriceMonitor(alerts, notifications, binance, owned_ids=sessions.owned_alert_ids),
        feed=feed,
    )


_runtime: Optional[DashboardRuntime] = None


def get_runtime() -> DashboardRuntime:
    global _runtime
    if _runtime is None:
        _runtime = build_runtime(DashboardSettings.from_env())
    return _runtime


def set_runtime(runtime: Optional[DashboardRuntime]) -> None:
    global _runtime
    _runtime = runtime


__all__ = ["DashboardRuntime", "build_runtime", "get_runtime", "set_runtime"]
