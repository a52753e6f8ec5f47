"""Price Monitor - periodic sweep over persisted price alerts.

Each sweep loads the active alert records, fetches current prices for all of
their symbols in one request and advances every record with the same
transition the live engine uses. The price seen on the previous sweep stands
in for the previous tick's close, so a record needs two sweeps before its
entry can cross.

Records owned by the live session (``owned_ids``) are skipped: the live
engine already evaluates them tick by tick.

Usage:
    monitor = PriceMonitor(alert_repo, notification_repo, binance_client)
    await monitor.start(interval_seconds=60)
    # ... later ...
    await monitor.stop()
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from libs.common.alert_state import advance, format_alert_message, level_for_event
from libs.common.errors import DataUnavailableError
from libs.common.repositories import (
    AlertRepository,
    NotificationRecord,
    NotificationRepository,
    PriceAlertRecord,
)

logger = logging.getLogger(__name__)

JOB_ID = "price_monitor"


class PriceSource(Protocol):
    async def get_prices(self, symbols) -> Dict[str, float]:
        ...


class PriceMonitor:
    def __init__(
        self,
        alerts: AlertRepository,
        notifications: NotificationRepository,
        prices: PriceSource,
        owned_ids: Optional[Callable[[], Iterable[str]]] = None,
    ):
        self.alerts = alerts
        self.notifications = notifications
        self.prices = prices
        self.owned_ids = owned_ids
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.is_running = False
        self.interval_seconds: float = 60.0
        self.logs = deque(maxlen=200)

    def _record_log(self, entry: dict) -> None:
        self.logs.append({**entry, "ts": datetime.now(timezone.utc).isoformat()})

    async def run_once(self) -> dict:
        """Process every active alert once. Returns a summary of the sweep."""
        active = self.alerts.list_active()
        if self.owned_ids is not None:
            owned = set(self.owned_ids())
            active = [record for record in active if record.id not in owned]
        if not active:
            return {"processed": 0, "notifications": 0, "deactivated": 0}

        by_symbol: Dict[str, List[PriceAlertRecord]] = defaultdict(list)
        for record in active:
            by_symbol[record.symbol].append(record)

        try:
            current_prices = await self.prices.get_prices(by_symbol.keys())
        except DataUnavailableError as exc:
            logger.error("Price monitor could not fetch prices: %s", exc)
            self._record_log({"action": "sweep", "status": "price_fetch_failed", "error": str(exc)})
            return {"processed": 0, "notifications": 0, "deactivated": 0, "error": str(exc)}

        tick_time = int(time.time())
        sent = 0
        deactivated = 0
        for symbol, records in by_symbol.items():
            price = current_prices.get(symbol)
            if price is None:
                logger.warning("No price for %s; skipping %d alerts", symbol, len(records))
                continue
            for record in records:
                fired = self._process(record, price, tick_time)
                sent += fired
                if not record.is_active:
                    deactivated += 1

        summary = {"processed": len(active), "notifications": sent, "deactivated": deactivated}
        self._record_log({"action": "sweep", "status": "ok", **summary})
        return summary

    def _process(self, record: PriceAlertRecord, price: float, tick_time: int) -> int:
        hypothesis = record.to_hypothesis()
        state, event = advance(record.state, record.last_price, price, hypothesis, tick_time)
        record.state = state
        record.last_price = price

        fired = 0
        if event is not None:
            message = format_alert_message(record.symbol, event, level_for_event(hypothesis, event))
            try:
                self.notifications.save(NotificationRecord(user_id=record.user_id, message=message))
                fired = 1
            except Exception as exc:
                logger.error("Failed to store notification for alert %s: %s", record.id, exc)
            self._record_log({"alert_id": record.id, "symbol": record.symbol, "event": event.value, "price": price})

        if state.closed:
            record.is_active = False

        try:
            self.alerts.save(record)
        except Exception as exc:
            logger.error("Failed to update alert %s: %s", record.id, exc)
        return fired

    async def _tick(self) -> None:
        try:
            await self.run_once()
        except Exception:
            logger.exception("Price monitor sweep failed")

    async def start(self, interval_seconds: float = 60.0) -> None:
        if self.is_running:
            await self.stop()
        self.interval_seconds = interval_seconds
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._tick,
            IntervalTrigger(seconds=interval_seconds),
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self.is_running = True
        logger.info("Price monitor started (every %ss)", interval_seconds)

    async def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
        self.is_running = False
        logger.info("Price monitor stopped")

    def status(self) -> dict:
        return {
            "is_running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "logs": list(self.logs)[-20:],
        }


__all__ = ["PriceMonitor"]
