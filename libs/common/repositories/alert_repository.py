"""Price alert record storage.

A price alert is the durable copy of an armed hypothesis. The price monitor
reads active records, advances their trigger state and writes them back.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional
from urllib.parse import quote

import httpx

from libs.common.alert_state import TriggerState
from libs.common.market_types import Direction, TradeHypothesis
from libs.common.repositories.worker_client import WorkerClient


@dataclass
class PriceAlertRecord:
    """Persisted alert for one hypothesis.

    ``last_price`` is the price seen on the previous monitor sweep and plays
    the role of the previous tick's close for entry crossing.
    """
    user_id: str
    symbol: str
    entry_price: Optional[float]
    take_profit: Optional[float]
    stop_loss: Optional[float]
    direction: Optional[Direction]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    interval: str = "1d"
    anchor_time: int = 0
    is_active: bool = True
    last_price: Optional[float] = None
    state: TriggerState = field(default_factory=TriggerState)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_entered(self) -> bool:
        return self.state.entered

    @classmethod
    def from_hypothesis(cls, user_id: str, hypothesis: TradeHypothesis) -> PriceAlertRecord:
        return cls(
            user_id=user_id,
            symbol=hypothesis.symbol,
            interval=hypothesis.interval,
            entry_price=hypothesis.entry_price,
            take_profit=hypothesis.take_profit,
            stop_loss=hypothesis.stop_loss,
            direction=hypothesis.direction,
            anchor_time=hypothesis.anchor_time,
        )

    def to_hypothesis(self) -> TradeHypothesis:
        return TradeHypothesis(
            symbol=self.symbol,
            interval=self.interval,
            entry_price=self.entry_price,
            take_profit=self.take_profit,
            stop_loss=self.stop_loss,
            direction=self.direction,
            anchor_time=self.anchor_time,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "symbol": self.symbol,
            "interval": self.interval,
            "entry_price": self.entry_price,
            "take_profit": self.take_profit,
            "stop_loss": self.stop_loss,
            "direction": self.direction.value if self.direction else None,
            "is_long": self.direction == Direction.LONG,
            "is_entered": self.is_entered,
            "is_active": self.is_active,
            "anchor_time": self.anchor_time,
            "last_price": self.last_price,
            "state": self.state.to_dict(),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> PriceAlertRecord:
        direction = data.get("direction")
        created_at = data.get("created_at")
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            symbol=data["symbol"],
            interval=data.get("interval", "1d"),
            entry_price=data.get("entry_price"),
            take_profit=data.get("take_profit"),
            stop_loss=data.get("stop_loss"),
            direction=Direction(direction) if direction else None,
            anchor_time=int(data.get("anchor_time") or 0),
            is_active=bool(data.get("is_active", True)),
            last_price=data.get("last_price"),
            state=TriggerState.from_dict(data.get("state") or {}),
            created_at=(
                datetime.fromisoformat(created_at.replace("Z", "+00:00"))
                if created_at
                else datetime.now(timezone.utc)
            ),
        )


class AlertRepository(ABC):
    """Abstract interface for price alert storage."""

    @abstractmethod
    def save(self, record: PriceAlertRecord) -> None:
        """Save or update an alert."""

    @abstractmethod
    def get(self, alert_id: str) -> Optional[PriceAlertRecord]:
        """Get an alert by id."""

    @abstractmethod
    def list_active(self) -> List[PriceAlertRecord]:
        """All alerts still being monitored."""

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[PriceAlertRecord]:
        """All alerts of a user, newest first."""

    @abstractmethod
    def deactivate(self, alert_id: str) -> bool:
        """Stop monitoring an alert. Returns False when it does not exist."""


class InMemoryAlertRepository(AlertRepository):
    """In-memory implementation of the alert repository."""

    def __init__(self) -> None:
        self._storage: Dict[str, PriceAlertRecord] = {}

    def save(self, record: PriceAlertRecord) -> None:
        self._storage[record.id] = record

    def get(self, alert_id: str) -> Optional[PriceAlertRecord]:
        return self._storage.get(alert_id)

    def list_active(self) -> List[PriceAlertRecord]:
        return [r for r in self._storage.values() if r.is_active]

    def list_for_user(self, user_id: str) -> List[PriceAlertRecord]:
        records = [r for r in self._storage.values() if r.user_id == user_id]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    def deactivate(self, alert_id: str) -> bool:
        record = self._storage.get(alert_id)
        if record is None:
            return False
        record.is_active = False
        return True


class WorkerAlertRepository(AlertRepository):
    """Alert repository backed by the storage worker API."""

    def __init__(self, client: WorkerClient) -> None:
        self.client = client

    def save(self, record: PriceAlertRecord) -> None:
        self.client.request("POST", "/price-alerts", json=record.to_dict())

    def get(self, alert_id: str) -> Optional[PriceAlertRecord]:
        try:
            data = self.client.request("GET", f"/price-alerts/{quote(alert_id, safe='')}")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise
        payload = data.get("alert") if data else None
        return PriceAlertRecord.from_dict(payload) if payload else None

    def list_active(self) -> List[PriceAlertRecord]:
        data = self.client.request("GET", "/price-alerts", params={"is_active": "true"})
        return [PriceAlertRecord.from_dict(item) for item in data.get("alerts", [])]

    def list_for_user(self, user_id: str) -> List[PriceAlertRecord]:
        data = self.client.request("GET", "/price-alerts", params={"user_id": user_id})
        return [PriceAlertRecord.from_dict(item) for item in data.get("alerts", [])]

    def deactivate(self, alert_id: str) -> bool:
        try:
            self.client.request(
                "PATCH",
                f"/price-alerts/{quote(alert_id, safe='')}",
                json={"is_active": False},
            )
            return True
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return False
            raise


__all__ = [
    "PriceAlertRecord",
    "AlertRepository",
    "InMemoryAlertRepository",
    "WorkerAlertRepository",
]
