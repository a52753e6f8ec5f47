"""Analysis history storage (save and list only)."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List

from libs.common.repositories.worker_client import WorkerClient


@dataclass
class AnalysisHistoryEntry:
    user_id: str
    symbol: str
    mode: str
    result: dict
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "symbol": self.symbol,
            "mode": self.mode,
            "result": self.result,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> AnalysisHistoryEntry:
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            symbol=data["symbol"],
            mode=data.get("mode", "normal"),
            result=data.get("result") or {},
            created_at=datetime.fromisoformat(data["created_at"].replace("Z", "+00:00")),
        )


class HistoryRepository(ABC):
    @abstractmethod
    def save(self, entry: AnalysisHistoryEntry) -> None:
        """Persist an analysis run."""

    @abstractmethod
    def list_recent(self, user_id: str, limit: int = 5) -> List[AnalysisHistoryEntry]:
        """Newest analysis runs for a user."""


class InMemoryHistoryRepository(HistoryRepository):
    def __init__(self) -> None:
        self._storage: Dict[str, AnalysisHistoryEntry] = {}

    def save(self, entry: AnalysisHistoryEntry) -> None:
        self._storage[entry.id] = entry

    def list_recent(self, user_id: str, limit: int = 5) -> List[AnalysisHistoryEntry]:
        entries = [e for e in self._storage.values() if e.user_id == user_id]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit]


class WorkerHistoryRepository(HistoryRepository):
    def __init__(self, client: WorkerClient) -> None:
        self.client = client

    def save(self, entry: AnalysisHistoryEntry) -> None:
        self.client.request("POST", "/analysis-history", json=entry.to_dict())

    def list_recent(self, user_id: str, limit: int = 5) -> List[AnalysisHistoryEntry]:
        data = self.client.request(
            "GET",
            "/analysis-history",
            params={"user_id": user_id, "limit": limit},
        )
        return [AnalysisHistoryEntry.from_dict(item) for item in data.get("entries", [])]


__all__ = [
    "AnalysisHistoryEntry",
    "HistoryRepository",
    "InMemoryHistoryRepository",
    "WorkerHistoryRepository",
]
