"""Notification record storage.

Alert notifications are written once per fired event and read back by the
notification center, newest first.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from libs.common.repositories.worker_client import WorkerClient


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class NotificationRecord:
    user_id: str
    message: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)
    is_read: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
            "is_read": self.is_read,
        }

    @classmethod
    def from_dict(cls, data: dict) -> NotificationRecord:
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            message=data["message"],
            created_at=_parse_datetime(data.get("created_at")) or _utcnow(),
            is_read=bool(data.get("is_read", False)),
        )


class NotificationRepository(ABC):
    """Abstract interface for notification storage."""

    @abstractmethod
    def save(self, record: NotificationRecord) -> None:
        """Persist a new notification."""

    @abstractmethod
    def list_recent(self, user_id: str, limit: int = 20) -> List[NotificationRecord]:
        """Newest notifications for a user."""

    @abstractmethod
    def mark_all_read(self, user_id: str) -> int:
        """Mark unread notifications as read, returning how many changed."""


class InMemoryNotificationRepository(NotificationRepository):
    """In-memory notification storage used for development and tests."""

    def __init__(self) -> None:
        self._storage: Dict[str, NotificationRecord] = {}

    def save(self, record: NotificationRecord) -> None:
        self._storage[record.id] = record

    def list_recent(self, user_id: str, limit: int = 20) -> List[NotificationRecord]:
        records = [r for r in self._storage.values() if r.user_id == user_id]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    def mark_all_read(self, user_id: str) -> int:
        changed = 0
        for record in self._storage.values():
            if record.user_id == user_id and not record.is_read:
                record.is_read = True
                changed += 1
        return changed


class WorkerNotificationRepository(NotificationRepository):
    """Notification repository backed by the storage worker API."""

    def __init__(self, client: WorkerClient) -> None:
        self.client = client

    def save(self, record: NotificationRecord) -> None:
        self.client.request("POST", "/notifications", json=record.to_dict())

    def list_recent(self, user_id: str, limit: int = 20) -> List[NotificationRecord]:
        data = self.client.request(
            "GET",
            "/notifications",
            params={"user_id": user_id, "limit": limit},
        )
        return [NotificationRecord.from_dict(item) for item in data.get("notifications", [])]

    def mark_all_read(self, user_id: str) -> int:
        data = self.client.request("POST", "/notifications/read", json={"user_id": user_id})
        return int(data.get("updated", 0))


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse ISO timestamps that may end with Z (UTC) or timezone offsets."""
    if not value:
        return None
    normalized = value.replace("Z", "+00:00")
    return datetime.fromisoformat(normalized)


__all__ = [
    "NotificationRecord",
    "NotificationRepository",
    "InMemoryNotificationRepository",
    "WorkerNotificationRepository",
]
