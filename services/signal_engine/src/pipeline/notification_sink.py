"""Delivers alert messages as transient toasts and durable notification records."""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from typing import List

from libs.common.repositories import NotificationRecord, NotificationRepository

logger = logging.getLogger(__name__)


class NotificationSink:
    def __init__(
        self,
        repository: NotificationRepository,
        user_id: str,
        max_toasts: int = 50,
    ) -> None:
        self.repository = repository
        self.user_id = user_id
        self._toasts: deque = deque(maxlen=max_toasts)

    def show(self, message: str, level: str = "info") -> None:
        """Queue a transient toast for the UI to pick up."""
        self._toasts.append({
            "message": message,
            "level": level,
            "ts": datetime.now(timezone.utc).isoformat(),
        })

    def persist(self, user_id: str, message: str) -> bool:
        """Store a durable notification; failures are logged, never raised."""
        try:
            self.repository.save(NotificationRecord(user_id=user_id, message=message))
            return True
        except Exception as exc:
            logger.error("Failed to persist notification for %s: %s", user_id, exc)
            return False

    def notify(self, message: str) -> None:
        self.show(message)
        self.persist(self.user_id, message)

    def drain_toasts(self) -> List[dict]:
        toasts = list(self._toasts)
        self._toasts.clear()
        return toasts


__all__ = ["NotificationSink"]
