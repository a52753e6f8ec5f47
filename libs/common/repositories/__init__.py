"""Repository interfaces for data persistence."""

from .alert_repository import (
    AlertRepository,
    InMemoryAlertRepository,
    PriceAlertRecord,
    WorkerAlertRepository,
)
from .history_repository import (
    AnalysisHistoryEntry,
    HistoryRepository,
    InMemoryHistoryRepository,
    WorkerHistoryRepository,
)
from .notification_repository import (
    InMemoryNotificationRepository,
    NotificationRecord,
    NotificationRepository,
    WorkerNotificationRepository,
)
from .worker_client import WorkerClient

__all__ = [
    "WorkerClient",
    "PriceAlertRecord",
    "AlertRepository",
    "InMemoryAlertRepository",
    "WorkerAlertRepository",
    "AnalysisHistoryEntry",
    "HistoryRepository",
    "InMemoryHistoryRepository",
    "WorkerHistoryRepository",
    "NotificationRecord",
    "NotificationRepository",
    "InMemoryNotificationRepository",
    "WorkerNotificationRepository",
]
