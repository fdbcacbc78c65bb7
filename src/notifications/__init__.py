"""Notification records, persistence, and realtime delivery."""

from src.notifications.models import Notification
from src.notifications.service import NotificationService
from src.notifications.store import NotificationStore

__all__ = [
    "Notification",
    "NotificationService",
    "NotificationStore",
]
