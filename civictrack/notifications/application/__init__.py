"""
Notification Application Layer
==============================
"""

from civictrack.notifications.application.services import (
    INotificationRepository,
    NotificationRepositoryScope,
    NotificationDispatcher,
    NotificationService,
)
from civictrack.notifications.application.dto import (
    NotificationResponse,
    NotificationListResponse,
    MarkReadResponse,
)

__all__ = [
    "INotificationRepository",
    "NotificationRepositoryScope",
    "NotificationDispatcher",
    "NotificationService",
    "NotificationResponse",
    "NotificationListResponse",
    "MarkReadResponse",
]
