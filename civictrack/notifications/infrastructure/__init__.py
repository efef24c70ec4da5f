"""
Notification Infrastructure Layer
=================================
"""

from civictrack.notifications.infrastructure.models import NotificationModel
from civictrack.notifications.infrastructure.repositories import (
    SQLAlchemyNotificationRepository,
    sqlalchemy_notification_scope,
)

__all__ = [
    "NotificationModel",
    "SQLAlchemyNotificationRepository",
    "sqlalchemy_notification_scope",
]
