"""
Notification Domain Layer
=========================
"""

from civictrack.notifications.domain.entities import (
    Notification,
    NotificationFeed,
    DEFAULT_FEED_CAP,
)

__all__ = ["Notification", "NotificationFeed", "DEFAULT_FEED_CAP"]
