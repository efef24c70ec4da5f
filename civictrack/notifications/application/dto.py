"""
Notification Application DTOs
==============================
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from civictrack.notifications.domain import Notification


NotificationTypeStr = Literal[
    "new_ticket", "ticket_update", "ticket_upvote", "user_feedback", "resolution"
]


class NotificationResponse(BaseModel):
    id: str
    type: NotificationTypeStr
    title: str
    message: str
    ticket_id: Optional[str] = None
    read: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            type=notification.type.value,
            title=notification.title,
            message=notification.message,
            ticket_id=notification.ticket_id,
            read=notification.read,
            created_at=notification.created_at,
        )


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse] = Field(default_factory=list)
    unread_count: int = 0


class MarkReadResponse(BaseModel):
    message: str
    updated: int = Field(default=1, description="Notifications changed")
