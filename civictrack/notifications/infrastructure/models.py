"""
Notification Infrastructure Models
===================================
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from civictrack.config import NotificationType
from civictrack.infrastructure.database import Base, UTCDateTime
from civictrack.notifications.domain import Notification


class NotificationModel(Base):
    """
    Database model for Notification entity.

    Maps to the 'notifications' table. `seq` gives a total insertion
    order, so feeds stay newest-first even when timestamps tie.
    """
    __tablename__ = "notifications"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    recipient_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    ticket_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    def to_domain(self) -> Notification:
        return Notification(
            id=self.id,
            recipient_id=self.recipient_id,
            type=NotificationType(self.type),
            title=self.title,
            message=self.message,
            ticket_id=self.ticket_id,
            read=self.read,
            created_at=self.created_at,
        )

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationModel":
        return cls(
            id=notification.id,
            recipient_id=notification.recipient_id,
            type=notification.type.value,
            title=notification.title,
            message=notification.message,
            ticket_id=notification.ticket_id,
            read=notification.read,
            created_at=notification.created_at,
        )
