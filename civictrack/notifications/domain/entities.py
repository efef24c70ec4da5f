"""
Notification Domain Entities
=============================

Per-recipient notifications and the bounded feed that holds them.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Iterable, List, Optional
from uuid import uuid4

from civictrack.config import NotificationType


DEFAULT_FEED_CAP = 50


@dataclass
class Notification:
    """
    A single entry in a user's notification feed.

    Only `read` ever changes after creation.
    """
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    created_at: datetime
    ticket_id: Optional[str] = None
    read: bool = False
    id: str = field(default_factory=lambda: f"notif_{uuid4().hex}")

    def mark_read(self) -> None:
        self.read = True


class NotificationFeed:
    """
    Newest-first ring buffer of a recipient's notifications.

    Pushing onto a full feed evicts the oldest entry.
    """

    def __init__(
        self,
        recipient_id: str,
        entries: Iterable[Notification] = (),
        cap: int = DEFAULT_FEED_CAP
    ):
        if cap < 1:
            raise ValueError("feed cap must be positive")
        self.recipient_id = recipient_id
        self.cap = cap
        # entries arrive newest first; the deque keeps that order
        self._entries: Deque[Notification] = deque(maxlen=cap)
        self._overflow: List[Notification] = []
        for entry in entries:
            if len(self._entries) < cap:
                self._entries.append(entry)
            else:
                self._overflow.append(entry)

    def push(self, notification: Notification) -> List[Notification]:
        """
        Add the newest notification.

        Returns:
            Entries no longer retained (oldest first out)
        """
        if notification.recipient_id != self.recipient_id:
            raise ValueError("notification belongs to a different recipient")

        evicted = self._overflow
        self._overflow = []
        if len(self._entries) == self.cap:
            evicted.append(self._entries[-1])
        self._entries.appendleft(notification)
        return evicted

    @property
    def entries(self) -> List[Notification]:
        return list(self._entries)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._entries if not n.read)

    def __len__(self) -> int:
        return len(self._entries)
