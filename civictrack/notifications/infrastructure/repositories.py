"""
Notification Infrastructure Repositories
=========================================

SQLAlchemy implementation of the notification feed store.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, List

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from civictrack.infrastructure.database import storage_errors
from civictrack.notifications.application import (
    INotificationRepository, NotificationRepositoryScope
)
from civictrack.notifications.domain import Notification, NotificationFeed
from civictrack.notifications.infrastructure.models import NotificationModel


class SQLAlchemyNotificationRepository(INotificationRepository):
    """
    SQLAlchemy implementation of the notification repository.

    The feed cap is enforced through NotificationFeed: whatever the feed
    evicts on push is deleted in the same transaction as the insert.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_for_recipient(self, recipient_id: str) -> List[Notification]:
        stmt = (
            select(NotificationModel)
            .where(NotificationModel.recipient_id == recipient_id)
            .order_by(NotificationModel.seq.desc())
        )
        async with storage_errors("list notifications"):
            result = await self._session.execute(stmt)
        return [model.to_domain() for model in result.scalars().all()]

    async def append(self, notification: Notification, cap: int) -> int:
        feed = NotificationFeed(
            notification.recipient_id,
            await self.list_for_recipient(notification.recipient_id),
            cap=cap,
        )
        evicted = feed.push(notification)

        async with storage_errors("append notification"):
            self._session.add(NotificationModel.from_domain(notification))
            if evicted:
                await self._session.execute(
                    delete(NotificationModel).where(
                        NotificationModel.id.in_([n.id for n in evicted])
                    )
                )
            await self._session.flush()
        return len(evicted)

    async def mark_read(self, recipient_id: str, notification_id: str) -> bool:
        stmt = (
            update(NotificationModel)
            .where(
                NotificationModel.id == notification_id,
                NotificationModel.recipient_id == recipient_id,
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        async with storage_errors("mark notification read"):
            result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def mark_all_read(self, recipient_id: str) -> int:
        stmt = (
            update(NotificationModel)
            .where(
                NotificationModel.recipient_id == recipient_id,
                NotificationModel.read.is_(False),
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        async with storage_errors("mark all notifications read"):
            result = await self._session.execute(stmt)
        return result.rowcount


def sqlalchemy_notification_scope(
    session_maker: async_sessionmaker[AsyncSession]
) -> NotificationRepositoryScope:
    """
    Build a scope that hands out a repository on a fresh session and
    commits it on exit, independent of the caller's transaction.
    """

    @asynccontextmanager
    async def scope() -> AsyncGenerator[INotificationRepository, None]:
        async with session_maker() as session:
            async with session.begin():
                yield SQLAlchemyNotificationRepository(session)

    return scope
