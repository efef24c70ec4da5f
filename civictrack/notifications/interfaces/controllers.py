"""
Notification Controllers (API Routes)
======================================

FastAPI routes for a user's in-app notification feed.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from civictrack.infrastructure.database import get_session
from civictrack.notifications.application import (
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationService,
)
from civictrack.notifications.infrastructure import SQLAlchemyNotificationRepository
from civictrack.users.domain import User
from civictrack.users.interfaces import get_current_user

router = APIRouter(prefix="/notifications", tags=["Notifications"])


async def get_notification_service(
    session: AsyncSession = Depends(get_session)
) -> NotificationService:
    return NotificationService(SQLAlchemyNotificationRepository(session))


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List the caller's notifications, newest first"
)
async def list_notifications(
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    notifications = await service.list_notifications(user.id)
    return NotificationListResponse(
        notifications=[NotificationResponse.from_domain(n) for n in notifications],
        unread_count=sum(1 for n in notifications if not n.read),
    )


@router.put(
    "/read-all",
    response_model=MarkReadResponse,
    summary="Mark every notification read"
)
async def mark_all_notifications_read(
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    updated = await service.mark_all_read(user.id)
    return MarkReadResponse(message="All notifications marked as read", updated=updated)


@router.put(
    "/{notification_id}/read",
    response_model=MarkReadResponse,
    summary="Mark one notification read",
    responses={404: {"description": "No such notification for this user"}}
)
async def mark_notification_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    await service.mark_read(user.id, notification_id)
    return MarkReadResponse(message="Notification marked as read")
