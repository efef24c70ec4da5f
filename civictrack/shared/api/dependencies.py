"""
Shared API Dependencies
=======================

Per-request wiring of collaborators that several bounded contexts need:
the SLA policy provider, the clock and the notification dispatcher.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from civictrack.core.clock import Clock, utcnow
from civictrack.infrastructure.database import get_session, get_session_maker
from civictrack.notifications.application import NotificationDispatcher
from civictrack.notifications.infrastructure import sqlalchemy_notification_scope
from civictrack.sla.application import ISLAPolicyProvider, StaticPolicyProvider
from civictrack.users.infrastructure import SQLAlchemyUserDirectory


def get_policy_provider(request: Request) -> ISLAPolicyProvider:
    """Hot-reloading policy manager from app state, or built-in defaults."""
    provider = getattr(request.app.state, "sla_policy", None)
    return provider if provider is not None else StaticPolicyProvider()


def get_clock(request: Request) -> Clock:
    return getattr(request.app.state, "clock", None) or utcnow


async def get_notification_dispatcher(
    session: AsyncSession = Depends(get_session),
    policy_provider: ISLAPolicyProvider = Depends(get_policy_provider),
    clock: Clock = Depends(get_clock)
) -> NotificationDispatcher:
    """Dispatcher writing each notification in its own transaction."""
    return NotificationDispatcher(
        user_directory=SQLAlchemyUserDirectory(session),
        repository_scope=sqlalchemy_notification_scope(get_session_maker()),
        policy_provider=policy_provider,
        clock=clock,
    )
