"""
Notification Application Services
==================================

NotificationDispatcher turns ticket events into per-recipient notifications.
NotificationService serves a user's feed.

Dispatch is best-effort: it runs after the ticket change has committed,
writes every notification in its own transaction, and logs instead of
raising when a delivery fails.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager, Callable, Iterable, List, Optional

from civictrack.config import NotificationType, TicketStatus, UserRole
from civictrack.core import ResourceNotFoundException
from civictrack.core.clock import Clock, utcnow
from civictrack.notifications.domain import Notification
from civictrack.shared.infrastructure.logging import get_logger
from civictrack.sla.application import ISLAPolicyProvider
from civictrack.sla.domain import SLAReading
from civictrack.tickets.domain import CitizenFeedback, Ticket, TicketTransition
from civictrack.users.application import IUserDirectory

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class INotificationRepository(ABC):
    """Interface for notification feed storage."""

    @abstractmethod
    async def list_for_recipient(self, recipient_id: str) -> List[Notification]:
        """Newest-first feed of a recipient."""

    @abstractmethod
    async def append(self, notification: Notification, cap: int) -> int:
        """Add to the recipient's feed, evicting beyond `cap`. Returns evicted count."""

    @abstractmethod
    async def mark_read(self, recipient_id: str, notification_id: str) -> bool:
        """Mark one notification read. False if it is not in the recipient's feed."""

    @abstractmethod
    async def mark_all_read(self, recipient_id: str) -> int:
        """Mark the whole feed read. Returns rows changed."""


# Opens a repository bound to its own, independently committed transaction
NotificationRepositoryScope = Callable[[], AsyncContextManager[INotificationRepository]]


# ========== Application Services ==========

class NotificationDispatcher:
    """
    Fans ticket events out to the affected users.

    Never raises: a failed delivery is logged and the remaining
    recipients are still attempted.
    """

    def __init__(
        self,
        user_directory: IUserDirectory,
        repository_scope: NotificationRepositoryScope,
        policy_provider: ISLAPolicyProvider,
        clock: Clock = utcnow
    ):
        self._users = user_directory
        self._repository_scope = repository_scope
        self._policy_provider = policy_provider
        self._clock = clock

    async def ticket_created(self, ticket: Ticket) -> int:
        """Tell every authority about a new ticket."""
        ward = ticket.location.ward or "your area"
        category = ticket.category.value.replace("-", " ")
        recipients = await self._authority_ids()
        return await self._deliver_many(
            recipients,
            NotificationType.NEW_TICKET,
            "New Issue Reported",
            f"A new {category} issue has been reported in {ward}",
            ticket.id,
        )

    async def status_changed(self, ticket: Ticket, transition: TicketTransition) -> int:
        """Tell the owner about an authority-driven transition."""
        if transition.new_status == TicketStatus.PENDING_FEEDBACK:
            status_message = "resolved"
        else:
            status_message = transition.new_status.value.replace("-", " ")

        delivered = await self._deliver_many(
            [ticket.author_id],
            NotificationType.TICKET_UPDATE,
            "Ticket Status Updated",
            f"Your ticket #{ticket.id} has been {status_message}",
            ticket.id,
        )

        if transition.new_status == TicketStatus.PENDING_FEEDBACK:
            delivered += await self._deliver_many(
                [ticket.author_id],
                NotificationType.RESOLUTION,
                "Please Verify Resolution",
                f"Your ticket #{ticket.id} has been marked as resolved. "
                "Please review and confirm if the issue is actually fixed.",
                ticket.id,
            )
        return delivered

    async def feedback_submitted(self, ticket: Ticket, feedback: CitizenFeedback) -> int:
        """Tell the assigned authority what the citizen decided."""
        if not ticket.assigned_to:
            logger.warning(
                "Feedback on unassigned ticket, nobody to notify",
                extra={"ticket_id": ticket.id}
            )
            return 0

        verdict = "approved" if feedback.approved else "rejected"
        suffix = f": {feedback.comments}" if feedback.comments else ""
        return await self._deliver_many(
            [ticket.assigned_to],
            NotificationType.USER_FEEDBACK,
            f"User {verdict} resolution",
            f"User has {verdict} the resolution for ticket #{ticket.id}{suffix}",
            ticket.id,
        )

    async def ticket_upvoted(self, ticket: Ticket, voter_id: str) -> int:
        """Tell the owner (unless self-vote) and, on milestones, the authorities."""
        delivered = 0
        if voter_id != ticket.author_id:
            delivered += await self._deliver_many(
                [ticket.author_id],
                NotificationType.TICKET_UPVOTE,
                "Your Issue Got Support",
                f"Someone upvoted your ticket #{ticket.id}. Total votes: {ticket.upvotes}",
                ticket.id,
            )

        if ticket.upvotes in self._policy_provider.get_policy().upvote_milestones:
            delivered += await self._deliver_many(
                await self._responsible_ids(ticket),
                NotificationType.TICKET_UPVOTE,
                "Community Priority Milestone",
                f"Ticket #{ticket.id} has reached {ticket.upvotes} upvotes",
                ticket.id,
            )
        return delivered

    async def sla_escalated(self, ticket: Ticket, reading: SLAReading) -> int:
        """Warn whoever owns the deadline that it is close or missed."""
        if reading.is_overdue:
            title = "SLA Deadline Missed"
            message = f"Ticket #{ticket.id} is past its {ticket.criticality.value} SLA deadline"
        else:
            title = "SLA Deadline Approaching"
            message = (
                f"Ticket #{ticket.id} must be resolved within "
                f"{max(reading.hours_left or 0.0, 0.0):.1f} hours"
            )
        return await self._deliver_many(
            await self._responsible_ids(ticket),
            NotificationType.TICKET_UPDATE,
            title,
            message,
            ticket.id,
        )

    async def _responsible_ids(self, ticket: Ticket) -> List[str]:
        if ticket.assigned_to:
            return [ticket.assigned_to]
        return await self._authority_ids()

    async def _authority_ids(self) -> List[str]:
        try:
            authorities = await self._users.list_by_role(UserRole.AUTHORITY)
        except Exception as e:
            logger.error(
                "Could not resolve authorities for notification",
                extra={"error": str(e)}
            )
            return []
        return [user.id for user in authorities]

    async def _deliver_many(
        self,
        recipient_ids: Iterable[str],
        notification_type: NotificationType,
        title: str,
        message: str,
        ticket_id: Optional[str]
    ) -> int:
        delivered = 0
        for recipient_id in recipient_ids:
            if await self._deliver(recipient_id, notification_type, title, message, ticket_id):
                delivered += 1
        return delivered

    async def _deliver(
        self,
        recipient_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        ticket_id: Optional[str]
    ) -> bool:
        try:
            if await self._users.get(recipient_id) is None:
                logger.warning(
                    "Notification recipient unknown, skipping",
                    extra={"recipient_id": recipient_id, "type": notification_type.value}
                )
                return False

            notification = Notification(
                recipient_id=recipient_id,
                type=notification_type,
                title=title,
                message=message,
                ticket_id=ticket_id,
                created_at=self._clock(),
            )
            cap = self._policy_provider.get_policy().notification_feed_cap
            async with self._repository_scope() as repository:
                await repository.append(notification, cap)
            return True
        except Exception as e:
            logger.error(
                "Notification delivery failed",
                extra={
                    "recipient_id": recipient_id,
                    "type": notification_type.value,
                    "ticket_id": ticket_id,
                    "error": str(e),
                }
            )
            return False


class NotificationService:
    """Reads and acknowledges a user's notification feed."""

    def __init__(self, repository: INotificationRepository):
        self._repository = repository

    async def list_notifications(self, user_id: str) -> List[Notification]:
        return await self._repository.list_for_recipient(user_id)

    async def mark_read(self, user_id: str, notification_id: str) -> None:
        if not await self._repository.mark_read(user_id, notification_id):
            raise ResourceNotFoundException("Notification", notification_id)

    async def mark_all_read(self, user_id: str) -> int:
        return await self._repository.mark_all_read(user_id)
