"""
SLA Sweep
=========

Periodic escalation of tickets whose live SLA status reached critical or
overdue. Runs from the APScheduler job started in the app lifespan.

The sweep only reads tickets: it never changes a status and never
recomputes a deadline.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from civictrack.config import SLA_TRACKED_STATUSES, SLAStatus
from civictrack.core.clock import Clock, utcnow
from civictrack.notifications.application import NotificationDispatcher
from civictrack.notifications.infrastructure import sqlalchemy_notification_scope
from civictrack.shared.infrastructure.logging import get_logger, log_latency
from civictrack.sla.application import ISLAPolicyProvider, SLAService
from civictrack.sla.infrastructure import SlackClient, SQLAlchemySLAAlertRepository
from civictrack.tickets.application import TicketFilters
from civictrack.tickets.infrastructure import SQLAlchemyTicketRepository
from civictrack.users.infrastructure import SQLAlchemyUserDirectory

logger = get_logger(__name__)

ESCALATION_LEVELS = (SLAStatus.CRITICAL, SLAStatus.OVERDUE)


@dataclass
class SweepResult:
    tickets_evaluated: int = 0
    escalations: int = 0
    notifications_sent: int = 0
    slack_sent: int = 0


class SLASweeper:
    """
    Evaluates every SLA-tracked ticket and escalates new critical/overdue ones.

    Each (ticket, level) pair is escalated once; the record is committed
    before anyone is notified, so a crash mid-sweep never double-notifies.
    Overdue escalations also go to Slack when a webhook is configured.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        policy_provider: ISLAPolicyProvider,
        slack_client: Optional[SlackClient] = None,
        clock: Clock = utcnow
    ):
        self._session_maker = session_maker
        self._policy_provider = policy_provider
        self._slack_client = slack_client
        self._clock = clock

    async def run(self) -> SweepResult:
        """Scheduler entry point. Errors are logged, never raised."""
        try:
            async with self._session_maker() as session:
                return await self.sweep(session)
        except Exception as e:
            logger.error("SLA sweep failed", extra={"error": str(e)}, exc_info=True)
            return SweepResult()

    async def sweep(self, session: AsyncSession) -> SweepResult:
        now = self._clock()
        result = SweepResult()
        sla_service = SLAService(self._policy_provider, self._clock)
        alerts = SQLAlchemySLAAlertRepository(session)
        dispatcher = NotificationDispatcher(
            user_directory=SQLAlchemyUserDirectory(session),
            repository_scope=sqlalchemy_notification_scope(self._session_maker),
            policy_provider=self._policy_provider,
            clock=self._clock,
        )

        tickets = await SQLAlchemyTicketRepository(session).list(
            TicketFilters(statuses=SLA_TRACKED_STATUSES)
        )

        with log_latency(logger, "sla_sweep", tickets=len(tickets)):
            for ticket in tickets:
                result.tickets_evaluated += 1
                reading = sla_service.evaluate_ticket(ticket, now)
                if reading.status not in ESCALATION_LEVELS:
                    continue
                if await alerts.exists(ticket.id, reading.status):
                    continue

                try:
                    alert_id = await alerts.create(ticket.id, reading.status, ticket.sla_deadline, now)
                    await session.commit()
                except IntegrityError:
                    # Another worker escalated this level first
                    await session.rollback()
                    continue

                result.escalations += 1
                logger.warning(
                    "Ticket SLA escalated",
                    extra={
                        "ticket_id": ticket.id,
                        "sla_status": reading.status.value,
                        "criticality": ticket.criticality.value,
                    }
                )
                result.notifications_sent += await dispatcher.sla_escalated(ticket, reading)

                if reading.status == SLAStatus.OVERDUE and self._slack_client is not None:
                    if await self._slack_client.send_escalation(ticket, reading):
                        await alerts.mark_sent(alert_id, self._clock())
                        await session.commit()
                        result.slack_sent += 1

        return result
