"""
SLA Application Services
=========================

Application services orchestrate SLA evaluation for reads and dashboards.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions, not concrete implementations
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from civictrack.config import Criticality, SLAStatus
from civictrack.core.clock import Clock, utcnow
from civictrack.sla.domain import SLACalculator, SLAPolicy, SLAReading
from civictrack.tickets.domain import Ticket


# ========== Interfaces (Dependency Inversion) ==========

class ISLAPolicyProvider(ABC):
    """Interface for SLA policy access."""

    @abstractmethod
    def get_policy(self) -> SLAPolicy:
        """Get current SLA policy."""


class StaticPolicyProvider(ISLAPolicyProvider):
    """Fixed policy, used when no YAML file is configured and in tests."""

    def __init__(self, policy: Optional[SLAPolicy] = None):
        self._policy = policy or SLAPolicy()

    def get_policy(self) -> SLAPolicy:
        return self._policy


class ISLAAlertRepository(ABC):
    """Interface for SLA escalation records."""

    @abstractmethod
    async def exists(self, ticket_id: str, sla_status: SLAStatus) -> bool:
        """Check whether a ticket was already escalated at this level."""

    @abstractmethod
    async def create(
        self,
        ticket_id: str,
        sla_status: SLAStatus,
        deadline: datetime,
        triggered_at: datetime
    ) -> str:
        """Record an escalation. Returns the alert ID."""

    @abstractmethod
    async def mark_sent(self, alert_id: str, sent_at: datetime) -> None:
        """Mark the external notification as sent."""


# ========== Read models ==========

@dataclass
class CriticalityBreakdown:
    total: int = 0
    overdue: int = 0


@dataclass
class SLAStats:
    """Counts of tickets per live SLA bucket."""
    total: int = 0
    overdue: int = 0
    critical: int = 0
    warning: int = 0
    on_time: int = 0
    by_criticality: Dict[str, CriticalityBreakdown] = field(
        default_factory=lambda: {c.value: CriticalityBreakdown() for c in Criticality}
    )


# ========== Application Services ==========

class SLAService:
    """
    Service for live SLA evaluation.

    Pure reads: never mutates tickets and never recomputes deadlines.
    """

    def __init__(self, policy_provider: ISLAPolicyProvider, clock: Clock = utcnow):
        self._policy_provider = policy_provider
        self._clock = clock

    def evaluate_ticket(self, ticket: Ticket, now: Optional[datetime] = None) -> SLAReading:
        """
        Evaluate a ticket's SLA at `now` (defaults to the service clock).
        """
        return SLACalculator.evaluate(
            ticket.sla_deadline,
            ticket.status,
            now or self._clock(),
            self._policy_provider.get_policy()
        )

    def evaluate_many(
        self,
        tickets: Iterable[Ticket],
        now: Optional[datetime] = None
    ) -> List[SLAReading]:
        now = now or self._clock()
        return [self.evaluate_ticket(ticket, now) for ticket in tickets]

    def compute_stats(
        self,
        tickets: Iterable[Ticket],
        now: Optional[datetime] = None
    ) -> SLAStats:
        """
        Bucket tickets by live SLA status.

        Untracked statuses (completed, reopened, closed) count as on time.
        """
        now = now or self._clock()
        stats = SLAStats()

        for ticket in tickets:
            reading = self.evaluate_ticket(ticket, now)
            breakdown = stats.by_criticality[Criticality(ticket.criticality).value]
            stats.total += 1
            breakdown.total += 1

            if reading.status == SLAStatus.OVERDUE:
                stats.overdue += 1
                breakdown.overdue += 1
            elif reading.status == SLAStatus.CRITICAL:
                stats.critical += 1
            elif reading.status == SLAStatus.WARNING:
                stats.warning += 1
            else:
                stats.on_time += 1

        return stats
