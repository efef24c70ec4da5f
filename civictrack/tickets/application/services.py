"""
Ticket Application Services
============================

Application services orchestrate the ticket lifecycle: classification and
deadline at creation, state-machine transitions, citizen feedback, upvotes,
and the read-side listings.

Following SOLID principles:
- Single Responsibility: TicketService owns the write path, listings only read
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import uuid4

from civictrack.config import (
    CRITICALITY_ORDER, Category, TicketStatus, UserRole
)
from civictrack.core import (
    ForbiddenException,
    ResourceNotFoundException,
    ValidationException,
)
from civictrack.core.clock import Clock, utcnow
from civictrack.notifications.application import NotificationDispatcher
from civictrack.shared.infrastructure.logging import get_logger
from civictrack.sla.application import ISLAPolicyProvider
from civictrack.sla.domain import CriticalityClassifier, SLACalculator, SLAReading
from civictrack.tickets.domain import Location, Ticket, TicketStateMachine
from civictrack.users.application import IUserDirectory

logger = get_logger(__name__)

EARTH_RADIUS_KM = 6371.0
SORT_KEYS = ("date", "upvotes", "criticality", "sla", "status", "ward")


# ========== Repository Interfaces (Dependency Inversion) ==========

@dataclass(frozen=True)
class TicketFilters:
    """Listing filters; None means unfiltered."""
    ward: Optional[str] = None
    statuses: Optional[Sequence[TicketStatus]] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    author_id: Optional[str] = None


class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID."""

    @abstractmethod
    async def create(self, ticket: Ticket) -> Ticket:
        """Persist a new ticket."""

    @abstractmethod
    async def save(self, ticket: Ticket, expected_version: int) -> Ticket:
        """
        Persist a transition.

        Raises ConcurrentUpdateException unless the stored version still
        equals `expected_version`.
        """

    @abstractmethod
    async def list(self, filters: TicketFilters) -> List[Ticket]:
        """List tickets, newest first."""

    @abstractmethod
    async def commit(self) -> None:
        """Commit the unit of work."""


class IUpvoteLedger(ABC):
    """Interface for the at-most-once upvote ledger."""

    @abstractmethod
    async def record(self, ticket_id: str, user_id: str, at: datetime) -> int:
        """
        Record a vote and increment the counter atomically.

        Returns:
            The ticket's new upvote count

        Raises:
            AlreadyUpvotedException: the pair already voted
        """


# ========== Read models ==========

@dataclass(frozen=True)
class TicketView:
    """A ticket with its live SLA reading (and distance, for nearby search)."""
    ticket: Ticket
    sla: SLAReading
    distance_km: Optional[float] = None


@dataclass(frozen=True)
class ResolutionInput:
    """What an authority submits when proposing completion."""
    notes: str = ""
    proof_image_url: Optional[str] = None


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def sort_views(views: List[TicketView], sort_by: str) -> List[TicketView]:
    """
    Order listing rows.

    date (newest first), upvotes, criticality and sla sort descending;
    status and ward sort alphabetically.
    """
    if sort_by not in SORT_KEYS:
        raise ValidationException(f"Unknown sort key: {sort_by}", {"sort_by": sort_by})

    if sort_by == "upvotes":
        return sorted(views, key=lambda v: v.ticket.upvotes, reverse=True)
    if sort_by == "criticality":
        return sorted(views, key=lambda v: CRITICALITY_ORDER[v.ticket.criticality], reverse=True)
    if sort_by == "sla":
        return sorted(views, key=lambda v: v.sla.score, reverse=True)
    if sort_by == "status":
        return sorted(views, key=lambda v: v.ticket.status.value)
    if sort_by == "ward":
        return sorted(views, key=lambda v: v.ticket.location.ward or "")
    return sorted(views, key=lambda v: v.ticket.created_at, reverse=True)


# ========== Application Services ==========

class TicketService:
    """
    Service for the ticket lifecycle.

    Every write commits before notifications go out, so a failed
    notification can never undo a transition.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        upvote_ledger: IUpvoteLedger,
        user_directory: IUserDirectory,
        dispatcher: NotificationDispatcher,
        policy_provider: ISLAPolicyProvider,
        clock: Clock = utcnow
    ):
        self._tickets = ticket_repository
        self._ledger = upvote_ledger
        self._users = user_directory
        self._dispatcher = dispatcher
        self._policy_provider = policy_provider
        self._clock = clock

    # ----- writes -----

    async def create_ticket(
        self,
        author_id: str,
        category: Category | str,
        description: Optional[str],
        location: Optional[Location],
        image_url: Optional[str] = None
    ) -> Ticket:
        """
        File a new ticket.

        Classifies criticality and fixes the SLA deadline; both are never
        recomputed afterwards. Invalid input is rejected before anything is
        persisted.
        """
        author = await self._users.get(author_id)
        if author is None:
            raise ResourceNotFoundException("User", author_id)
        if author.role != UserRole.CITIZEN:
            raise ForbiddenException(
                "Only citizens can file tickets", {"user_id": author_id}
            )
        if location is None:
            raise ValidationException("Location is required")

        policy = self._policy_provider.get_policy()
        criticality = CriticalityClassifier(policy).classify(category, description)
        now = self._clock()

        ticket = Ticket(
            id=f"TKT{uuid4().hex[:12].upper()}",
            author_id=author_id,
            category=Category(category),
            description=description or "",
            location=location,
            image_url=image_url,
            criticality=criticality,
            sla_deadline=SLACalculator.calculate_deadline(criticality, now, policy),
            status=TicketStatus.SUBMITTED,
            created_at=now,
            updated_at=now,
        )

        await self._tickets.create(ticket)
        await self._tickets.commit()

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "category": ticket.category.value,
                "criticality": criticality.value,
                "sla_deadline": ticket.sla_deadline.isoformat(),
            }
        )

        await self._dispatcher.ticket_created(ticket)
        return ticket

    async def transition_status(
        self,
        ticket_id: str,
        actor_id: str,
        actor_role: UserRole | str,
        new_status: TicketStatus | str,
        resolution: Optional[ResolutionInput] = None
    ) -> Ticket:
        """
        Apply an authority action.

        Raises:
            ResourceNotFoundException, ForbiddenException,
            InvalidTransitionException, ProofRequiredException,
            ConcurrentUpdateException
        """
        ticket = await self._get_or_404(ticket_id)
        expected_version = ticket.version

        transition = TicketStateMachine.apply_authority_transition(
            ticket,
            actor_id=actor_id,
            actor_role=actor_role,
            new_status=new_status,
            now=self._clock(),
            notes=resolution.notes if resolution else None,
            proof_image_url=resolution.proof_image_url if resolution else None,
        )

        await self._tickets.save(ticket, expected_version)
        await self._tickets.commit()

        logger.info(
            "Ticket status changed",
            extra={
                "ticket_id": ticket.id,
                "from_status": transition.previous_status.value,
                "to_status": transition.new_status.value,
                "actor_id": actor_id,
            }
        )

        await self._dispatcher.status_changed(ticket, transition)
        return ticket

    async def submit_feedback(
        self,
        ticket_id: str,
        citizen_id: str,
        approved: bool,
        comments: Optional[str] = None
    ) -> Ticket:
        """
        Record the owner's verdict on a proposed resolution.

        Raises:
            ResourceNotFoundException, ForbiddenException,
            NotAwaitingFeedbackException, ConcurrentUpdateException
        """
        ticket = await self._get_or_404(ticket_id)
        expected_version = ticket.version

        transition = TicketStateMachine.apply_feedback(
            ticket, citizen_id, approved, self._clock(), comments
        )

        await self._tickets.save(ticket, expected_version)
        await self._tickets.commit()

        logger.info(
            "Citizen feedback recorded",
            extra={
                "ticket_id": ticket.id,
                "approved": approved,
                "to_status": transition.new_status.value,
            }
        )

        await self._dispatcher.feedback_submitted(ticket, ticket.latest_feedback)
        return ticket

    async def upvote(self, ticket_id: str, user_id: str) -> Ticket:
        """
        Add one community vote.

        Raises:
            ResourceNotFoundException: unknown ticket or user
            AlreadyUpvotedException: second vote by the same user
        """
        ticket = await self._get_or_404(ticket_id)
        if await self._users.get(user_id) is None:
            raise ResourceNotFoundException("User", user_id)

        ticket.upvotes = await self._ledger.record(ticket.id, user_id, self._clock())
        await self._tickets.commit()

        logger.info(
            "Ticket upvoted",
            extra={"ticket_id": ticket.id, "upvotes": ticket.upvotes}
        )

        await self._dispatcher.ticket_upvoted(ticket, user_id)
        return ticket

    # ----- reads -----

    async def get_ticket(self, ticket_id: str) -> Ticket:
        return await self._get_or_404(ticket_id)

    async def get_ticket_view(self, ticket_id: str, now: Optional[datetime] = None) -> TicketView:
        ticket = await self._get_or_404(ticket_id)
        return TicketView(ticket, self._evaluate(ticket, now or self._clock()))

    async def list_tickets(
        self,
        filters: Optional[TicketFilters] = None,
        sort_by: str = "date",
        now: Optional[datetime] = None
    ) -> List[TicketView]:
        """All tickets matching filters, with live SLA, in the requested order."""
        if sort_by not in SORT_KEYS:
            raise ValidationException(f"Unknown sort key: {sort_by}", {"sort_by": sort_by})
        now = now or self._clock()
        tickets = await self._tickets.list(filters or TicketFilters())
        views = [TicketView(ticket, self._evaluate(ticket, now)) for ticket in tickets]
        return sort_views(views, sort_by)

    async def list_my_tickets(self, author_id: str, now: Optional[datetime] = None) -> List[TicketView]:
        return await self.list_tickets(TicketFilters(author_id=author_id), "date", now)

    async def list_nearby(
        self,
        lat: float,
        lng: float,
        radius_km: float = 5.0,
        now: Optional[datetime] = None
    ) -> List[TicketView]:
        """Tickets with coordinates within `radius_km`, nearest first."""
        if radius_km <= 0:
            raise ValidationException("radius_km must be positive", {"radius_km": radius_km})
        now = now or self._clock()

        views = []
        for ticket in await self._tickets.list(TicketFilters()):
            if not ticket.location.has_coordinates:
                continue
            distance = haversine_km(lat, lng, ticket.location.lat, ticket.location.lng)
            if distance <= radius_km:
                views.append(TicketView(ticket, self._evaluate(ticket, now), distance))

        return sorted(views, key=lambda v: v.distance_km)

    def _evaluate(self, ticket: Ticket, now: datetime) -> SLAReading:
        return SLACalculator.evaluate(
            ticket.sla_deadline, ticket.status, now, self._policy_provider.get_policy()
        )

    async def _get_or_404(self, ticket_id: str) -> Ticket:
        ticket = await self._tickets.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket
