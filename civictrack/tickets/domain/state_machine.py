"""
Ticket State Machine
=====================

Legal status transitions for a ticket, including the citizen feedback loop.

    submitted ──► in-progress ──► pending_feedback ──► completed
        │              ▲                 │
        │              │                 ▼
        │              └──────────── reopened
        ▼
      closed  (from any open state)
"""

from datetime import datetime
from typing import Dict, FrozenSet, Optional

from civictrack.config import TicketStatus, FeedbackStatus, UserRole
from civictrack.core import (
    ForbiddenException,
    InvalidTransitionException,
    NotAwaitingFeedbackException,
    ProofRequiredException,
    ValidationException,
)
from civictrack.tickets.domain.entities import (
    CitizenFeedback, Resolution, Ticket, TicketTransition
)


AUTHORITY_TRANSITIONS: Dict[TicketStatus, FrozenSet[TicketStatus]] = {
    TicketStatus.SUBMITTED: frozenset({
        TicketStatus.IN_PROGRESS, TicketStatus.PENDING_FEEDBACK, TicketStatus.CLOSED,
    }),
    TicketStatus.IN_PROGRESS: frozenset({
        TicketStatus.IN_PROGRESS, TicketStatus.PENDING_FEEDBACK, TicketStatus.CLOSED,
    }),
    TicketStatus.REOPENED: frozenset({
        TicketStatus.IN_PROGRESS, TicketStatus.PENDING_FEEDBACK, TicketStatus.CLOSED,
    }),
    TicketStatus.PENDING_FEEDBACK: frozenset({TicketStatus.CLOSED}),
    TicketStatus.COMPLETED: frozenset(),
    TicketStatus.CLOSED: frozenset(),
}

_unmapped = set(TicketStatus) - set(AUTHORITY_TRANSITIONS)
if _unmapped:
    raise RuntimeError(f"Transition table missing statuses: {sorted(s.value for s in _unmapped)}")


class TicketStateMachine:
    """
    Applies authority actions and citizen feedback to a Ticket.

    Mutates the ticket in place and returns the TicketTransition to report.
    Persisting and versioning the change is the caller's job.
    """

    @staticmethod
    def allowed_targets(status: TicketStatus) -> FrozenSet[TicketStatus]:
        return AUTHORITY_TRANSITIONS[TicketStatus(status)]

    @classmethod
    def can_transition(cls, current: TicketStatus, target: TicketStatus) -> bool:
        return TicketStatus(target) in cls.allowed_targets(current)

    @classmethod
    def apply_authority_transition(
        cls,
        ticket: Ticket,
        actor_id: str,
        actor_role: UserRole | str,
        new_status: TicketStatus | str,
        now: datetime,
        notes: Optional[str] = None,
        proof_image_url: Optional[str] = None
    ) -> TicketTransition:
        """
        Move a ticket on behalf of an authority.

        Raises:
            ForbiddenException: actor is not an authority
            InvalidTransitionException: target not reachable from current status
            ProofRequiredException: entering pending_feedback without proof
        """
        if actor_role != UserRole.AUTHORITY:
            raise ForbiddenException(
                "Only authorities can change ticket status",
                {"ticket_id": ticket.id, "actor_id": actor_id}
            )

        try:
            target = TicketStatus(new_status)
        except ValueError as e:
            raise ValidationException(
                f"Unknown status: {new_status}", {"status": str(new_status)}
            ) from e

        if not cls.can_transition(ticket.status, target):
            raise InvalidTransitionException(ticket.id, ticket.status.value, target.value)

        if target == TicketStatus.PENDING_FEEDBACK:
            if not (proof_image_url or "").strip():
                raise ProofRequiredException(ticket.id)
            ticket.resolutions.append(Resolution(
                notes=notes or "",
                proof_image_url=proof_image_url.strip(),
                resolved_by=actor_id,
                resolved_at=now,
            ))
            ticket.feedback_status = FeedbackStatus.PENDING
        else:
            # in-progress and closed carry no pending verdict
            ticket.feedback_status = None

        previous = ticket.status
        ticket.status = target
        ticket.assigned_to = actor_id
        ticket.updated_at = now

        return TicketTransition(
            ticket_id=ticket.id,
            previous_status=previous,
            new_status=target,
            actor_id=actor_id,
            occurred_at=now,
        )

    @staticmethod
    def apply_feedback(
        ticket: Ticket,
        citizen_id: str,
        approved: bool,
        now: datetime,
        comments: Optional[str] = None
    ) -> TicketTransition:
        """
        Record the owner's verdict on the latest resolution.

        Raises:
            ForbiddenException: citizen does not own the ticket
            NotAwaitingFeedbackException: no verdict is pending
        """
        if not ticket.is_owned_by(citizen_id):
            raise ForbiddenException(
                "You can only provide feedback on your own tickets",
                {"ticket_id": ticket.id, "citizen_id": citizen_id}
            )

        if ticket.feedback_status != FeedbackStatus.PENDING:
            raise NotAwaitingFeedbackException(
                ticket.id,
                ticket.feedback_status.value if ticket.feedback_status else None
            )

        ticket.feedback.append(CitizenFeedback(
            citizen_id=citizen_id,
            approved=approved,
            comments=comments or "",
            submitted_at=now,
        ))

        previous = ticket.status
        if approved:
            ticket.status = TicketStatus.COMPLETED
            ticket.feedback_status = FeedbackStatus.APPROVED
        else:
            ticket.status = TicketStatus.REOPENED
            ticket.feedback_status = FeedbackStatus.REJECTED
        ticket.updated_at = now

        return TicketTransition(
            ticket_id=ticket.id,
            previous_status=previous,
            new_status=ticket.status,
            actor_id=citizen_id,
            occurred_at=now,
        )
