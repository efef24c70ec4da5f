from datetime import timedelta

import pytest

from civictrack.config import FeedbackStatus, TicketStatus, UserRole
from civictrack.core import (
    ForbiddenException,
    InvalidTransitionException,
    NotAwaitingFeedbackException,
    ProofRequiredException,
    ValidationException,
)
from civictrack.tickets.domain import AUTHORITY_TRANSITIONS, TicketStateMachine

from factories import NOW, PROOF, make_ticket

LATER = NOW + timedelta(hours=1)


def move(ticket, status, proof=None, notes=None, actor="authority-1"):
    return TicketStateMachine.apply_authority_transition(
        ticket, actor, UserRole.AUTHORITY, status, LATER, notes=notes, proof_image_url=proof
    )


def test_every_status_has_a_row():
    assert set(AUTHORITY_TRANSITIONS) == set(TicketStatus)


@pytest.mark.parametrize("current,target,allowed", [
    ("submitted", "in-progress", True),
    ("submitted", "pending_feedback", True),
    ("submitted", "closed", True),
    ("submitted", "completed", False),
    ("submitted", "reopened", False),
    ("in-progress", "in-progress", True),
    ("in-progress", "submitted", False),
    ("reopened", "in-progress", True),
    ("reopened", "pending_feedback", True),
    ("pending_feedback", "closed", True),
    ("pending_feedback", "in-progress", False),
    ("pending_feedback", "completed", False),
    ("completed", "closed", False),
    ("closed", "in-progress", False),
])
def test_transition_table(current, target, allowed):
    assert TicketStateMachine.can_transition(current, target) is allowed


def test_start_work_assigns_actor():
    ticket = make_ticket()
    transition = move(ticket, TicketStatus.IN_PROGRESS)

    assert ticket.status == TicketStatus.IN_PROGRESS
    assert ticket.assigned_to == "authority-1"
    assert ticket.updated_at == LATER
    assert transition.previous_status == TicketStatus.SUBMITTED
    assert transition.new_status == TicketStatus.IN_PROGRESS


def test_pending_feedback_requires_proof():
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS)
    for proof in (None, "", "   "):
        with pytest.raises(ProofRequiredException):
            move(ticket, TicketStatus.PENDING_FEEDBACK, proof=proof)
    assert ticket.status == TicketStatus.IN_PROGRESS
    assert ticket.resolutions == []


def test_pending_feedback_records_resolution():
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS)
    move(ticket, TicketStatus.PENDING_FEEDBACK, proof=PROOF, notes="Patched")

    assert ticket.status == TicketStatus.PENDING_FEEDBACK
    assert ticket.feedback_status == FeedbackStatus.PENDING
    assert ticket.resolution.proof_image_url == PROOF
    assert ticket.resolution.notes == "Patched"
    assert ticket.resolution.resolved_by == "authority-1"


def test_authority_cannot_complete_directly():
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS)
    with pytest.raises(InvalidTransitionException) as exc_info:
        move(ticket, TicketStatus.COMPLETED, proof=PROOF)
    assert exc_info.value.requested_status == "completed"
    assert ticket.status == TicketStatus.IN_PROGRESS


def test_citizen_cannot_transition():
    ticket = make_ticket()
    with pytest.raises(ForbiddenException):
        TicketStateMachine.apply_authority_transition(
            ticket, "citizen-1", UserRole.CITIZEN, TicketStatus.IN_PROGRESS, LATER
        )


def test_unknown_status_is_validation_error():
    with pytest.raises(ValidationException):
        move(make_ticket(), "teleported")


def test_closing_clears_pending_feedback():
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS)
    move(ticket, TicketStatus.PENDING_FEEDBACK, proof=PROOF)
    move(ticket, TicketStatus.CLOSED)

    assert ticket.status == TicketStatus.CLOSED
    assert ticket.feedback_status is None
    with pytest.raises(NotAwaitingFeedbackException):
        TicketStateMachine.apply_feedback(ticket, "citizen-1", True, LATER)


def test_approval_completes():
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS)
    move(ticket, TicketStatus.PENDING_FEEDBACK, proof=PROOF)
    TicketStateMachine.apply_feedback(ticket, "citizen-1", True, LATER, "Thanks")

    assert ticket.status == TicketStatus.COMPLETED
    assert ticket.feedback_status == FeedbackStatus.APPROVED
    assert ticket.latest_feedback.comments == "Thanks"


def test_rejection_reopens_and_keeps_history():
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS)
    move(ticket, TicketStatus.PENDING_FEEDBACK, proof=PROOF)
    TicketStateMachine.apply_feedback(ticket, "citizen-1", False, LATER, "Still broken")

    assert ticket.status == TicketStatus.REOPENED
    assert ticket.feedback_status == FeedbackStatus.REJECTED

    move(ticket, TicketStatus.PENDING_FEEDBACK, proof="https://images.example.org/proof/2.jpg")
    assert len(ticket.resolutions) == 2
    assert ticket.resolutions[0].proof_image_url == PROOF


def test_second_feedback_is_rejected():
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS)
    move(ticket, TicketStatus.PENDING_FEEDBACK, proof=PROOF)
    TicketStateMachine.apply_feedback(ticket, "citizen-1", True, LATER)

    with pytest.raises(NotAwaitingFeedbackException):
        TicketStateMachine.apply_feedback(ticket, "citizen-1", False, LATER)


def test_feedback_only_from_owner():
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS)
    move(ticket, TicketStatus.PENDING_FEEDBACK, proof=PROOF)

    with pytest.raises(ForbiddenException):
        TicketStateMachine.apply_feedback(ticket, "citizen-2", True, LATER)
    assert ticket.feedback_status == FeedbackStatus.PENDING
