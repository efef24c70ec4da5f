from contextlib import asynccontextmanager
from datetime import timedelta

import pytest

from civictrack.config import (
    Criticality, FeedbackStatus, NotificationType, TicketStatus, UserRole
)
from civictrack.core import (
    AlreadyUpvotedException,
    ConcurrentUpdateException,
    ForbiddenException,
    InvalidTransitionException,
    NotAwaitingFeedbackException,
    ProofRequiredException,
    ResourceNotFoundException,
    ValidationException,
)
from civictrack.sla.domain import SLAPolicy
from civictrack.tickets.application import ResolutionInput, TicketFilters
from civictrack.tickets.domain import TicketStateMachine
from civictrack.tickets.infrastructure import SQLAlchemyTicketRepository

from factories import FAR_AWAY, HOME, NOW, PROOF


async def file_ticket(service, category="pothole", description="Pothole near school",
                      author="citizen-1", location=HOME):
    return await service.create_ticket(author, category, description, location)


async def resolve(service, ticket_id, proof=PROOF, actor="authority-1"):
    return await service.transition_status(
        ticket_id, actor, UserRole.AUTHORITY, TicketStatus.PENDING_FEEDBACK,
        ResolutionInput(notes="Fixed", proof_image_url=proof),
    )


# ========== Creation ==========

async def test_create_classifies_and_fixes_deadline(ticket_service, load_ticket):
    ticket = await file_ticket(ticket_service, "water-supply", "burst pipe emergency")

    assert ticket.id.startswith("TKT") and len(ticket.id) == 15
    assert ticket.criticality == Criticality.CRITICAL
    assert ticket.sla_deadline == NOW + timedelta(hours=6)
    assert ticket.status == TicketStatus.SUBMITTED
    assert ticket.upvotes == 0

    stored = await load_ticket(ticket.id)
    assert stored.sla_deadline == ticket.sla_deadline
    assert stored.location == HOME
    assert stored.version == 0


async def test_unknown_category_persists_nothing(ticket_service):
    with pytest.raises(ValidationException):
        await file_ticket(ticket_service, category="volcano")
    assert await ticket_service.list_tickets() == []


async def test_only_citizens_file_tickets(ticket_service):
    with pytest.raises(ForbiddenException):
        await file_ticket(ticket_service, author="authority-1")


async def test_unknown_author_is_not_found(ticket_service):
    with pytest.raises(ResourceNotFoundException):
        await file_ticket(ticket_service, author="ghost")


async def test_location_is_required(ticket_service):
    with pytest.raises(ValidationException):
        await file_ticket(ticket_service, location=None)


# ========== Deadline immutability ==========

async def test_deadline_survives_transitions_and_policy_changes(
    session, ticket_service, make_ticket_service, clock, load_ticket
):
    ticket = await file_ticket(ticket_service, "drainage", "major blockage")
    deadline = ticket.sla_deadline

    clock.advance(hours=3)
    await ticket_service.transition_status(ticket.id, "authority-1", "authority", "in-progress")
    clock.advance(hours=3)
    await resolve(ticket_service, ticket.id)
    await ticket_service.submit_feedback(ticket.id, "citizen-1", False, "Still blocked")

    stricter = make_ticket_service(session, policy=SLAPolicy(deadlines={"high": {"hours": 1}}))
    await stricter.transition_status(ticket.id, "authority-1", "authority", "in-progress")

    assert (await load_ticket(ticket.id)).sla_deadline == deadline


# ========== Authority transitions ==========

async def test_proof_required_then_accepted(ticket_service, load_ticket):
    ticket = await file_ticket(ticket_service)

    with pytest.raises(ProofRequiredException):
        await resolve(ticket_service, ticket.id, proof="")
    assert (await load_ticket(ticket.id)).status == TicketStatus.SUBMITTED

    resolved = await resolve(ticket_service, ticket.id)
    assert resolved.status == TicketStatus.PENDING_FEEDBACK
    assert resolved.feedback_status == FeedbackStatus.PENDING

    stored = await load_ticket(ticket.id)
    assert stored.resolution.proof_image_url == PROOF
    assert stored.assigned_to == "authority-1"
    assert stored.version == 1


async def test_direct_completion_is_invalid(ticket_service):
    ticket = await file_ticket(ticket_service)
    with pytest.raises(InvalidTransitionException):
        await ticket_service.transition_status(
            ticket.id, "authority-1", UserRole.AUTHORITY, TicketStatus.COMPLETED,
            ResolutionInput(proof_image_url=PROOF),
        )


async def test_closed_is_terminal(ticket_service):
    ticket = await file_ticket(ticket_service)
    await ticket_service.transition_status(ticket.id, "authority-1", "authority", "closed")
    with pytest.raises(InvalidTransitionException):
        await ticket_service.transition_status(ticket.id, "authority-1", "authority", "in-progress")


async def test_citizen_cannot_change_status(ticket_service):
    ticket = await file_ticket(ticket_service)
    with pytest.raises(ForbiddenException):
        await ticket_service.transition_status(ticket.id, "citizen-1", "citizen", "in-progress")


async def test_unknown_ticket_is_not_found(ticket_service):
    with pytest.raises(ResourceNotFoundException):
        await ticket_service.transition_status("TKT000000000000", "authority-1", "authority", "closed")


# ========== Feedback loop ==========

async def test_reject_then_approve(ticket_service, load_ticket):
    ticket = await file_ticket(ticket_service)
    await resolve(ticket_service, ticket.id)

    reopened = await ticket_service.submit_feedback(ticket.id, "citizen-1", False, "Still there")
    assert reopened.status == TicketStatus.REOPENED
    assert reopened.feedback_status == FeedbackStatus.REJECTED

    await resolve(ticket_service, ticket.id, proof="https://images.example.org/proof/2.jpg")
    completed = await ticket_service.submit_feedback(ticket.id, "citizen-1", True)
    assert completed.status == TicketStatus.COMPLETED
    assert completed.feedback_status == FeedbackStatus.APPROVED

    stored = await load_ticket(ticket.id)
    assert [r.proof_image_url for r in stored.resolutions] == [
        PROOF, "https://images.example.org/proof/2.jpg"
    ]
    assert [f.approved for f in stored.feedback] == [False, True]
    assert stored.feedback[0].comments == "Still there"


async def test_second_feedback_fails(ticket_service):
    ticket = await file_ticket(ticket_service)
    await resolve(ticket_service, ticket.id)
    await ticket_service.submit_feedback(ticket.id, "citizen-1", True)

    with pytest.raises(NotAwaitingFeedbackException):
        await ticket_service.submit_feedback(ticket.id, "citizen-1", False)


async def test_feedback_from_non_owner_is_forbidden(ticket_service):
    ticket = await file_ticket(ticket_service)
    await resolve(ticket_service, ticket.id)
    with pytest.raises(ForbiddenException):
        await ticket_service.submit_feedback(ticket.id, "citizen-2", True)


# ========== Upvotes ==========

async def test_upvote_counts_once(ticket_service, load_ticket):
    ticket = await file_ticket(ticket_service)

    assert (await ticket_service.upvote(ticket.id, "citizen-2")).upvotes == 1
    with pytest.raises(AlreadyUpvotedException):
        await ticket_service.upvote(ticket.id, "citizen-2")

    assert (await load_ticket(ticket.id)).upvotes == 1
    assert (await ticket_service.upvote(ticket.id, "authority-1")).upvotes == 2


async def test_upvote_leaves_updated_at_alone(ticket_service, clock, load_ticket):
    ticket = await file_ticket(ticket_service)
    clock.advance(hours=1)
    await ticket_service.upvote(ticket.id, "citizen-2")
    assert (await load_ticket(ticket.id)).updated_at == NOW


async def test_status_write_does_not_clobber_upvotes(
    session_maker, make_ticket_service, ticket_service, clock, load_ticket
):
    ticket = await file_ticket(ticket_service)

    async with session_maker() as stale_session:
        stale_repo = SQLAlchemyTicketRepository(stale_session)
        stale = await stale_repo.get_by_id(ticket.id)

        await ticket_service.upvote(ticket.id, "citizen-2")

        TicketStateMachine.apply_authority_transition(
            stale, "authority-1", UserRole.AUTHORITY, TicketStatus.IN_PROGRESS, clock()
        )
        await stale_repo.save(stale, stale.version)
        await stale_repo.commit()

    stored = await load_ticket(ticket.id)
    assert stored.status == TicketStatus.IN_PROGRESS
    assert stored.upvotes == 1


# ========== Concurrency ==========

async def test_concurrent_transitions_exactly_one_wins(
    session_maker, ticket_service, clock, load_ticket
):
    ticket = await file_ticket(ticket_service)

    async with session_maker() as session_a, session_maker() as session_b:
        repo_a = SQLAlchemyTicketRepository(session_a)
        repo_b = SQLAlchemyTicketRepository(session_b)
        copy_a = await repo_a.get_by_id(ticket.id)
        copy_b = await repo_b.get_by_id(ticket.id)

        TicketStateMachine.apply_authority_transition(
            copy_a, "authority-1", UserRole.AUTHORITY, TicketStatus.IN_PROGRESS, clock()
        )
        TicketStateMachine.apply_authority_transition(
            copy_b, "authority-2", UserRole.AUTHORITY, TicketStatus.CLOSED, clock()
        )

        await repo_a.save(copy_a, 0)
        await repo_a.commit()

        with pytest.raises(ConcurrentUpdateException):
            await repo_b.save(copy_b, 0)

    stored = await load_ticket(ticket.id)
    assert stored.status == TicketStatus.IN_PROGRESS
    assert stored.assigned_to == "authority-1"
    assert stored.version == 1


# ========== Notifications ==========

async def test_lifecycle_notifications(ticket_service, read_feed):
    ticket = await file_ticket(ticket_service)

    for authority in ("authority-1", "authority-2"):
        feed = await read_feed(authority)
        assert [n.type for n in feed] == [NotificationType.NEW_TICKET]
        assert feed[0].message == "A new pothole issue has been reported in Ward 1"

    await resolve(ticket_service, ticket.id)
    owner_feed = await read_feed("citizen-1")
    assert [n.type for n in owner_feed] == [NotificationType.RESOLUTION, NotificationType.TICKET_UPDATE]
    assert owner_feed[0].title == "Please Verify Resolution"

    await ticket_service.submit_feedback(ticket.id, "citizen-1", False, "Not fixed")
    authority_feed = await read_feed("authority-1")
    assert authority_feed[0].type == NotificationType.USER_FEEDBACK
    assert authority_feed[0].message.endswith(": Not fixed")
    assert len(await read_feed("authority-2")) == 1


async def test_upvote_notifies_owner_but_not_self(ticket_service, read_feed):
    ticket = await file_ticket(ticket_service)

    await ticket_service.upvote(ticket.id, "citizen-1")
    assert await read_feed("citizen-1") == []

    await ticket_service.upvote(ticket.id, "citizen-2")
    feed = await read_feed("citizen-1")
    assert [n.type for n in feed] == [NotificationType.TICKET_UPVOTE]
    assert feed[0].message.endswith("Total votes: 2")


async def test_upvote_milestone_reaches_assigned_authority(
    session, make_ticket_service, read_feed
):
    service = make_ticket_service(session, policy=SLAPolicy(upvote_milestones=[2]))
    ticket = await file_ticket(service)
    await service.transition_status(ticket.id, "authority-1", "authority", "in-progress")

    await service.upvote(ticket.id, "citizen-2")
    await service.upvote(ticket.id, "authority-2")

    milestone = [n for n in await read_feed("authority-1") if n.type == NotificationType.TICKET_UPVOTE]
    assert len(milestone) == 1
    assert "reached 2 upvotes" in milestone[0].message
    assert not any(n.type == NotificationType.TICKET_UPVOTE for n in await read_feed("authority-2"))


async def test_failing_notification_does_not_roll_back(session, make_ticket_service, load_ticket):
    @asynccontextmanager
    async def broken_scope():
        raise RuntimeError("notification store down")
        yield  # pragma: no cover

    service = make_ticket_service(session, repository_scope=broken_scope)
    ticket = await file_ticket(service)
    await service.transition_status(ticket.id, "authority-1", "authority", "in-progress")

    stored = await load_ticket(ticket.id)
    assert stored is not None
    assert stored.status == TicketStatus.IN_PROGRESS


# ========== Listings ==========

async def test_list_sorted_by_sla_urgency(ticket_service, clock):
    low = await file_ticket(ticket_service, "pothole", "small crack")
    critical = await file_ticket(ticket_service, "water-supply", "burst main")
    clock.advance(hours=5)

    views = await ticket_service.list_tickets(sort_by="sla")

    assert [v.ticket.id for v in views] == [critical.id, low.id]
    assert views[0].sla.hours_left == pytest.approx(1)


async def test_list_default_is_newest_first(ticket_service, clock):
    first = await file_ticket(ticket_service)
    clock.advance(minutes=5)
    second = await file_ticket(ticket_service)

    views = await ticket_service.list_tickets()
    assert [v.ticket.id for v in views] == [second.id, first.id]


async def test_list_filters(ticket_service, clock):
    home = await file_ticket(ticket_service)
    away = await file_ticket(ticket_service, author="citizen-2", location=FAR_AWAY)
    await ticket_service.transition_status(away.id, "authority-1", "authority", "closed")

    by_ward = await ticket_service.list_tickets(TicketFilters(ward="Ward 1"))
    assert [v.ticket.id for v in by_ward] == [home.id]

    closed = await ticket_service.list_tickets(TicketFilters(statuses=[TicketStatus.CLOSED]))
    assert [v.ticket.id for v in closed] == [away.id]

    future = await ticket_service.list_tickets(TicketFilters(created_from=NOW + timedelta(days=1)))
    assert future == []

    mine = await ticket_service.list_my_tickets("citizen-2")
    assert [v.ticket.id for v in mine] == [away.id]


async def test_list_rejects_unknown_sort(ticket_service):
    with pytest.raises(ValidationException):
        await ticket_service.list_tickets(sort_by="vibes")


async def test_nearby(ticket_service):
    near = await file_ticket(ticket_service)
    await file_ticket(ticket_service, author="citizen-2", location=FAR_AWAY)

    views = await ticket_service.list_nearby(HOME.lat, HOME.lng, radius_km=5)

    assert [v.ticket.id for v in views] == [near.id]
    assert views[0].distance_km == pytest.approx(0.0, abs=1e-6)
