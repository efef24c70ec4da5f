"""
Ticket Controllers (API Routes)
================================

FastAPI routes for filing, listing and moving tickets through their lifecycle.

Controllers are thin - they delegate to application services.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from civictrack.config import TicketStatus
from civictrack.core.clock import Clock
from civictrack.infrastructure.database import get_session
from civictrack.notifications.application import NotificationDispatcher
from civictrack.shared.api.dependencies import (
    get_clock, get_notification_dispatcher, get_policy_provider
)
from civictrack.shared.infrastructure.logging import get_logger
from civictrack.sla.application import ISLAPolicyProvider
from civictrack.tickets.application import (
    CreateTicketRequest,
    FeedbackRequest,
    StatusUpdateRequest,
    TicketFilters,
    TicketListResponse,
    TicketResponse,
    TicketService,
    UpvoteResponse,
)
from civictrack.tickets.infrastructure import SQLAlchemyTicketRepository, SQLAlchemyUpvoteLedger
from civictrack.users.domain import User
from civictrack.users.infrastructure import SQLAlchemyUserDirectory
from civictrack.users.interfaces import get_current_user, require_authority

logger = get_logger(__name__)
router = APIRouter(prefix="/tickets", tags=["Tickets"])


# ========== Example payloads for Swagger ==========

CREATE_TICKET_EXAMPLE = {
    "category": "water-supply",
    "description": "Burst pipe flooding the street, water everywhere",
    "location": {"lat": 12.9716, "lng": 77.5946, "ward": "Ward 12", "address": "MG Road"},
    "image_url": "https://images.example.org/reports/pipe.jpg"
}

STATUS_UPDATE_EXAMPLE = {
    "status": "pending_feedback",
    "resolution": {
        "notes": "Pipe replaced and road patched",
        "proof_image_url": "https://images.example.org/proof/pipe-fixed.jpg"
    }
}


# ========== Dependencies ==========

async def get_ticket_service(
    session: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    policy_provider: ISLAPolicyProvider = Depends(get_policy_provider),
    clock: Clock = Depends(get_clock)
) -> TicketService:
    """Get ticket service instance."""
    return TicketService(
        ticket_repository=SQLAlchemyTicketRepository(session),
        upvote_ledger=SQLAlchemyUpvoteLedger(session),
        user_directory=SQLAlchemyUserDirectory(session),
        dispatcher=dispatcher,
        policy_provider=policy_provider,
        clock=clock,
    )


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Query dates without an offset are taken as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="File a new ticket",
    description="""
    File a civic issue. Criticality is classified from the category and the
    description keywords, and the SLA deadline is fixed from it.

    **Categories**: `pothole`, `water-supply`, `drainage`, `streetlight`,
    `garbage-management`, `traffic`, `noise-pollution`, `electricity`,
    `sewage`, `other`

    Only citizens may file tickets.
    """,
    responses={
        201: {"description": "Ticket filed"},
        403: {"description": "Caller is not a citizen"},
        422: {"description": "Unknown category or malformed body"},
    },
    openapi_extra={
        "requestBody": {"content": {"application/json": {"example": CREATE_TICKET_EXAMPLE}}}
    }
)
async def create_ticket(
    payload: CreateTicketRequest,
    user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.create_ticket(
        author_id=user.id,
        category=payload.category,
        description=payload.description,
        location=payload.location.to_domain(),
        image_url=payload.image_url,
    )
    return TicketResponse.from_domain(ticket)


@router.get(
    "",
    response_model=TicketListResponse,
    summary="List all tickets (authority)",
    description="""
    Filter by `ward`, `status`, `date_from` and `date_to`; order with
    `sort_by` = `date` | `upvotes` | `criticality` | `sla` | `status` | `ward`.
    Every row carries its live SLA reading.
    """
)
async def list_tickets(
    ward: Optional[str] = Query(None),
    ticket_status: Optional[TicketStatus] = Query(None, alias="status"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    sort_by: str = Query("date"),
    user: User = Depends(require_authority),
    service: TicketService = Depends(get_ticket_service)
):
    filters = TicketFilters(
        ward=ward,
        statuses=[ticket_status] if ticket_status else None,
        created_from=_as_utc(date_from),
        created_to=_as_utc(date_to),
    )
    views = await service.list_tickets(filters, sort_by)
    return TicketListResponse.from_views(views, sort_by)


@router.get("/mine", response_model=TicketListResponse, summary="List the caller's tickets")
async def list_my_tickets(
    user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    views = await service.list_my_tickets(user.id)
    return TicketListResponse.from_views(views)


@router.get("/nearby", response_model=TicketListResponse, summary="Tickets near a point")
async def list_nearby_tickets(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(5.0, gt=0, le=100),
    user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    views = await service.list_nearby(lat, lng, radius_km)
    return TicketListResponse.from_views(views)


@router.get("/{ticket_id}", response_model=TicketResponse, summary="Get one ticket")
async def get_ticket(
    ticket_id: str,
    user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    return TicketResponse.from_view(await service.get_ticket_view(ticket_id))


@router.put(
    "/{ticket_id}/status",
    response_model=TicketResponse,
    summary="Change ticket status (authority)",
    description="""
    Allowed moves: `submitted`/`in-progress`/`reopened` to `in-progress`,
    `pending_feedback` or `closed`; `pending_feedback` to `closed`.
    Moving to `pending_feedback` requires `resolution.proof_image_url`.
    Only the ticket owner can complete a ticket, through feedback.
    """,
    responses={
        403: {"description": "Caller is not an authority"},
        409: {"description": "Transition not allowed, or ticket changed concurrently"},
        422: {"description": "Proof image missing"},
    },
    openapi_extra={
        "requestBody": {"content": {"application/json": {"example": STATUS_UPDATE_EXAMPLE}}}
    }
)
async def update_ticket_status(
    ticket_id: str,
    payload: StatusUpdateRequest,
    user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.transition_status(
        ticket_id,
        actor_id=user.id,
        actor_role=user.role,
        new_status=payload.status,
        resolution=payload.resolution.to_input() if payload.resolution else None,
    )
    return TicketResponse.from_domain(ticket)


@router.post(
    "/{ticket_id}/feedback",
    response_model=TicketResponse,
    summary="Approve or reject a resolution (ticket owner)",
    responses={
        403: {"description": "Caller does not own the ticket"},
        409: {"description": "Ticket is not awaiting feedback"},
    }
)
async def submit_feedback(
    ticket_id: str,
    payload: FeedbackRequest,
    user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.submit_feedback(
        ticket_id, user.id, payload.approved, payload.comments
    )
    return TicketResponse.from_domain(ticket)


@router.post(
    "/{ticket_id}/upvote",
    response_model=UpvoteResponse,
    summary="Upvote a ticket",
    responses={409: {"description": "Caller already upvoted this ticket"}}
)
async def upvote_ticket(
    ticket_id: str,
    user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.upvote(ticket_id, user.id)
    return UpvoteResponse(ticket_id=ticket.id, upvotes=ticket.upvotes)
