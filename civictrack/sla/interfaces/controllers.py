"""
SLA Controllers (API Routes)
=============================

FastAPI routes for live SLA visibility.

Controllers are thin - they delegate to application services.
"""

from fastapi import APIRouter, Depends

from civictrack.core.clock import Clock
from civictrack.shared.api.dependencies import get_clock, get_policy_provider
from civictrack.sla.application import (
    ISLAPolicyProvider,
    SLAReadingResponse,
    SLAService,
    SLAStatsResponse,
    TicketSLAResponse,
)
from civictrack.tickets.application import TicketFilters, TicketService
from civictrack.tickets.interfaces.controllers import get_ticket_service
from civictrack.users.domain import User
from civictrack.users.interfaces import get_current_user, require_authority

router = APIRouter(prefix="/sla", tags=["SLA Monitoring"])


# ========== Example payloads for Swagger ==========

TICKET_SLA_RESPONSE_EXAMPLE = {
    "ticket_id": "TKT3F2A9C1B7D4E",
    "criticality": "critical",
    "ticket_status": "in-progress",
    "evaluated_at": "2024-01-15T14:00:00Z",
    "sla": {
        "status": "critical",
        "score": 198.5,
        "hours_left": 1.5,
        "deadline": "2024-01-15T15:30:00Z"
    }
}

SLA_STATS_RESPONSE_EXAMPLE = {
    "total": 12,
    "overdue": 2,
    "critical": 1,
    "warning": 3,
    "on_time": 6,
    "by_criticality": {
        "critical": {"total": 3, "overdue": 1},
        "high": {"total": 4, "overdue": 1},
        "medium": {"total": 3, "overdue": 0},
        "low": {"total": 2, "overdue": 0}
    }
}


# ========== Dependencies ==========

async def get_sla_service(
    policy_provider: ISLAPolicyProvider = Depends(get_policy_provider),
    clock: Clock = Depends(get_clock)
) -> SLAService:
    """Get SLA service instance."""
    return SLAService(policy_provider, clock)


# ========== Route Handlers ==========

@router.get(
    "/tickets/{ticket_id}",
    response_model=TicketSLAResponse,
    summary="Live SLA status of a ticket",
    description="""
    Evaluate the ticket's stored deadline against the current time.

    **Statuses**: `normal`, `warning` (24h or less left), `critical`
    (2h or less left), `overdue`. Only `submitted`, `in-progress` and
    `pending_feedback` tickets are tracked; others report `normal`.
    """,
    responses={
        200: {"content": {"application/json": {"example": TICKET_SLA_RESPONSE_EXAMPLE}}},
        404: {"description": "Ticket not found"},
    }
)
async def get_ticket_sla(
    ticket_id: str,
    user: User = Depends(get_current_user),
    tickets: TicketService = Depends(get_ticket_service),
    sla: SLAService = Depends(get_sla_service),
    clock: Clock = Depends(get_clock)
):
    ticket = await tickets.get_ticket(ticket_id)
    now = clock()
    return TicketSLAResponse(
        ticket_id=ticket.id,
        criticality=ticket.criticality.value,
        ticket_status=ticket.status.value,
        evaluated_at=now,
        sla=SLAReadingResponse.from_domain(sla.evaluate_ticket(ticket, now)),
    )


@router.get(
    "/stats",
    response_model=SLAStatsResponse,
    summary="SLA buckets across all tickets (authority)",
    responses={
        200: {"content": {"application/json": {"example": SLA_STATS_RESPONSE_EXAMPLE}}},
        403: {"description": "Caller is not an authority"},
    }
)
async def get_sla_stats(
    user: User = Depends(require_authority),
    tickets: TicketService = Depends(get_ticket_service),
    sla: SLAService = Depends(get_sla_service)
):
    views = await tickets.list_tickets(TicketFilters())
    return SLAStatsResponse.from_domain(sla.compute_stats(v.ticket for v in views))
