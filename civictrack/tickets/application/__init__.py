"""
Ticket Application Layer
========================

Use cases for filing, transitioning, verifying and upvoting tickets.
"""

from civictrack.tickets.application.services import (
    ITicketRepository,
    IUpvoteLedger,
    TicketFilters,
    TicketView,
    ResolutionInput,
    TicketService,
    SORT_KEYS,
    haversine_km,
    sort_views,
)
from civictrack.tickets.application.dto import (
    LocationDTO,
    CreateTicketRequest,
    ResolutionDTO,
    StatusUpdateRequest,
    FeedbackRequest,
    ResolutionResponse,
    FeedbackResponse,
    TicketResponse,
    TicketListResponse,
    UpvoteResponse,
)

__all__ = [
    "ITicketRepository",
    "IUpvoteLedger",
    "TicketFilters",
    "TicketView",
    "ResolutionInput",
    "TicketService",
    "SORT_KEYS",
    "haversine_km",
    "sort_views",
    "LocationDTO",
    "CreateTicketRequest",
    "ResolutionDTO",
    "StatusUpdateRequest",
    "FeedbackRequest",
    "ResolutionResponse",
    "FeedbackResponse",
    "TicketResponse",
    "TicketListResponse",
    "UpvoteResponse",
]
