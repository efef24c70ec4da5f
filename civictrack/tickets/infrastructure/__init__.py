"""
Ticket Infrastructure Layer
===========================
"""

from civictrack.tickets.infrastructure.models import (
    TicketModel,
    ResolutionModel,
    FeedbackModel,
    UpvoteModel,
)
from civictrack.tickets.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyUpvoteLedger,
)

__all__ = [
    "TicketModel",
    "ResolutionModel",
    "FeedbackModel",
    "UpvoteModel",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyUpvoteLedger",
]
