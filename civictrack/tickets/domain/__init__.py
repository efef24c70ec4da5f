"""
Ticket Domain Layer
===================

Entities (Ticket, Resolution, CitizenFeedback, Location) and the
TicketStateMachine. No infrastructure dependencies.
"""

from civictrack.tickets.domain.entities import (
    Ticket,
    Location,
    Resolution,
    CitizenFeedback,
    TicketTransition,
)
from civictrack.tickets.domain.state_machine import (
    TicketStateMachine,
    AUTHORITY_TRANSITIONS,
)

__all__ = [
    "Ticket",
    "Location",
    "Resolution",
    "CitizenFeedback",
    "TicketTransition",
    "TicketStateMachine",
    "AUTHORITY_TRANSITIONS",
]
