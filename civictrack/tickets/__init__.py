"""
Tickets Bounded Context
=======================

Civic issue reports and their lifecycle: filing, authority transitions,
the citizen feedback loop and community upvotes.

Layers:
- domain: Ticket entity and TicketStateMachine
- application: TicketService, DTOs and repository interfaces
- infrastructure: SQLAlchemy models and repositories
- interfaces: FastAPI routes
"""
