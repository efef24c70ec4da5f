"""
Ticket Interfaces Layer
========================

Interface adapters (controllers) for the tickets module.
"""

from civictrack.tickets.interfaces.controllers import router as tickets_router

__all__ = ["tickets_router"]
