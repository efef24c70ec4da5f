"""
SLA Interfaces Layer
=====================

Interface adapters (controllers) for the SLA module.
"""

from civictrack.sla.interfaces.controllers import router as sla_router

__all__ = ["sla_router"]
