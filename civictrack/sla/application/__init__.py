"""
SLA Application Layer
======================

Contains:
- Services: live SLA evaluation and statistics
- DTOs: response models for the SLA API
- Interfaces: policy provider and escalation record repository
"""

from civictrack.sla.application.services import (
    SLAService,
    SLAStats,
    CriticalityBreakdown,
    ISLAPolicyProvider,
    ISLAAlertRepository,
    StaticPolicyProvider,
)
from civictrack.sla.application.dto import (
    SLAReadingResponse,
    TicketSLAResponse,
    SLAStatsResponse,
)

__all__ = [
    # Services
    "SLAService",
    "SLAStats",
    "CriticalityBreakdown",
    # Interfaces
    "ISLAPolicyProvider",
    "ISLAAlertRepository",
    "StaticPolicyProvider",
    # DTOs
    "SLAReadingResponse",
    "TicketSLAResponse",
    "SLAStatsResponse",
]
