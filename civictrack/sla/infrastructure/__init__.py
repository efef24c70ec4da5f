"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA monitoring:
- Models: escalation records
- Repositories: Data access layer
- External: policy file watcher, Slack client, sweep scheduler
"""

from civictrack.sla.infrastructure.models import SLAAlertModel
from civictrack.sla.infrastructure.repositories import SQLAlchemySLAAlertRepository
from civictrack.sla.infrastructure.external import (
    SLAPolicyManager,
    CircuitBreaker,
    CircuitState,
    SlackClient,
    SLAScheduler,
)

__all__ = [
    "SLAAlertModel",
    "SQLAlchemySLAAlertRepository",
    "SLAPolicyManager",
    "CircuitBreaker",
    "CircuitState",
    "SlackClient",
    "SLAScheduler",
]
