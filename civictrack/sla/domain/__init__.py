"""
SLA Domain Layer
================

Domain layer for the SLA engine.

Contains:
- Value Objects: SLAPolicy, SLAReading
- Domain Services: CriticalityClassifier, SLACalculator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from civictrack.sla.domain.value_objects import (
    CriticalityClassifier,
    SLACalculator,
    SLAPolicy,
    SLAReading,
    OVERDUE_SCORE,
)

__all__ = [
    "CriticalityClassifier",
    "SLACalculator",
    "SLAPolicy",
    "SLAReading",
    "OVERDUE_SCORE",
]
