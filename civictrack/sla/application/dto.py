"""
SLA Application DTOs
=====================

Pydantic response models for the SLA API.
"""

from datetime import datetime
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field

from civictrack.sla.application.services import SLAStats
from civictrack.sla.domain import SLAReading


SLAStatusStr = Literal["normal", "warning", "critical", "overdue"]


class SLAReadingResponse(BaseModel):
    """Live SLA status of a ticket."""
    status: SLAStatusStr = Field(..., description="Live SLA status")
    score: float = Field(..., description="Urgency score; higher sorts first")
    hours_left: Optional[float] = Field(None, description="Hours until deadline (negative when overdue)")
    deadline: Optional[datetime] = Field(None, description="Stored SLA deadline")

    @classmethod
    def from_domain(cls, reading: SLAReading) -> "SLAReadingResponse":
        return cls(
            status=reading.status.value,
            score=round(reading.score, 4),
            hours_left=round(reading.hours_left, 4) if reading.hours_left is not None else None,
            deadline=reading.deadline,
        )


class TicketSLAResponse(BaseModel):
    """SLA view of one ticket."""
    ticket_id: str
    criticality: str
    ticket_status: str
    evaluated_at: datetime
    sla: SLAReadingResponse


class CriticalityBreakdownResponse(BaseModel):
    total: int
    overdue: int


class SLAStatsResponse(BaseModel):
    """Ticket counts per live SLA bucket."""
    total: int
    overdue: int
    critical: int
    warning: int
    on_time: int
    by_criticality: Dict[str, CriticalityBreakdownResponse]

    @classmethod
    def from_domain(cls, stats: SLAStats) -> "SLAStatsResponse":
        return cls(
            total=stats.total,
            overdue=stats.overdue,
            critical=stats.critical,
            warning=stats.warning,
            on_time=stats.on_time,
            by_criticality={
                tier: CriticalityBreakdownResponse(total=b.total, overdue=b.overdue)
                for tier, b in stats.by_criticality.items()
            },
        )
