"""
Ticket Application DTOs
========================

Data Transfer Objects for Ticket API layer.

Pydantic models for request/response validation.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from civictrack.config import VALID_CATEGORIES
from civictrack.sla.application.dto import SLAReadingResponse
from civictrack.tickets.application.services import ResolutionInput, TicketView
from civictrack.tickets.domain import CitizenFeedback, Location, Resolution, Ticket


# ========== Type Aliases for Literals ==========
TicketStatusStr = Literal[
    "submitted", "in-progress", "pending_feedback", "completed", "reopened", "closed"
]
CriticalityStr = Literal["critical", "high", "medium", "low"]
SortKeyStr = Literal["date", "upvotes", "criticality", "sla", "status", "ward"]


# ========== Request DTOs ==========

class LocationDTO(BaseModel):
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    ward: Optional[str] = None
    address: Optional[str] = None

    def to_domain(self) -> Location:
        return Location(lat=self.lat, lng=self.lng, ward=self.ward, address=self.address)

    @classmethod
    def from_domain(cls, location: Location) -> "LocationDTO":
        return cls(
            lat=location.lat, lng=location.lng,
            ward=location.ward, address=location.address
        )


class CreateTicketRequest(BaseModel):
    """Request model for filing a ticket."""
    category: str = Field(..., description="Issue category")
    description: str = Field(default="", max_length=5000, description="Free-text description")
    location: LocationDTO
    image_url: Optional[str] = Field(None, description="Photo of the issue")

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        if v not in VALID_CATEGORIES:
            raise ValueError(f"Unknown category '{v}'. Valid: {', '.join(VALID_CATEGORIES)}")
        return v


class ResolutionDTO(BaseModel):
    notes: str = Field(default="", max_length=5000)
    proof_image_url: Optional[str] = Field(None, description="Photo proving the fix")

    def to_input(self) -> ResolutionInput:
        return ResolutionInput(notes=self.notes, proof_image_url=self.proof_image_url)


class StatusUpdateRequest(BaseModel):
    """Request model for an authority status change."""
    status: TicketStatusStr
    resolution: Optional[ResolutionDTO] = None


class FeedbackRequest(BaseModel):
    """Request model for the owner's verdict on a resolution."""
    approved: bool
    comments: Optional[str] = Field(None, max_length=5000)


# ========== Response DTOs ==========

class ResolutionResponse(BaseModel):
    notes: str
    proof_image_url: Optional[str] = None
    resolved_by: str
    resolved_at: datetime

    @classmethod
    def from_domain(cls, resolution: Resolution) -> "ResolutionResponse":
        return cls(
            notes=resolution.notes,
            proof_image_url=resolution.proof_image_url,
            resolved_by=resolution.resolved_by,
            resolved_at=resolution.resolved_at,
        )


class FeedbackResponse(BaseModel):
    citizen_id: str
    approved: bool
    comments: str
    submitted_at: datetime

    @classmethod
    def from_domain(cls, feedback: CitizenFeedback) -> "FeedbackResponse":
        return cls(
            citizen_id=feedback.citizen_id,
            approved=feedback.approved,
            comments=feedback.comments,
            submitted_at=feedback.submitted_at,
        )


class TicketResponse(BaseModel):
    """Response model for a single ticket."""
    id: str
    author_id: str
    category: str
    description: str
    location: LocationDTO
    image_url: Optional[str] = None
    criticality: CriticalityStr
    sla_deadline: datetime
    status: TicketStatusStr
    assigned_to: Optional[str] = None
    feedback_status: Optional[Literal["pending", "approved", "rejected"]] = None
    upvotes: int
    resolution: Optional[ResolutionResponse] = None
    resolution_history: List[ResolutionResponse] = Field(default_factory=list)
    feedback: List[FeedbackResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    sla: Optional[SLAReadingResponse] = None
    distance_km: Optional[float] = None

    @classmethod
    def from_domain(cls, ticket: Ticket) -> "TicketResponse":
        return cls(
            id=ticket.id,
            author_id=ticket.author_id,
            category=ticket.category.value,
            description=ticket.description,
            location=LocationDTO.from_domain(ticket.location),
            image_url=ticket.image_url,
            criticality=ticket.criticality.value,
            sla_deadline=ticket.sla_deadline,
            status=ticket.status.value,
            assigned_to=ticket.assigned_to,
            feedback_status=ticket.feedback_status.value if ticket.feedback_status else None,
            upvotes=ticket.upvotes,
            resolution=ResolutionResponse.from_domain(ticket.resolution) if ticket.resolution else None,
            resolution_history=[ResolutionResponse.from_domain(r) for r in ticket.resolutions],
            feedback=[FeedbackResponse.from_domain(f) for f in ticket.feedback],
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )

    @classmethod
    def from_view(cls, view: TicketView) -> "TicketResponse":
        response = cls.from_domain(view.ticket)
        response.sla = SLAReadingResponse.from_domain(view.sla)
        if view.distance_km is not None:
            response.distance_km = round(view.distance_km, 3)
        return response


class TicketListResponse(BaseModel):
    tickets: List[TicketResponse] = Field(default_factory=list)
    total: int = 0
    sort_by: SortKeyStr = "date"

    @classmethod
    def from_views(cls, views: List[TicketView], sort_by: str = "date") -> "TicketListResponse":
        tickets = [TicketResponse.from_view(v) for v in views]
        return cls(tickets=tickets, total=len(tickets), sort_by=sort_by)


class UpvoteResponse(BaseModel):
    ticket_id: str
    upvotes: int
